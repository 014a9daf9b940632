"""Entrypoint: python -m agency_chat"""
from __future__ import annotations

import uvicorn

from agency_chat.config import settings
from agency_chat.logging_config import configure_logging


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "agency_chat.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
        ws_ping_interval=settings.WS_HEARTBEAT_SECONDS,
        ws_ping_timeout=settings.WS_IDLE_TIMEOUT_SECONDS,
    )


if __name__ == "__main__":
    main()
