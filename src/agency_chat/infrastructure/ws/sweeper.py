"""Background task that expires stale typing indicators."""
from __future__ import annotations

import asyncio
import logging

from agency_chat.infrastructure.ws.gateway import ChatGateway

logger = logging.getLogger(__name__)


class TypingSweeper:
    def __init__(self, gateway: ChatGateway, interval_seconds: float) -> None:
        self._gateway = gateway
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="typing-sweeper")
        logger.info("Typing sweeper started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Typing sweeper stopped")

    async def sweep_once(self) -> int:
        try:
            expired = await self._gateway.expire_typing()
        except Exception:
            logger.exception("Typing sweep failed")
            return 0
        if expired:
            logger.debug("Expired %d typing indicator(s)", expired)
        return expired

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.sweep_once()
