from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of "now" for message timestamps and typing expiry."""

    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()
