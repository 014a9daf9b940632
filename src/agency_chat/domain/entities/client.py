from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Client:
    id: int | None
    name: str
    email: str
    company: str | None
    phone: str | None
    country: str | None
    contact_person: str | None
    status: str
    created_at: datetime
    updated_at: datetime
