from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Role claim issued by the identity provider."""

    ADMIN = "admin"
    USER = "user"


class SenderType(StrEnum):
    CLIENT = "client"
    AGENCY = "agency"


class ClientStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
