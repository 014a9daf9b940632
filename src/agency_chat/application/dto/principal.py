from __future__ import annotations

from dataclasses import dataclass

from agency_chat.domain.value_objects.enums import Role, SenderType


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    subject_id: int
    email: str
    role: Role
    name: str | None = None

    @property
    def is_agency(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def sender_type(self) -> SenderType:
        return SenderType.AGENCY if self.is_agency else SenderType.CLIENT

    @property
    def counterpart_type(self) -> SenderType:
        return SenderType.CLIENT if self.is_agency else SenderType.AGENCY
