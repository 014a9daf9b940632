from __future__ import annotations

from typing import Any

import jwt

from agency_chat.application.dto.principal import Principal
from agency_chat.domain.value_objects.enums import Role


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a Principal from verified token claims: ``id`` (or ``sub``), ``email``, ``role``."""
    raw_id = payload.get("id", payload.get("sub"))
    email = payload.get("email")
    if raw_id is None or not email:
        raise jwt.InvalidTokenError("Token is missing identity claims")
    role = Role.ADMIN if payload.get("role") == Role.ADMIN else Role.USER
    return Principal(
        subject_id=int(raw_id),
        email=str(email),
        role=role,
        name=payload.get("name"),
    )
