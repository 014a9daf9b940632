"""FastAPI dependency injection helpers and process-wide live-chat singletons."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from agency_chat.application.dto.principal import Principal
from agency_chat.application.ports.auth import TokenVerifier
from agency_chat.config import settings
from agency_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from agency_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from agency_chat.infrastructure.db.session import AsyncSessionLocal
from agency_chat.infrastructure.db.uow import SqlAlchemyUoW, open_uow
from agency_chat.infrastructure.ws.gateway import ChatGateway
from agency_chat.infrastructure.ws.manager import ConnectionManager
from agency_chat.infrastructure.ws.presence import PresenceTracker
from agency_chat.infrastructure.ws.typing_tracker import TypingTracker

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        try:
            yield uow
        finally:
            await session.close()


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
        )
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


gateway = ChatGateway(
    ConnectionManager(),
    PresenceTracker(),
    TypingTracker(),
    open_uow,
    default_agency_id=settings.CHAT_DEFAULT_AGENCY_ID,
    max_message_length=settings.CHAT_MAX_MESSAGE_LENGTH,
    typing_timeout_seconds=settings.TYPING_TIMEOUT_SECONDS,
)


def get_gateway() -> ChatGateway:
    return gateway


GatewayDep = Annotated[ChatGateway, Depends(get_gateway)]
