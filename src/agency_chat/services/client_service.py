from __future__ import annotations

from agency_chat.application.dto.principal import Principal
from agency_chat.application.ports.clock import Clock, system_clock
from agency_chat.application.uow import UnitOfWork
from agency_chat.domain.entities.client import Client
from agency_chat.domain.value_objects.enums import ClientStatus

# Width of clients.name
MAX_NAME_LENGTH = 100


def display_name_for(principal: Principal) -> str:
    """Name for a lazily created Client: the profile name, else the email local part."""
    if principal.name and principal.name.strip():
        return principal.name.strip()[:MAX_NAME_LENGTH]
    local_part = principal.email.split("@", 1)[0]
    return (local_part or principal.email)[:MAX_NAME_LENGTH]



async def get_or_create_client(
    principal: Principal,
    uow: UnitOfWork,
    clock: Clock = system_clock,
) -> tuple[Client, bool]:
    """Return the Client linked to a client-role principal, creating it on first contact.

    Does not commit; the caller owns the transaction.
    """
    existing = await uow.clients.get_by_email(principal.email)
    if existing is not None:
        return existing, False

    now = clock.now()
    client = Client(
        id=None,
        name=display_name_for(principal),
        email=principal.email,
        company=None,
        phone=None,
        country=None,
        contact_person=None,
        status=ClientStatus.ACTIVE,
        created_at=now,
        updated_at=now,
    )
    return await uow.clients_w.create_if_absent(client)
