from __future__ import annotations

from agency_chat.domain.entities.client import Client
from agency_chat.infrastructure.db.models.client import ClientModel


def model_to_entity(model: ClientModel) -> Client:
    return Client(
        id=model.id,
        name=model.name,
        email=model.email,
        company=model.company,
        phone=model.phone,
        country=model.country,
        contact_person=model.contact_person,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_values(entity: Client) -> dict:
    """Column values for an INSERT; the id is left to the sequence."""
    return {
        "name": entity.name,
        "email": entity.email,
        "company": entity.company,
        "phone": entity.phone,
        "country": entity.country,
        "contact_person": entity.contact_person,
        "status": entity.status,
        "created_at": entity.created_at,
        "updated_at": entity.updated_at,
    }
