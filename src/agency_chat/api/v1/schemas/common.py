from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorBody(BaseModel):
    code: str
    message: str


class Envelope(BaseModel, Generic[T]):
    """Every REST response body: ``{success, data?, error?}``."""

    success: bool = True
    data: T | None = None
    error: ErrorBody | None = None


def ok(data: T) -> Envelope[T]:
    return Envelope(success=True, data=data)


def error_body(code: str, message: str) -> dict:
    return Envelope[None](
        success=False, error=ErrorBody(code=code, message=message),
    ).model_dump(mode="json")
