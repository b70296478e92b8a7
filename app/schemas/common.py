"""Shared schema base (camelCase wire format) and the response envelope."""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for API schemas: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope: {success, message?, data}."""

    success: bool = True
    message: str | None = None
    data: T | None = None


class ErrorDetail(BaseModel):
    """One field-level validation problem."""

    field: str
    message: str
    value: Any = None


class ErrorResponse(BaseModel):
    """Error envelope returned for every non-2xx response."""

    success: bool = Field(default=False)
    message: str
    errors: list[ErrorDetail] | None = None
    path: str | None = None


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite returns naive values) and normalize aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
