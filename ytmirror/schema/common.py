"""Shared pydantic building blocks for API payloads."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Page(ApiModel, Generic[T]):
    """List envelope used by every collection endpoint."""

    items: list[T]
    next_page_token: str | None = None


def paginate(items: list, *, page_token: str | None, limit: int) -> tuple[list, str | None]:
    """Offset pagination with an opaque numeric token."""

    try:
        offset = max(int(page_token), 0) if page_token else 0
    except ValueError:
        offset = 0
    page = items[offset : offset + limit]
    next_offset = offset + limit
    return page, (str(next_offset) if next_offset < len(items) else None)
