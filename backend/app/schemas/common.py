from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema exchanged over the wire with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[T]):
    """Envelope returned by every endpoint."""

    success: bool = True
    message: str | None = None
    data: T | None = None


class PagedResponse(CamelModel, Generic[T]):
    """One page of a list query. Pages are 1-indexed."""

    content: list[T]
    page: int
    size: int
    total_pages: int
    total_elements: int
