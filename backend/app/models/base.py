"""Shared columns for the workflow tables."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    """Timezone-aware now, used for every workflow timestamp."""
    return datetime.now(UTC)


class UUIDBase(SQLModel):
    """Random UUID primary key, assigned client-side so children can reference it before flush."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, sa_type=sa.Uuid)


class TimestampMixin(SQLModel):
    """Creation time, filled by the application and by the database as a fallback."""

    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class VersionedMixin(SQLModel):
    """Optimistic lock counter plus last-modified time.

    ``version`` only moves through the compare-and-set in
    ``document_store.save``; ``updated_at`` is stamped there as well.
    """

    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
    updated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
