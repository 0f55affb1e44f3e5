# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class UserInfo(BaseModel):
    """User metadata from the identity/membership service."""

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    position: str | None = None  # e.g. "Team Lead"
    role: str = "USER"


@runtime_checkable
class UserDirectory(Protocol):
    """Interface for the identity/membership service."""

    async def get_user(self, company_id: uuid.UUID, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        ...


class InMemoryUserDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[tuple[uuid.UUID, uuid.UUID], UserInfo] = {}

    def seed(self, user: UserInfo) -> None:
        """Seed a user for testing."""
        self._users[(user.company_id, user.id)] = user

    async def get_user(self, company_id: uuid.UUID, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        return self._users.get((company_id, user_id))


_user_directory: UserDirectory = InMemoryUserDirectory()


def get_user_directory() -> UserDirectory:
    """FastAPI dependency for the user directory."""
    return _user_directory


def set_user_directory(directory: UserDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _user_directory
    _user_directory = directory
