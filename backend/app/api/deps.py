# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, Query

from app.config import get_settings
from app.models.enums import UserRole
from app.schemas.auth import AuthContext


async def get_auth_context(
    x_company_id: uuid.UUID = Header(),
    x_user_id: uuid.UUID = Header(),
    x_role: str = Header(default=UserRole.USER.value),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(company_id=x_company_id, user_id=x_user_id, role=x_role.strip().upper())


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


@dataclass
class Page:
    """1-indexed page request, with the size capped by configuration."""

    page: int
    size: int


async def get_page(
    page: int = Query(default=1, ge=1),
    size: int | None = Query(default=None, ge=1),
) -> Page:
    settings = get_settings()
    size = settings.default_page_size if size is None else min(size, settings.max_page_size)
    return Page(page=page, size=size)


PageDep = Annotated[Page, Depends(get_page)]
