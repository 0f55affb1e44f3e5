# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from app.config import get_settings
from app.models.enums import UserRole


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    company_id: uuid.UUID
    user_id: uuid.UUID
    role: str = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def can_settle(self) -> bool:
        return self.role in get_settings().settlement_roles

    @property
    def can_process_tax(self) -> bool:
        return self.role in get_settings().tax_roles

    @property
    def is_privileged_reader(self) -> bool:
        return self.role in get_settings().privileged_roles
