from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from app.db import execute_read
from app.models.audit import AuditLog
from app.models.enums import AuditEntityType
from app.schemas.audit import AuditLogEntryResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from app.models.enums import AuditAction

# Signature images are large and carry no audit value beyond their presence.
_REDACTED_FIELDS = frozenset({"signature_data"})


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit logging."""
    data: dict[str, Any] = {}
    for key, value in model.model_dump().items():
        if key in _REDACTED_FIELDS:
            data[key] = value is not None
        elif isinstance(value, uuid.UUID):
            data[key] = str(value)
        elif isinstance(value, (datetime, date)):
            data[key] = value.isoformat()
        else:
            data[key] = value
    return data


async def write_audit_log(
    session: AsyncSession,
    *,
    company_id: uuid.UUID,
    actor_id: uuid.UUID,
    entity_id: uuid.UUID,
    action: AuditAction,
    entity_type: AuditEntityType = AuditEntityType.EXPENSE_REPORT,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Write an immutable audit log entry within the caller's transaction."""
    entry = AuditLog(
        company_id=company_id,
        actor_id=actor_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        before_json=before_json,
        after_json=after_json,
    )
    session.add(entry)
    return entry


async def list_entity_history(
    session: AsyncSession,
    company_id: uuid.UUID,
    entity_id: uuid.UUID,
) -> list[AuditLogEntryResponse]:
    """Return audit entries of one entity, oldest first."""
    result = await execute_read(
        session,
        select(AuditLog)
        .where(
            col(AuditLog.company_id) == company_id,
            col(AuditLog.entity_id) == entity_id,
        )
        .order_by(col(AuditLog.created_at).asc()),
    )
    return [
        AuditLogEntryResponse(
            id=e.id,
            actor_id=e.actor_id,
            entity_type=e.entity_type,
            entity_id=e.entity_id,
            action=e.action,
            before_json=e.before_json,
            after_json=e.after_json,
            created_at=e.created_at,
        )
        for e in result.scalars().all()
    ]
