from sqlmodel import SQLModel

from app.models.audit import AuditLog
from app.models.base import TimestampMixin, UUIDBase, VersionedMixin
from app.models.enums import (
    AuditAction,
    AuditEntityType,
    BatchItemResult,
    LineStatus,
    PaymentMethod,
    ReportStatus,
    UserRole,
)
from app.models.expense import ApprovalLine, ExpenseDetail, ExpenseReport

__all__ = [
    "ApprovalLine",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "BatchItemResult",
    "ExpenseDetail",
    "ExpenseReport",
    "LineStatus",
    "PaymentMethod",
    "ReportStatus",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UserRole",
    "VersionedMixin",
]
