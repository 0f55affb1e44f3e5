from __future__ import annotations

import enum


class ReportStatus(enum.StrEnum):
    """State machine for expense reports.

    Payment completion is recorded as settlement fields on an APPROVED report,
    not as a separate status.
    """

    DRAFT = "DRAFT"
    WAIT = "WAIT"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LineStatus(enum.StrEnum):
    """Status of a single approval line."""

    WAIT = "WAIT"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PaymentMethod(enum.StrEnum):
    """How an expense detail was paid."""

    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CARD = "CARD"
    COMPANY_CARD = "COMPANY_CARD"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    OTHER = "OTHER"


CARD_PAYMENT_METHODS = frozenset(
    {
        PaymentMethod.CARD,
        PaymentMethod.COMPANY_CARD,
        PaymentMethod.CREDIT_CARD,
        PaymentMethod.DEBIT_CARD,
    }
)


class UserRole(enum.StrEnum):
    """Roles issued by the identity service."""

    USER = "USER"
    ADMIN = "ADMIN"
    CEO = "CEO"
    ACCOUNTANT = "ACCOUNTANT"
    TAX_ACCOUNTANT = "TAX_ACCOUNTANT"


class SettlementStatus(enum.StrEnum):
    """Target status accepted by the settlement endpoint."""

    PAID = "PAID"


class BatchItemResult(enum.StrEnum):
    """Per-report outcome of a batch tax completion."""

    COLLECTED = "COLLECTED"
    ALREADY_COLLECTED = "ALREADY_COLLECTED"
    NOT_FOUND = "NOT_FOUND"
    NOT_APPROVED = "NOT_APPROVED"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    EXPENSE_REPORT = "EXPENSE_REPORT"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL_APPROVAL = "CANCEL_APPROVAL"
    CANCEL_REJECTION = "CANCEL_REJECTION"
    ADD_APPROVER = "ADD_APPROVER"
    SETTLE = "SETTLE"
    TAX_COLLECT = "TAX_COLLECT"
    TAX_REVISION_REQUEST = "TAX_REVISION_REQUEST"
