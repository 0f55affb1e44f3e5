# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from app.exceptions import Forbidden, InvalidTransition, MissingJustification, ValidationError
from app.models.base import now_utc
from app.models.enums import AuditAction, ReportStatus
from app.services import document_store as store
from app.services.lifecycle import persist_transition

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.expense import DetailPaidAmountInput, ExpenseReportResponse, UpdateStatusPayload

logger = logging.getLogger(__name__)


def _detail_amounts(
    aggregate: store.ReportAggregate,
    items: list[DetailPaidAmountInput],
    actual_paid_amount: int,
) -> dict[uuid.UUID, int]:
    """Validate per-detail paid amounts against the report and the header amount."""
    known = aggregate.detail_by_id()
    amounts: dict[uuid.UUID, int] = {}
    for item in items:
        if item.expense_detail_id not in known:
            raise ValidationError(f"Expense detail {item.expense_detail_id} does not belong to this report")
        if item.expense_detail_id in amounts:
            raise ValidationError(f"Expense detail {item.expense_detail_id} is listed more than once")
        amounts[item.expense_detail_id] = item.actual_paid_amount
    detail_sum = sum(amounts.values())
    if detail_sum != actual_paid_amount:
        raise ValidationError(
            f"Per-detail paid amounts add up to {detail_sum}, but the paid amount is {actual_paid_amount}"
        )
    return amounts


async def update_status(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
    payload: UpdateStatusPayload,
) -> ExpenseReportResponse:
    """Record payment of an APPROVED report.

    1. Settlement role required.
    2. Report must be APPROVED and not yet collected for tax.
    3. Paid amount defaults to the total; a different amount needs a reason.
    4. Per-detail amounts, when given, must reference this report's details
       and add up to the paid amount. Details left out are recorded as 0.
    5. Without per-detail amounts, a full payment marks every detail paid in full
       and a partial one clears amounts left over from an earlier settlement.
    6. The report stays APPROVED; payment is recorded on it.
    """
    if not auth.can_settle:
        raise Forbidden("Only accounting staff may record payments")

    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    report = aggregate.report
    if report.status != ReportStatus.APPROVED:
        raise InvalidTransition(f"Only approved reports can be settled; this report is {report.status}")
    if report.tax_collected_at is not None:
        raise InvalidTransition("The report was already collected for tax processing and can no longer be settled")

    actual = payload.actual_paid_amount if payload.actual_paid_amount is not None else report.total_amount
    reason = (payload.amount_difference_reason or "").strip() or None
    if actual != report.total_amount and reason is None:
        raise MissingJustification(
            f"Paid amount {actual} differs from the requested {report.total_amount}; a reason is required"
        )
    amounts = (
        _detail_amounts(aggregate, payload.detail_actual_paid_amounts, actual)
        if payload.detail_actual_paid_amounts
        else None
    )

    expected = report.version
    before = store.audit_snapshot(aggregate)

    if amounts is not None:
        for detail in aggregate.details:
            detail.actual_paid_amount = amounts.get(detail.id, 0)
    elif actual == report.total_amount:
        for detail in aggregate.details:
            detail.actual_paid_amount = detail.amount
    else:
        for detail in aggregate.details:
            detail.actual_paid_amount = None

    report.actual_paid_amount = actual
    report.amount_difference_reason = reason
    report.paid_at = now_utc()
    report.paid_by = auth.user_id

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.SETTLE, before=before
    )
    logger.info(
        "Report %s settled by %s: paid %d of %d", report.id, auth.user_id, actual, report.total_amount
    )
    return response
