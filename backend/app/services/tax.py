# ruff: noqa: TC003
"""Tax collection over approved reports.

Collection stamps ``tax_collected_at``; from then on the drafter can no longer
edit or delete the report unless a tax revision is requested.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from app.db import execute_read
from app.exceptions import Forbidden, InvalidTransition, NotFound
from app.models.base import now_utc
from app.models.enums import AuditAction, BatchItemResult, ReportStatus
from app.models.expense import ExpenseReport
from app.schemas.tax import (
    BatchCompleteResponse,
    BatchItemResponse,
    MonthlyTaxSummary,
    TaxCollectResponse,
    TaxStatusResponse,
)
from app.services import approval_line as engine
from app.services import document_store as store
from app.services.audit import write_audit_log
from app.services.lifecycle import persist_transition

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.expense import ExpenseReportResponse, ExpenseReportSummary
    from app.schemas.tax import BatchCompletePayload, DateRangePayload, TaxRevisionPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_tax_role(auth: AuthContext) -> None:
    if not auth.can_process_tax:
        raise Forbidden("Only tax accountants may process tax collection")


def _ensure_tax_reader(auth: AuthContext) -> None:
    if not (auth.can_process_tax or auth.is_privileged_reader):
        raise Forbidden("You are not allowed to view tax processing data")


def _range_conditions(start_date: date | None, end_date: date | None) -> list[Any]:
    conditions: list[Any] = [col(ExpenseReport.status) == ReportStatus.APPROVED.value]
    if start_date is not None:
        conditions.append(col(ExpenseReport.report_date) >= start_date)
    if end_date is not None:
        conditions.append(col(ExpenseReport.report_date) <= end_date)
    return conditions


async def _mark_collected(
    session: AsyncSession,
    auth: AuthContext,
    aggregate: store.ReportAggregate,
    now: datetime,
) -> None:
    """Stamp one report as collected and audit it, without committing."""
    report = aggregate.report
    expected = report.version
    before = store.audit_snapshot(aggregate)
    report.tax_collected_at = now
    report.tax_collected_by = auth.user_id
    await store.save(session, aggregate, expected)
    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_id=report.id,
        action=AuditAction.TAX_COLLECT,
        before_json=before,
        after_json=store.audit_snapshot(aggregate),
    )


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


async def collect(
    session: AsyncSession,
    auth: AuthContext,
    payload: DateRangePayload,
) -> TaxCollectResponse:
    """Collect every uncollected APPROVED report dated within the range.

    A range with nothing to collect is not an error.
    """
    _ensure_tax_role(auth)
    result = await session.execute(
        select(col(ExpenseReport.id))
        .where(
            col(ExpenseReport.company_id) == auth.company_id,
            col(ExpenseReport.tax_collected_at).is_(None),
            *_range_conditions(payload.start_date, payload.end_date),
        )
        .order_by(col(ExpenseReport.report_date))
    )
    now = now_utc()
    collected: list[uuid.UUID] = []
    for report_id in result.scalars().all():
        aggregate = await store.get_for_update(session, auth.company_id, report_id)
        # Re-checked under the lock; a concurrent collector may have won.
        if aggregate.report.status != ReportStatus.APPROVED or aggregate.report.tax_collected_at is not None:
            continue
        await _mark_collected(session, auth, aggregate, now)
        collected.append(report_id)
    await session.commit()

    logger.info(
        "Tax collection %s..%s by %s: %d reports", payload.start_date, payload.end_date, auth.user_id, len(collected)
    )
    return TaxCollectResponse(collected_count=len(collected), expense_report_ids=collected)


async def batch_complete(
    session: AsyncSession,
    auth: AuthContext,
    payload: BatchCompletePayload,
) -> BatchCompleteResponse:
    """Collect a caller-chosen set of reports, each in its own transaction.

    Already collected reports are reported as such and are not counted again.
    """
    _ensure_tax_role(auth)
    now = now_utc()
    results: list[BatchItemResponse] = []
    for report_id in dict.fromkeys(payload.expense_report_ids):
        try:
            aggregate = await store.get_for_update(session, auth.company_id, report_id)
        except NotFound:
            logger.warning("Batch tax completion: report %s not found", report_id)
            results.append(BatchItemResponse(expense_report_id=report_id, result=BatchItemResult.NOT_FOUND))
            continue

        report = aggregate.report
        if report.status != ReportStatus.APPROVED:
            logger.warning("Batch tax completion: report %s is %s, not APPROVED", report_id, report.status)
            outcome = BatchItemResult.NOT_APPROVED
        elif report.tax_collected_at is not None:
            outcome = BatchItemResult.ALREADY_COLLECTED
        else:
            await _mark_collected(session, auth, aggregate, now)
            outcome = BatchItemResult.COLLECTED
        await session.commit()
        results.append(BatchItemResponse(expense_report_id=report_id, result=outcome))

    collected_count = sum(1 for r in results if r.result == BatchItemResult.COLLECTED)
    logger.info(
        "Batch tax completion by %s: %d of %d reports newly collected",
        auth.user_id,
        collected_count,
        len(results),
    )
    return BatchCompleteResponse(collected_count=collected_count, results=results)


async def request_revision(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
    payload: TaxRevisionPayload,
) -> ExpenseReportResponse:
    """Send a collected report back to its drafter.

    Every approval line returns to WAIT and settlement and collection are
    cleared, so the report goes back through approval, payment and collection.
    The revision flag and reason stay on the report until the drafter edits it.
    """
    _ensure_tax_role(auth)
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    report = aggregate.report
    if report.tax_collected_at is None:
        raise InvalidTransition("Only reports collected for tax processing can be sent back for revision")
    if report.status not in (ReportStatus.APPROVED, ReportStatus.WAIT):
        raise InvalidTransition(f"Only approved or waiting reports can be sent back; this report is {report.status}")

    expected = report.version
    before = store.audit_snapshot(aggregate)

    aggregate.lines = engine.reset_all(aggregate.lines)
    for detail in aggregate.details:
        detail.actual_paid_amount = None
    report.actual_paid_amount = None
    report.amount_difference_reason = None
    report.paid_at = None
    report.paid_by = None
    report.final_approval_date = None
    report.status = ReportStatus.WAIT.value
    report.tax_collected_at = None
    report.tax_collected_by = None
    report.tax_revision_requested = True
    report.tax_revision_request_reason = payload.reason

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.TAX_REVISION_REQUEST, before=before
    )
    logger.info("Report %s sent back for tax revision by %s", report.id, auth.user_id)
    return response


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


async def uncollected_reports(
    session: AsyncSession,
    auth: AuthContext,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[ExpenseReportSummary]:
    """APPROVED reports still waiting for tax collection."""
    _ensure_tax_reader(auth)
    aggregates = await store.list_where(
        session,
        auth.company_id,
        col(ExpenseReport.tax_collected_at).is_(None),
        *_range_conditions(start_date, end_date),
    )
    return [store.to_summary(a) for a in aggregates]


# The pending queue of the tax desk is exactly the uncollected set.
pending_reports = uncollected_reports


async def collected_reports(
    session: AsyncSession,
    auth: AuthContext,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[ExpenseReportSummary]:
    """APPROVED reports already collected."""
    _ensure_tax_reader(auth)
    aggregates = await store.list_where(
        session,
        auth.company_id,
        col(ExpenseReport.tax_collected_at).is_not(None),
        *_range_conditions(start_date, end_date),
    )
    return [store.to_summary(a) for a in aggregates]


async def revision_requests(session: AsyncSession, auth: AuthContext) -> list[ExpenseReportSummary]:
    """The actor's own reports that the tax desk sent back for revision."""
    aggregates = await store.list_where(
        session,
        auth.company_id,
        col(ExpenseReport.drafter_id) == auth.user_id,
        col(ExpenseReport.tax_revision_requested).is_(True),
    )
    return [store.to_summary(a) for a in aggregates]


async def _approved_in_range(
    session: AsyncSession,
    auth: AuthContext,
    start_date: date | None,
    end_date: date | None,
) -> list[ExpenseReport]:
    result = await execute_read(
        session,
        select(ExpenseReport)
        .where(col(ExpenseReport.company_id) == auth.company_id, *_range_conditions(start_date, end_date))
        .order_by(col(ExpenseReport.report_date)),
    )
    return list(result.scalars().all())


async def tax_status(
    session: AsyncSession,
    auth: AuthContext,
    start_date: date | None = None,
    end_date: date | None = None,
) -> TaxStatusResponse:
    """Collection progress over APPROVED reports in the range."""
    _ensure_tax_reader(auth)
    reports = await _approved_in_range(session, auth, start_date, end_date)
    completed = [r for r in reports if r.tax_collected_at is not None]
    pending = [r for r in reports if r.tax_collected_at is None]
    total_count = len(reports)
    return TaxStatusResponse(
        total_count=total_count,
        pending_count=len(pending),
        completed_count=len(completed),
        completion_rate=round(len(completed) / total_count * 100, 2) if total_count else 0.0,
        total_amount=sum(r.total_amount for r in reports),
        pending_amount=sum(r.total_amount for r in pending),
        completed_amount=sum(r.total_amount for r in completed),
    )


async def monthly_summary(
    session: AsyncSession,
    auth: AuthContext,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[MonthlyTaxSummary]:
    """Per month of report date: APPROVED totals and how much of them is collected."""
    _ensure_tax_reader(auth)
    months: dict[str, dict[str, int]] = defaultdict(
        lambda: {"total_count": 0, "completed_count": 0, "total_amount": 0, "completed_amount": 0}
    )
    for report in await _approved_in_range(session, auth, start_date, end_date):
        bucket = months[report.report_date.strftime("%Y-%m")]
        bucket["total_count"] += 1
        bucket["total_amount"] += report.total_amount
        if report.tax_collected_at is not None:
            bucket["completed_count"] += 1
            bucket["completed_amount"] += report.total_amount
    return [MonthlyTaxSummary(year_month=month, **totals) for month, totals in sorted(months.items())]
