# ruff: noqa: TC003
"""Persistence of expense report aggregates (header, details, approval lines).

No business rule is evaluated here beyond the optimistic version check in
``save``; callers decide whether an operation is allowed.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete as sa_delete
from sqlalchemy import and_, exists, func, or_, select, update
from sqlmodel import col

from app.db import execute_read
from app.exceptions import AlreadyResolved, Forbidden, NotFound
from app.models.base import now_utc
from app.models.enums import LineStatus, ReportStatus
from app.models.expense import ApprovalLine, ExpenseDetail, ExpenseReport
from app.schemas.common import PagedResponse
from app.schemas.expense import (
    ApprovalLineResponse,
    ExpenseDetailResponse,
    ExpenseReportResponse,
    ExpenseReportSummary,
)
from app.services.approval_line import current_pending_line, ordered
from app.services.audit import model_to_audit_dict

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.models.enums import PaymentMethod
    from app.schemas.auth import AuthContext

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass
class ReportAggregate:
    """A report header together with its details and approval lines."""

    report: ExpenseReport
    details: list[ExpenseDetail] = field(default_factory=list)
    lines: list[ApprovalLine] = field(default_factory=list)

    @property
    def id(self) -> uuid.UUID:
        return self.report.id

    def detail_by_id(self) -> dict[uuid.UUID, ExpenseDetail]:
        return {d.id: d for d in self.details}


@dataclass
class ReportFilter:
    """Criteria accepted by ``list_by_filter``. Unset fields do not filter."""

    start_date: date | None = None
    end_date: date | None = None
    min_amount: int | None = None
    max_amount: int | None = None
    statuses: list[ReportStatus] = field(default_factory=list)
    category: str | None = None
    drafter_name: str | None = None
    payment_method: PaymentMethod | None = None
    card_number: str | None = None


# ---------------------------------------------------------------------------
# Card numbers
# ---------------------------------------------------------------------------


def card_fragment(raw: str | None) -> str | None:
    """Reduce a card number to the last four digits kept on file."""
    if raw is None:
        return None
    digits = _NON_DIGITS.sub("", raw)
    return digits[-4:] or None


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


async def _load_children(
    session: AsyncSession,
    reports: Sequence[ExpenseReport],
    *,
    consistent: bool = False,
) -> list[ReportAggregate]:
    """Attach details and approval lines to each report in two queries."""
    if not reports:
        return []
    ids = [r.id for r in reports]
    detail_stmt = (
        select(ExpenseDetail)
        .where(col(ExpenseDetail.report_id).in_(ids))
        .order_by(col(ExpenseDetail.position))
    )
    line_stmt = (
        select(ApprovalLine).where(col(ApprovalLine.report_id).in_(ids)).order_by(col(ApprovalLine.step_order))
    )
    if consistent:
        detail_stmt = detail_stmt.execution_options(populate_existing=True)
        line_stmt = line_stmt.with_for_update().execution_options(populate_existing=True)
        details = (await session.execute(detail_stmt)).scalars().all()
        lines = (await session.execute(line_stmt)).scalars().all()
    else:
        details = (await execute_read(session, detail_stmt)).scalars().all()
        lines = (await execute_read(session, line_stmt)).scalars().all()

    aggregates = {r.id: ReportAggregate(report=r) for r in reports}
    for detail in details:
        aggregates[detail.report_id].details.append(detail)
    for line in lines:
        aggregates[line.report_id].lines.append(line)
    return [aggregates[r.id] for r in reports]


async def get(session: AsyncSession, company_id: uuid.UUID, report_id: uuid.UUID) -> ReportAggregate:
    """Return the aggregate for display. Raises NotFound."""
    result = await execute_read(
        session,
        select(ExpenseReport).where(
            col(ExpenseReport.id) == report_id,
            col(ExpenseReport.company_id) == company_id,
        ),
    )
    report = result.scalars().first()
    if report is None:
        raise NotFound
    return (await _load_children(session, [report]))[0]


async def get_for_update(session: AsyncSession, company_id: uuid.UUID, report_id: uuid.UUID) -> ReportAggregate:
    """Lock the report row and return a fresh view of the aggregate. Raises NotFound.

    All authorization-relevant decisions are made on this view; it is never
    served through the read retry path.
    """
    result = await session.execute(
        select(ExpenseReport)
        .where(
            col(ExpenseReport.id) == report_id,
            col(ExpenseReport.company_id) == company_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    report = result.scalars().first()
    if report is None:
        raise NotFound
    return (await _load_children(session, [report], consistent=True))[0]


async def list_where(session: AsyncSession, company_id: uuid.UUID, *conditions: Any) -> list[ReportAggregate]:
    """Return every aggregate of a company matching ``conditions``, newest report date first."""
    result = await execute_read(
        session,
        select(ExpenseReport)
        .where(col(ExpenseReport.company_id) == company_id, *conditions)
        .order_by(col(ExpenseReport.report_date).desc(), col(ExpenseReport.created_at).desc()),
    )
    return await _load_children(session, result.scalars().all())


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


async def add(session: AsyncSession, aggregate: ReportAggregate) -> ReportAggregate:
    """Stage a new aggregate in the session and flush it."""
    session.add(aggregate.report)
    await session.flush()
    for detail in aggregate.details:
        detail.report_id = aggregate.report.id
        session.add(detail)
    for line in aggregate.lines:
        line.report_id = aggregate.report.id
        session.add(line)
    await session.flush()
    return aggregate


async def save(session: AsyncSession, aggregate: ReportAggregate, expected_version: int) -> ReportAggregate:
    """Persist every change of the aggregate under a compare-and-set on ``version``.

    Raises AlreadyResolved when another writer committed first; the caller's
    transaction is then left for the request scope to roll back.
    """
    report = aggregate.report
    for detail in aggregate.details:
        session.add(detail)
    for line in aggregate.lines:
        session.add(line)

    result = await session.execute(
        update(ExpenseReport)
        .where(
            col(ExpenseReport.id) == report.id,
            col(ExpenseReport.version) == expected_version,
        )
        .values(version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:  # ty: ignore[unresolved-attribute]
        logger.warning("Version conflict on report %s (expected version %d)", report.id, expected_version)
        raise AlreadyResolved("The report was changed by someone else; reload it and try again")

    report.version = expected_version + 1
    report.updated_at = now_utc()
    await session.flush()
    aggregate.lines = ordered(aggregate.lines)
    return aggregate


async def replace_details(
    session: AsyncSession,
    aggregate: ReportAggregate,
    details: list[ExpenseDetail],
) -> None:
    """Swap the aggregate's details for a new set."""
    for old in aggregate.details:
        await session.delete(old)
    await session.flush()
    for detail in details:
        detail.report_id = aggregate.report.id
        session.add(detail)
    aggregate.details = details


async def delete(session: AsyncSession, aggregate: ReportAggregate) -> None:
    """Remove the aggregate and all of its children."""
    report_id = aggregate.report.id
    await session.execute(sa_delete(ApprovalLine).where(col(ApprovalLine.report_id) == report_id))
    await session.execute(sa_delete(ExpenseDetail).where(col(ExpenseDetail.report_id) == report_id))
    await session.delete(aggregate.report)
    await session.flush()


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


def can_read(auth: AuthContext, aggregate: ReportAggregate) -> bool:
    """Whether the actor may see this report at all."""
    report = aggregate.report
    if report.drafter_id == auth.user_id:
        return True
    if report.status == ReportStatus.DRAFT:
        return False
    if not report.is_secret or auth.is_privileged_reader:
        return True
    return any(line.approver_id == auth.user_id for line in aggregate.lines)


def ensure_readable(auth: AuthContext, aggregate: ReportAggregate) -> None:
    if not can_read(auth, aggregate):
        raise Forbidden("You are not allowed to view this expense report")


def _visibility_clause(auth: AuthContext) -> Any:
    own = col(ExpenseReport.drafter_id) == auth.user_id
    not_draft = col(ExpenseReport.status) != ReportStatus.DRAFT.value
    if auth.is_privileged_reader:
        return or_(own, not_draft)
    is_approver = exists().where(
        col(ApprovalLine.report_id) == col(ExpenseReport.id),
        col(ApprovalLine.approver_id) == auth.user_id,
    )
    return or_(own, and_(not_draft, or_(col(ExpenseReport.is_secret).is_(False), is_approver)))


def _filter_conditions(filters: ReportFilter) -> list[Any]:
    conditions: list[Any] = []
    if filters.start_date is not None:
        conditions.append(col(ExpenseReport.report_date) >= filters.start_date)
    if filters.end_date is not None:
        conditions.append(col(ExpenseReport.report_date) <= filters.end_date)
    if filters.min_amount is not None:
        conditions.append(col(ExpenseReport.total_amount) >= filters.min_amount)
    if filters.max_amount is not None:
        conditions.append(col(ExpenseReport.total_amount) <= filters.max_amount)
    if filters.statuses:
        conditions.append(col(ExpenseReport.status).in_([s.value for s in filters.statuses]))
    if filters.drafter_name:
        conditions.append(col(ExpenseReport.drafter_name).ilike(f"%{filters.drafter_name}%"))

    detail_conditions: list[Any] = []
    if filters.category:
        detail_conditions.append(col(ExpenseDetail.category) == filters.category)
    if filters.payment_method is not None:
        detail_conditions.append(col(ExpenseDetail.payment_method) == filters.payment_method.value)
    fragment = card_fragment(filters.card_number)
    if fragment:
        detail_conditions.append(col(ExpenseDetail.card_number_last4).contains(fragment))
    if detail_conditions:
        conditions.append(
            exists().where(col(ExpenseDetail.report_id) == col(ExpenseReport.id), *detail_conditions)
        )
    return conditions


async def list_by_filter(
    session: AsyncSession,
    auth: AuthContext,
    filters: ReportFilter,
    *,
    page: int,
    size: int,
) -> tuple[list[ReportAggregate], int]:
    """Return one 1-indexed page of visible reports and the total match count."""
    conditions = [
        col(ExpenseReport.company_id) == auth.company_id,
        _visibility_clause(auth),
        *_filter_conditions(filters),
    ]
    total = (
        await execute_read(session, select(func.count()).select_from(ExpenseReport).where(*conditions))
    ).scalar_one()
    result = await execute_read(
        session,
        select(ExpenseReport)
        .where(*conditions)
        .order_by(col(ExpenseReport.report_date).desc(), col(ExpenseReport.created_at).desc())
        .offset((page - 1) * size)
        .limit(size),
    )
    return await _load_children(session, result.scalars().all()), total


async def list_pending_for(session: AsyncSession, auth: AuthContext, user_id: uuid.UUID) -> list[ReportAggregate]:
    """Reports in WAIT whose current pending line belongs to ``user_id``."""
    candidates = await list_where(
        session,
        auth.company_id,
        col(ExpenseReport.status) == ReportStatus.WAIT.value,
        exists().where(
            col(ApprovalLine.report_id) == col(ExpenseReport.id),
            col(ApprovalLine.approver_id) == user_id,
            col(ApprovalLine.status) == LineStatus.WAIT.value,
        ),
    )
    pending = []
    for aggregate in candidates:
        line = current_pending_line(aggregate.lines)
        if line is not None and line.approver_id == user_id:
            pending.append(aggregate)
    return pending


async def list_resolved_by(session: AsyncSession, auth: AuthContext, user_id: uuid.UUID) -> list[ReportAggregate]:
    """Reports where ``user_id`` approved or rejected a line."""
    return await list_where(
        session,
        auth.company_id,
        exists().where(
            col(ApprovalLine.report_id) == col(ExpenseReport.id),
            col(ApprovalLine.approver_id) == user_id,
            col(ApprovalLine.status).in_([LineStatus.APPROVED.value, LineStatus.REJECTED.value]),
        ),
    )


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------


def summary_description(details: Sequence[ExpenseDetail]) -> str:
    """First described detail, with a count of the other described ones."""
    described = [d.description for d in sorted(details, key=lambda d: d.position) if d.description]
    if not described:
        return ""
    if len(described) == 1:
        return described[0]
    return f"{described[0]} and {len(described) - 1} more"


def _summary_fields(aggregate: ReportAggregate) -> dict[str, Any]:
    report = aggregate.report
    pending = current_pending_line(aggregate.lines) if report.status == ReportStatus.WAIT else None
    return {
        "expense_report_id": report.id,
        "company_id": report.company_id,
        "drafter_id": report.drafter_id,
        "drafter_name": report.drafter_name,
        "title": report.title,
        "report_date": report.report_date,
        "total_amount": report.total_amount,
        "is_secret": report.is_secret,
        "status": ReportStatus(report.status),
        "submitted_at": report.submitted_at,
        "final_approval_date": report.final_approval_date,
        "actual_paid_amount": report.actual_paid_amount,
        "amount_difference_reason": report.amount_difference_reason,
        "is_paid": report.paid_at is not None,
        "paid_at": report.paid_at,
        "paid_by": report.paid_by,
        "tax_collected_at": report.tax_collected_at,
        "tax_collected_by": report.tax_collected_by,
        "tax_revision_requested": report.tax_revision_requested,
        "tax_revision_request_reason": report.tax_revision_request_reason,
        "summary_description": summary_description(aggregate.details),
        "current_approver_id": pending.approver_id if pending else None,
        "created_at": report.created_at,
        "updated_at": report.updated_at,
    }


def to_summary(aggregate: ReportAggregate) -> ExpenseReportSummary:
    return ExpenseReportSummary(**_summary_fields(aggregate))


def to_response(aggregate: ReportAggregate) -> ExpenseReportResponse:
    """Map an aggregate to its full response schema."""
    return ExpenseReportResponse(
        **_summary_fields(aggregate),
        details=[
            ExpenseDetailResponse(
                expense_detail_id=d.id,
                expense_report_id=d.report_id,
                category=d.category,
                amount=d.amount,
                description=d.description,
                note=d.note,
                payment_method=d.payment_method,
                card_number=d.card_number_last4,
                payment_req_date=d.payment_req_date,
                is_tax_deductible=d.is_tax_deductible,
                non_deductible_reason=d.non_deductible_reason,
                actual_paid_amount=d.actual_paid_amount,
            )
            for d in sorted(aggregate.details, key=lambda d: d.position)
        ],
        approval_lines=[
            ApprovalLineResponse(
                approval_line_id=line.id,
                expense_report_id=line.report_id,
                approver_id=line.approver_id,
                approver_name=line.approver_name,
                approver_position=line.approver_position,
                step_order=line.step_order,
                status=LineStatus(line.status),
                signature_data=line.signature_data,
                rejection_reason=line.rejection_reason,
                approval_date=line.approval_date,
            )
            for line in ordered(aggregate.lines)
        ],
    )


def to_page(
    aggregates: list[ReportAggregate],
    total: int,
    *,
    page: int,
    size: int,
) -> PagedResponse[ExpenseReportSummary]:
    return PagedResponse[ExpenseReportSummary](
        content=[to_summary(a) for a in aggregates],
        page=page,
        size=size,
        total_pages=math.ceil(total / size) if size else 0,
        total_elements=total,
    )


def audit_snapshot(aggregate: ReportAggregate) -> dict[str, Any]:
    """JSON-safe picture of the whole aggregate for the audit log."""
    data = model_to_audit_dict(aggregate.report)
    data["details"] = [model_to_audit_dict(d) for d in aggregate.details]
    data["approval_lines"] = [model_to_audit_dict(line) for line in ordered(aggregate.lines)]
    return data
