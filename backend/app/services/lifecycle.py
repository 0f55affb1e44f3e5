# ruff: noqa: TC003
"""Report lifecycle: create, edit, submit, approve, reject, reversals and delete.

Every mutating operation follows the same sequence:

1. Lock the aggregate (``get_for_update``) and remember its version.
2. Check actor, status and tax lock; raise before touching anything.
3. Let the approval line engine apply the approver action.
4. Derive the report status from the resulting lines.
5. Save under the version check, audit, commit.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from app.exceptions import AlreadyResolved, Forbidden, InvalidTransition, ValidationError
from app.models.base import now_utc
from app.models.enums import AuditAction, LineStatus, ReportStatus
from app.models.expense import ExpenseDetail, ExpenseReport
from app.services import approval_line as engine
from app.services import document_store as store
from app.services.audit import list_entity_history, write_audit_log
from app.services.directory import get_user_directory

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.models.expense import ApprovalLine
    from app.schemas.audit import AuditLogEntryResponse
    from app.schemas.auth import AuthContext
    from app.schemas.common import PagedResponse
    from app.schemas.expense import (
        ApprovalLineInput,
        ApprovePayload,
        ExpenseDetailInput,
        ExpenseReportPayload,
        ExpenseReportResponse,
        ExpenseReportSummary,
        RejectPayload,
        SubmitApprovalLinesPayload,
    )

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def ensure_actor(auth: AuthContext, claimed_id: uuid.UUID) -> None:
    """The actor id named in a body or query must be the authenticated user."""
    if claimed_id != auth.user_id:
        raise Forbidden("You may only act on your own behalf")


def _ensure_drafter(auth: AuthContext, report: ExpenseReport, action: str) -> None:
    if report.drafter_id != auth.user_id:
        raise Forbidden(f"Only the drafter may {action} this expense report")


def _ensure_not_tax_locked(report: ExpenseReport, action: str) -> None:
    if report.tax_collected_at is not None:
        raise Forbidden(f"Cannot {action} a report that was already collected for tax processing")


def _build_details(items: list[ExpenseDetailInput]) -> list[ExpenseDetail]:
    return [
        ExpenseDetail(
            position=position,
            category=item.category,
            amount=item.amount,
            description=item.description,
            note=item.note,
            payment_method=item.payment_method.value,
            card_number_last4=store.card_fragment(item.card_number),
            payment_req_date=item.payment_req_date,
            is_tax_deductible=item.is_tax_deductible,
            non_deductible_reason=None if item.is_tax_deductible else item.non_deductible_reason,
        )
        for position, item in enumerate(items)
    ]


async def _fill_approver_snapshot(auth: AuthContext, line: ApprovalLine) -> None:
    """Copy the approver's display name and position when the client left them out."""
    if line.approver_name and line.approver_position:
        return
    user = await get_user_directory().get_user(auth.company_id, line.approver_id)
    if user is None:
        return
    line.approver_name = line.approver_name or user.name
    line.approver_position = line.approver_position or user.position


async def persist_transition(
    session: AsyncSession,
    auth: AuthContext,
    aggregate: store.ReportAggregate,
    *,
    expected_version: int,
    action: AuditAction,
    before: dict[str, Any] | None,
) -> ExpenseReportResponse:
    """Save the aggregate under its version check, write the audit entry and commit."""
    await store.save(session, aggregate, expected_version)
    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_id=aggregate.id,
        action=action,
        before_json=before,
        after_json=store.audit_snapshot(aggregate),
    )
    await session.commit()
    return store.to_response(aggregate)


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


async def create_report(
    session: AsyncSession,
    auth: AuthContext,
    payload: ExpenseReportPayload,
) -> ExpenseReportResponse:
    """Create a DRAFT report owned by the actor."""
    if auth.can_process_tax:
        raise Forbidden("Tax accountants cannot create expense reports")

    drafter = await get_user_directory().get_user(auth.company_id, auth.user_id)
    details = _build_details(payload.details)
    report = ExpenseReport(
        company_id=auth.company_id,
        drafter_id=auth.user_id,
        drafter_name=drafter.name if drafter else None,
        title=payload.title,
        report_date=payload.report_date,
        total_amount=sum(d.amount for d in details),
        is_secret=payload.is_secret,
        status=ReportStatus.DRAFT.value,
    )
    aggregate = await store.add(session, store.ReportAggregate(report=report, details=details))

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_id=report.id,
        action=AuditAction.CREATE,
        after_json=store.audit_snapshot(aggregate),
    )
    await session.commit()
    logger.info(
        "Report %s created by %s (%d details, total %d)", report.id, auth.user_id, len(details), report.total_amount
    )
    return store.to_response(aggregate)


async def update_report(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
    payload: ExpenseReportPayload,
) -> ExpenseReportResponse:
    """Replace the content of a report that is still editable.

    Editable means DRAFT, or WAIT/REJECTED while no approval line carries a
    signature. Saving clears a pending tax revision request.
    """
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    report = aggregate.report
    _ensure_drafter(auth, report, "edit")
    _ensure_not_tax_locked(report, "edit")
    if report.status == ReportStatus.APPROVED:
        raise InvalidTransition("An approved report can no longer be edited")
    if report.status != ReportStatus.DRAFT and engine.has_current_signature(aggregate.lines):
        raise InvalidTransition("A report cannot be edited once an approver has signed it")

    expected = report.version
    before = store.audit_snapshot(aggregate)

    await store.replace_details(session, aggregate, _build_details(payload.details))
    report.report_date = payload.report_date
    report.title = payload.title
    report.is_secret = payload.is_secret
    report.total_amount = sum(d.amount for d in aggregate.details)
    report.tax_revision_requested = False
    report.tax_revision_request_reason = None

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.UPDATE, before=before
    )
    logger.info("Report %s updated by %s (total %d)", report.id, auth.user_id, report.total_amount)
    return response


# ---------------------------------------------------------------------------
# Approval chain
# ---------------------------------------------------------------------------


async def submit_report(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
    payload: SubmitApprovalLinesPayload,
) -> ExpenseReportResponse:
    """DRAFT -> WAIT with a fresh approval chain numbered 1..N."""
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    report = aggregate.report
    _ensure_drafter(auth, report, "submit")
    if report.status != ReportStatus.DRAFT:
        raise InvalidTransition(f"Only draft reports can be submitted; this report is {report.status}")
    if not aggregate.details:
        raise ValidationError("A report without expense details cannot be submitted")
    if report.total_amount <= 0:
        raise ValidationError("A report with a zero total amount cannot be submitted")

    lines = engine.build_lines(report.id, payload.approval_lines)
    for line in lines:
        await _fill_approver_snapshot(auth, line)

    expected = report.version
    before = store.audit_snapshot(aggregate)

    aggregate.lines = lines
    report.status = ReportStatus.WAIT.value
    report.submitted_at = now_utc()

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.SUBMIT, before=before
    )
    logger.info("Report %s submitted by %s with %d approval lines", report.id, auth.user_id, len(lines))
    return response


def _ensure_in_review(report: ExpenseReport) -> None:
    if report.status == ReportStatus.DRAFT:
        raise InvalidTransition("The report has not been submitted for approval yet")
    if report.status != ReportStatus.WAIT:
        raise AlreadyResolved(f"The report is already {report.status}; another approver already acted")


async def approve_step(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
    payload: ApprovePayload,
) -> ExpenseReportResponse:
    """Sign the current step. The report becomes APPROVED when the last line signs."""
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    ensure_actor(auth, payload.approver_id)
    report = aggregate.report
    _ensure_in_review(report)

    expected = report.version
    before = store.audit_snapshot(aggregate)
    now = now_utc()

    aggregate.lines = engine.apply_approve(aggregate.lines, payload.approver_id, payload.signature_data, now=now)
    if engine.is_fully_approved(aggregate.lines):
        report.status = ReportStatus.APPROVED.value
        report.final_approval_date = now

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.APPROVE, before=before
    )
    logger.info("Report %s step approved by %s; report is %s", report.id, auth.user_id, report.status)
    return response


async def reject_step(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
    payload: RejectPayload,
) -> ExpenseReportResponse:
    """Reject the current step. The report becomes REJECTED wherever the step sits."""
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    ensure_actor(auth, payload.approver_id)
    report = aggregate.report
    _ensure_in_review(report)

    expected = report.version
    before = store.audit_snapshot(aggregate)

    aggregate.lines = engine.apply_reject(aggregate.lines, payload.approver_id, payload.rejection_reason)
    report.status = ReportStatus.REJECTED.value

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.REJECT, before=before
    )
    logger.info("Report %s rejected by %s", report.id, auth.user_id)
    return response


async def cancel_approval(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
) -> ExpenseReportResponse:
    """APPROVED -> WAIT by reopening the last signed line.

    Only allowed before settlement or tax collection, by that line's approver
    or an admin.
    """
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    report = aggregate.report
    if report.status != ReportStatus.APPROVED:
        raise InvalidTransition(
            f"Only approved reports can have their approval cancelled; this report is {report.status}"
        )
    if report.paid_at is not None:
        raise InvalidTransition("Cannot cancel the approval of a report that has already been paid")
    if report.tax_collected_at is not None:
        raise InvalidTransition("Cannot cancel the approval of a report collected for tax processing")
    line = engine.last_approved_line(aggregate.lines)
    if line is None:
        raise InvalidTransition("There is no approval to cancel on this report")
    if line.approver_id != auth.user_id and not auth.is_admin:
        raise Forbidden("Only the approver who signed last, or an admin, may cancel this approval")

    expected = report.version
    before = store.audit_snapshot(aggregate)

    aggregate.lines = engine.reverse_approval(aggregate.lines)
    report.status = ReportStatus.WAIT.value
    report.final_approval_date = None

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.CANCEL_APPROVAL, before=before
    )
    logger.info("Report %s approval of step %d cancelled by %s", report.id, line.step_order, auth.user_id)
    return response


async def cancel_rejection(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
) -> ExpenseReportResponse:
    """REJECTED -> WAIT by reopening the rejected line."""
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    report = aggregate.report
    if report.status != ReportStatus.REJECTED:
        raise InvalidTransition(
            f"Only rejected reports can have their rejection cancelled; this report is {report.status}"
        )
    line = engine.rejected_line(aggregate.lines)
    if line is None:
        raise InvalidTransition("There is no rejection to cancel on this report")
    if auth.user_id not in (line.approver_id, report.drafter_id) and not auth.is_admin:
        raise Forbidden("Only the rejecting approver, the drafter or an admin may cancel this rejection")

    expected = report.version
    before = store.audit_snapshot(aggregate)

    aggregate.lines = engine.reverse_rejection(aggregate.lines)
    report.status = ReportStatus.WAIT.value

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.CANCEL_REJECTION, before=before
    )
    logger.info("Report %s rejection of step %d cancelled by %s", report.id, line.step_order, auth.user_id)
    return response


async def append_approver(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
    payload: ApprovalLineInput,
) -> ExpenseReportResponse:
    """Let the first approver, once signed, add one more approver at the end of the chain.

    An APPROVED report reopens to WAIT so the new approver gets a turn.
    """
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    report = aggregate.report
    if report.status not in (ReportStatus.WAIT, ReportStatus.APPROVED):
        raise InvalidTransition(f"Approvers cannot be added to a report that is {report.status}")
    if report.paid_at is not None or report.tax_collected_at is not None:
        raise InvalidTransition("Approvers cannot be added after settlement or tax collection")
    lines = engine.ordered(aggregate.lines)
    if not lines or lines[0].approver_id != auth.user_id:
        raise Forbidden("Only the first approver may add approvers")
    if lines[0].status != LineStatus.APPROVED:
        raise InvalidTransition("The first approver must sign before adding approvers")

    new_line = engine.append_line(lines, report.id, payload)
    await _fill_approver_snapshot(auth, new_line)

    expected = report.version
    before = store.audit_snapshot(aggregate)

    aggregate.lines = [*lines, new_line]
    if report.status == ReportStatus.APPROVED:
        report.status = ReportStatus.WAIT.value
        report.final_approval_date = None

    response = await persist_transition(
        session, auth, aggregate, expected_version=expected, action=AuditAction.ADD_APPROVER, before=before
    )
    logger.info(
        "Report %s: %s appended approver %s at step %d",
        report.id,
        auth.user_id,
        new_line.approver_id,
        new_line.step_order,
    )
    return response


async def delete_report(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
    user_id: uuid.UUID,
) -> None:
    """Delete a report under the drafter/status/signature guard."""
    ensure_actor(auth, user_id)
    aggregate = await store.get_for_update(session, auth.company_id, report_id)
    report = aggregate.report
    _ensure_drafter(auth, report, "delete")
    _ensure_not_tax_locked(report, "delete")
    if report.status not in (ReportStatus.WAIT, ReportStatus.REJECTED):
        raise InvalidTransition(f"Only waiting or rejected reports can be deleted; this report is {report.status}")
    if report.status == ReportStatus.WAIT and engine.was_ever_signed(aggregate.lines):
        raise InvalidTransition("A report that an approver has signed can no longer be deleted")

    before = store.audit_snapshot(aggregate)
    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_id=report.id,
        action=AuditAction.DELETE,
        before_json=before,
    )
    await store.delete(session, aggregate)
    await session.commit()
    logger.info("Report %s deleted by %s", report_id, auth.user_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_report(session: AsyncSession, auth: AuthContext, report_id: uuid.UUID) -> ExpenseReportResponse:
    aggregate = await store.get(session, auth.company_id, report_id)
    store.ensure_readable(auth, aggregate)
    return store.to_response(aggregate)


async def list_reports(
    session: AsyncSession,
    auth: AuthContext,
    filters: store.ReportFilter,
    *,
    page: int,
    size: int,
) -> PagedResponse[ExpenseReportSummary]:
    aggregates, total = await store.list_by_filter(session, auth, filters, page=page, size=size)
    return store.to_page(aggregates, total, page=page, size=size)


async def pending_approvals(
    session: AsyncSession,
    auth: AuthContext,
    user_id: uuid.UUID,
) -> list[ExpenseReportSummary]:
    """Reports waiting on ``user_id`` as the current approver."""
    ensure_actor(auth, user_id)
    return [store.to_summary(a) for a in await store.list_pending_for(session, auth, user_id)]


async def my_approvals(
    session: AsyncSession,
    auth: AuthContext,
    user_id: uuid.UUID,
) -> list[ExpenseReportSummary]:
    """Reports on which ``user_id`` has approved or rejected a step."""
    ensure_actor(auth, user_id)
    return [store.to_summary(a) for a in await store.list_resolved_by(session, auth, user_id)]


async def report_history(
    session: AsyncSession,
    auth: AuthContext,
    report_id: uuid.UUID,
) -> list[AuditLogEntryResponse]:
    aggregate = await store.get(session, auth.company_id, report_id)
    store.ensure_readable(auth, aggregate)
    return await list_entity_history(session, auth.company_id, report_id)
