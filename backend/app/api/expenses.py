# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from app.api.deps import AuthDep, PageDep
from app.db import SessionDep
from app.models.enums import PaymentMethod, ReportStatus
from app.schemas.audit import AuditLogEntryResponse
from app.schemas.common import ApiResponse, PagedResponse
from app.schemas.expense import (
    ApprovalLineInput,
    ApprovePayload,
    ExpenseReportPayload,
    ExpenseReportResponse,
    ExpenseReportSummary,
    RejectPayload,
    SubmitApprovalLinesPayload,
    UpdateStatusPayload,
)
from app.services import lifecycle, settlement
from app.services.document_store import ReportFilter

expenses_router = APIRouter(prefix="/expenses", tags=["expenses"])


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@expenses_router.post(
    "", response_model=ApiResponse[ExpenseReportResponse], status_code=status.HTTP_201_CREATED
)
async def create_expense(
    payload: ExpenseReportPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    """Create a draft expense report."""
    report = await lifecycle.create_report(session, auth, payload)
    return ApiResponse(message="Expense report created", data=report)


@expenses_router.get("", response_model=ApiResponse[PagedResponse[ExpenseReportSummary]])
async def list_expenses(
    session: SessionDep,
    auth: AuthDep,
    paging: PageDep,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    min_amount: int | None = Query(default=None, alias="minAmount", ge=0),
    max_amount: int | None = Query(default=None, alias="maxAmount", ge=0),
    statuses: list[ReportStatus] | None = Query(default=None, alias="status"),
    category: str | None = Query(default=None),
    drafter_name: str | None = Query(default=None, alias="drafterName"),
    payment_method: PaymentMethod | None = Query(default=None, alias="paymentMethod"),
    card_number: str | None = Query(default=None, alias="cardNumber"),
) -> ApiResponse[PagedResponse[ExpenseReportSummary]]:
    """List visible expense reports, newest first."""
    filters = ReportFilter(
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        statuses=statuses or [],
        category=category,
        drafter_name=drafter_name,
        payment_method=payment_method,
        card_number=card_number,
    )
    page = await lifecycle.list_reports(session, auth, filters, page=paging.page, size=paging.size)
    return ApiResponse(data=page)


@expenses_router.get("/pending-approvals", response_model=ApiResponse[list[ExpenseReportSummary]])
async def list_pending_approvals(
    session: SessionDep,
    auth: AuthDep,
    user_id: uuid.UUID = Query(alias="userId"),
) -> ApiResponse[list[ExpenseReportSummary]]:
    """Reports where the user is the current pending approver."""
    return ApiResponse(data=await lifecycle.pending_approvals(session, auth, user_id))


@expenses_router.get("/my-approvals", response_model=ApiResponse[list[ExpenseReportSummary]])
async def list_my_approvals(
    session: SessionDep,
    auth: AuthDep,
    user_id: uuid.UUID = Query(alias="userId"),
) -> ApiResponse[list[ExpenseReportSummary]]:
    """Reports the user has already approved or rejected."""
    return ApiResponse(data=await lifecycle.my_approvals(session, auth, user_id))


# ---------------------------------------------------------------------------
# Single report
# ---------------------------------------------------------------------------


@expenses_router.get("/{expense_id}", response_model=ApiResponse[ExpenseReportResponse])
async def get_expense(
    expense_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    return ApiResponse(data=await lifecycle.get_report(session, auth, expense_id))


@expenses_router.put("/{expense_id}", response_model=ApiResponse[ExpenseReportResponse])
async def update_expense(
    expense_id: uuid.UUID,
    payload: ExpenseReportPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    """Replace the content of an editable report (drafter only)."""
    report = await lifecycle.update_report(session, auth, expense_id, payload)
    return ApiResponse(message="Expense report updated", data=report)


@expenses_router.delete("/{expense_id}", response_model=ApiResponse[None])
async def delete_expense(
    expense_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    user_id: uuid.UUID = Query(alias="userId"),
) -> ApiResponse[None]:
    """Delete a waiting or rejected report (drafter only)."""
    await lifecycle.delete_report(session, auth, expense_id, user_id)
    return ApiResponse(message="Expense report deleted")


@expenses_router.get("/{expense_id}/history", response_model=ApiResponse[list[AuditLogEntryResponse]])
async def get_expense_history(
    expense_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[list[AuditLogEntryResponse]]:
    """Audit trail of a report, oldest first."""
    return ApiResponse(data=await lifecycle.report_history(session, auth, expense_id))


# ---------------------------------------------------------------------------
# Approval chain
# ---------------------------------------------------------------------------


@expenses_router.post("/{expense_id}/approval-lines", response_model=ApiResponse[ExpenseReportResponse])
async def submit_approval_lines(
    expense_id: uuid.UUID,
    payload: SubmitApprovalLinesPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    """Submit a draft for approval with its ordered approvers."""
    report = await lifecycle.submit_report(session, auth, expense_id, payload)
    return ApiResponse(message="Expense report submitted", data=report)


@expenses_router.post(
    "/{expense_id}/approval-lines/additional", response_model=ApiResponse[ExpenseReportResponse]
)
async def add_approval_line(
    expense_id: uuid.UUID,
    payload: ApprovalLineInput,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    """Append an approver to the end of the chain (first approver only)."""
    report = await lifecycle.append_approver(session, auth, expense_id, payload)
    return ApiResponse(message="Approver added", data=report)


@expenses_router.post("/{expense_id}/approve", response_model=ApiResponse[ExpenseReportResponse])
async def approve_expense(
    expense_id: uuid.UUID,
    payload: ApprovePayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    report = await lifecycle.approve_step(session, auth, expense_id, payload)
    return ApiResponse(message="Approved", data=report)


@expenses_router.post("/{expense_id}/reject", response_model=ApiResponse[ExpenseReportResponse])
async def reject_expense(
    expense_id: uuid.UUID,
    payload: RejectPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    report = await lifecycle.reject_step(session, auth, expense_id, payload)
    return ApiResponse(message="Rejected", data=report)


@expenses_router.post("/{expense_id}/cancel-approval", response_model=ApiResponse[ExpenseReportResponse])
async def cancel_approval(
    expense_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    """Reopen the last signed step of an approved report."""
    report = await lifecycle.cancel_approval(session, auth, expense_id)
    return ApiResponse(message="Approval cancelled", data=report)


@expenses_router.post("/{expense_id}/cancel-rejection", response_model=ApiResponse[ExpenseReportResponse])
async def cancel_rejection(
    expense_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    """Reopen the rejected step of a rejected report."""
    report = await lifecycle.cancel_rejection(session, auth, expense_id)
    return ApiResponse(message="Rejection cancelled", data=report)


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------


@expenses_router.put("/{expense_id}/status", response_model=ApiResponse[ExpenseReportResponse])
async def update_expense_status(
    expense_id: uuid.UUID,
    payload: UpdateStatusPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    """Record payment of an approved report (accounting only)."""
    report = await settlement.update_status(session, auth, expense_id, payload)
    return ApiResponse(message="Payment recorded", data=report)
