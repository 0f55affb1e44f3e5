# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import Field, model_validator

from app.models.enums import LineStatus, PaymentMethod, ReportStatus, SettlementStatus
from app.schemas.common import CamelModel

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class ExpenseDetailInput(CamelModel):
    """One line item in a create/update payload."""

    category: str = Field(min_length=1, max_length=50)
    amount: int = Field(ge=0)
    description: str | None = Field(default=None, max_length=500)
    note: str | None = Field(default=None, max_length=1000)
    payment_method: PaymentMethod
    card_number: str | None = Field(default=None, max_length=32)
    payment_req_date: date | None = None
    is_tax_deductible: bool = True
    non_deductible_reason: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def _require_non_deductible_reason(self) -> Self:
        if not self.is_tax_deductible and not (self.non_deductible_reason or "").strip():
            msg = "nonDeductibleReason is required when isTaxDeductible is false"
            raise ValueError(msg)
        return self


class ExpenseReportPayload(CamelModel):
    """Request body for creating or replacing a report's content."""

    report_date: date
    title: str | None = Field(default=None, max_length=255)
    is_secret: bool = False
    details: list[ExpenseDetailInput] = Field(min_length=1)


class ApprovalLineInput(CamelModel):
    """One approver in a submitted approval chain."""

    approver_id: uuid.UUID
    approver_position: str | None = Field(default=None, max_length=255)
    approver_name: str | None = Field(default=None, max_length=255)
    status: LineStatus | None = None


class SubmitApprovalLinesPayload(CamelModel):
    """Request body for submitting a draft with its approval chain."""

    approval_lines: list[ApprovalLineInput]


class ApprovePayload(CamelModel):
    """Request body for signing the current approval step."""

    approver_id: uuid.UUID
    signature_data: str | None = Field(default=None, max_length=5_000_000)


class RejectPayload(CamelModel):
    """Request body for rejecting the current approval step."""

    approver_id: uuid.UUID
    rejection_reason: str = Field(min_length=1, max_length=500)


class DetailPaidAmountInput(CamelModel):
    """Actual paid amount for a single expense detail."""

    expense_detail_id: uuid.UUID
    actual_paid_amount: int = Field(ge=0)


class UpdateStatusPayload(CamelModel):
    """Request body for recording payment of an approved report."""

    status: SettlementStatus
    actual_paid_amount: int | None = Field(default=None, ge=0)
    amount_difference_reason: str | None = Field(default=None, max_length=500)
    detail_actual_paid_amounts: list[DetailPaidAmountInput] | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ExpenseDetailResponse(CamelModel):
    """Response schema for a single expense detail."""

    expense_detail_id: uuid.UUID
    expense_report_id: uuid.UUID
    category: str
    amount: int
    description: str | None
    note: str | None
    payment_method: str
    card_number: str | None
    payment_req_date: date | None
    is_tax_deductible: bool
    non_deductible_reason: str | None
    actual_paid_amount: int | None


class ApprovalLineResponse(CamelModel):
    """Response schema for a single approval line."""

    approval_line_id: uuid.UUID
    expense_report_id: uuid.UUID
    approver_id: uuid.UUID
    approver_name: str | None
    approver_position: str | None
    step_order: int
    status: LineStatus
    signature_data: str | None
    rejection_reason: str | None
    approval_date: datetime | None


class ExpenseReportSummary(CamelModel):
    """Report header as shown in lists."""

    expense_report_id: uuid.UUID
    company_id: uuid.UUID
    drafter_id: uuid.UUID
    drafter_name: str | None
    title: str | None
    report_date: date
    total_amount: int
    is_secret: bool
    status: ReportStatus
    submitted_at: datetime | None
    final_approval_date: datetime | None
    actual_paid_amount: int | None
    amount_difference_reason: str | None
    is_paid: bool
    paid_at: datetime | None
    paid_by: uuid.UUID | None
    tax_collected_at: datetime | None
    tax_collected_by: uuid.UUID | None
    tax_revision_requested: bool
    tax_revision_request_reason: str | None
    summary_description: str
    current_approver_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime | None


class ExpenseReportResponse(ExpenseReportSummary):
    """Full report aggregate."""

    details: list[ExpenseDetailResponse]
    approval_lines: list[ApprovalLineResponse]
