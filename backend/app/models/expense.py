# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UUIDBase, VersionedMixin
from app.models.enums import LineStatus, ReportStatus


class ExpenseReport(UUIDBase, TimestampMixin, VersionedMixin, table=True):
    """Header of an expense report aggregate."""

    __tablename__ = "expense_report"
    __table_args__ = (
        sa.Index("ix_expense_report_company_status", "company_id", "status"),
        sa.Index("ix_expense_report_company_date", "company_id", "report_date"),
    )

    company_id: uuid.UUID = Field(index=True)
    drafter_id: uuid.UUID = Field(index=True)
    drafter_name: str | None = Field(default=None, max_length=255)
    title: str | None = Field(default=None, max_length=255)
    report_date: date
    total_amount: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    is_secret: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    status: str = Field(
        default=ReportStatus.DRAFT, max_length=20, index=True, sa_column_kwargs={"server_default": "DRAFT"}
    )
    submitted_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    final_approval_date: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]

    # Settlement
    actual_paid_amount: int | None = None
    amount_difference_reason: str | None = Field(default=None, max_length=500)
    paid_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    paid_by: uuid.UUID | None = None

    # Tax collection
    tax_collected_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    tax_collected_by: uuid.UUID | None = None
    tax_revision_requested: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    tax_revision_request_reason: str | None = Field(default=None, max_length=500)


class ExpenseDetail(UUIDBase, table=True):
    """A single expense line item belonging to a report."""

    __tablename__ = "expense_detail"

    report_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("expense_report.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    position: int = Field(default=0)
    category: str = Field(max_length=50)
    amount: int
    description: str | None = Field(default=None, max_length=500)
    note: str | None = Field(default=None, max_length=1000)
    payment_method: str = Field(max_length=30)
    card_number_last4: str | None = Field(default=None, max_length=4)
    payment_req_date: date | None = None
    is_tax_deductible: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    non_deductible_reason: str | None = Field(default=None, max_length=255)
    actual_paid_amount: int | None = None


class ApprovalLine(UUIDBase, table=True):
    """One ordered step in a report's sign-off chain."""

    __tablename__ = "approval_line"
    __table_args__ = (sa.UniqueConstraint("report_id", "step_order", name="uq_approval_line_step"),)

    report_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("expense_report.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    step_order: int
    approver_id: uuid.UUID = Field(index=True)
    approver_name: str | None = Field(default=None, max_length=255)
    approver_position: str | None = Field(default=None, max_length=255)
    status: str = Field(default=LineStatus.WAIT, max_length=20, sa_column_kwargs={"server_default": "WAIT"})
    signature_data: str | None = Field(default=None, sa_type=sa.Text)
    rejection_reason: str | None = Field(default=None, max_length=500)
    approval_date: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    ever_signed: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
