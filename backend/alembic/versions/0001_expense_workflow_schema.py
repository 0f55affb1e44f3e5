"""expense workflow schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "expense_report",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("drafter_id", sa.Uuid(), nullable=False),
        sa.Column("drafter_name", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("total_amount", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_secret", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="DRAFT", nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("final_approval_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_paid_amount", sa.Integer(), nullable=True),
        sa.Column("amount_difference_reason", sa.String(length=500), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_by", sa.Uuid(), nullable=True),
        sa.Column("tax_collected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tax_collected_by", sa.Uuid(), nullable=True),
        sa.Column("tax_revision_requested", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("tax_revision_request_reason", sa.String(length=500), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_expense_report_company_id", "expense_report", ["company_id"])
    op.create_index("ix_expense_report_drafter_id", "expense_report", ["drafter_id"])
    op.create_index("ix_expense_report_status", "expense_report", ["status"])
    op.create_index("ix_expense_report_company_status", "expense_report", ["company_id", "status"])
    op.create_index("ix_expense_report_company_date", "expense_report", ["company_id", "report_date"])

    op.create_table(
        "expense_detail",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("report_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("note", sa.String(length=1000), nullable=True),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("card_number_last4", sa.String(length=4), nullable=True),
        sa.Column("payment_req_date", sa.Date(), nullable=True),
        sa.Column("is_tax_deductible", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("non_deductible_reason", sa.String(length=255), nullable=True),
        sa.Column("actual_paid_amount", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["report_id"], ["expense_report.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_expense_detail_report_id", "expense_detail", ["report_id"])

    op.create_table(
        "approval_line",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("report_id", sa.Uuid(), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("approver_name", sa.String(length=255), nullable=True),
        sa.Column("approver_position", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="WAIT", nullable=False),
        sa.Column("signature_data", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ever_signed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.ForeignKeyConstraint(["report_id"], ["expense_report.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("report_id", "step_order", name="uq_approval_line_step"),
    )
    op.create_index("ix_approval_line_report_id", "approval_line", ["report_id"])
    op.create_index("ix_approval_line_approver_id", "approval_line", ["approver_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_company_id", "audit_log", ["company_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("approval_line")
    op.drop_table("expense_detail")
    op.drop_table("expense_report")
