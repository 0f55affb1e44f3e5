# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Self

from pydantic import Field, model_validator

from app.models.enums import BatchItemResult
from app.schemas.common import CamelModel


class DateRangePayload(CamelModel):
    """Inclusive report-date range."""

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _validate_range(self) -> Self:
        if self.end_date < self.start_date:
            msg = "endDate must not be before startDate"
            raise ValueError(msg)
        return self


class BatchCompletePayload(CamelModel):
    """Request body for completing tax processing of specific reports."""

    expense_report_ids: list[uuid.UUID] = Field(min_length=1)


class TaxRevisionPayload(CamelModel):
    """Request body for asking the drafter to revise a collected report."""

    reason: str = Field(min_length=1, max_length=500)


class TaxCollectResponse(CamelModel):
    """Outcome of a date-range collection."""

    collected_count: int
    expense_report_ids: list[uuid.UUID]


class BatchItemResponse(CamelModel):
    """Outcome for one report of a batch completion."""

    expense_report_id: uuid.UUID
    result: BatchItemResult


class BatchCompleteResponse(CamelModel):
    """Outcome of a batch completion; collected_count counts new collections only."""

    collected_count: int
    results: list[BatchItemResponse]


class TaxStatusResponse(CamelModel):
    """Collection progress over approved reports in a date range."""

    total_count: int
    pending_count: int
    completed_count: int
    completion_rate: float
    total_amount: int
    pending_amount: int
    completed_amount: int


class MonthlyTaxSummary(CamelModel):
    """Collection totals for one calendar month of report dates."""

    year_month: str
    total_count: int
    completed_count: int
    total_amount: int
    completed_amount: int
