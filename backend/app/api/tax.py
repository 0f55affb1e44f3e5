# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query

from app.api.deps import AuthDep
from app.db import SessionDep
from app.schemas.common import ApiResponse
from app.schemas.expense import ExpenseReportResponse, ExpenseReportSummary
from app.schemas.tax import (
    BatchCompletePayload,
    BatchCompleteResponse,
    DateRangePayload,
    MonthlyTaxSummary,
    TaxCollectResponse,
    TaxRevisionPayload,
    TaxStatusResponse,
)
from app.services import tax as tax_service

tax_router = APIRouter(prefix="/expenses/tax", tags=["tax"])
revision_router = APIRouter(prefix="/expenses", tags=["tax"])


@tax_router.post("/collect", response_model=ApiResponse[TaxCollectResponse])
async def collect(
    payload: DateRangePayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[TaxCollectResponse]:
    """Collect every approved, uncollected report dated in the range."""
    result = await tax_service.collect(session, auth, payload)
    return ApiResponse(message=f"{result.collected_count} reports collected", data=result)


@tax_router.post("/batch-complete", response_model=ApiResponse[BatchCompleteResponse])
async def batch_complete(
    payload: BatchCompletePayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[BatchCompleteResponse]:
    """Collect the given reports; results are reported per report."""
    result = await tax_service.batch_complete(session, auth, payload)
    return ApiResponse(message=f"{result.collected_count} reports collected", data=result)


@tax_router.get("/pending", response_model=ApiResponse[list[ExpenseReportSummary]])
async def list_pending(
    session: SessionDep,
    auth: AuthDep,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> ApiResponse[list[ExpenseReportSummary]]:
    return ApiResponse(data=await tax_service.pending_reports(session, auth, start_date, end_date))


@tax_router.get("/uncollected", response_model=ApiResponse[list[ExpenseReportSummary]])
async def list_uncollected(
    session: SessionDep,
    auth: AuthDep,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> ApiResponse[list[ExpenseReportSummary]]:
    return ApiResponse(data=await tax_service.uncollected_reports(session, auth, start_date, end_date))


@tax_router.get("/collected", response_model=ApiResponse[list[ExpenseReportSummary]])
async def list_collected(
    session: SessionDep,
    auth: AuthDep,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> ApiResponse[list[ExpenseReportSummary]]:
    return ApiResponse(data=await tax_service.collected_reports(session, auth, start_date, end_date))


@tax_router.get("/status", response_model=ApiResponse[TaxStatusResponse])
async def get_status(
    session: SessionDep,
    auth: AuthDep,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> ApiResponse[TaxStatusResponse]:
    """Collection progress over approved reports."""
    return ApiResponse(data=await tax_service.tax_status(session, auth, start_date, end_date))


@tax_router.get("/monthly-summary", response_model=ApiResponse[list[MonthlyTaxSummary]])
async def get_monthly_summary(
    session: SessionDep,
    auth: AuthDep,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> ApiResponse[list[MonthlyTaxSummary]]:
    return ApiResponse(data=await tax_service.monthly_summary(session, auth, start_date, end_date))


@tax_router.get("/revision-requests", response_model=ApiResponse[list[ExpenseReportSummary]])
async def list_revision_requests(
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[list[ExpenseReportSummary]]:
    """The caller's reports sent back by the tax desk."""
    return ApiResponse(data=await tax_service.revision_requests(session, auth))


@revision_router.post("/{expense_id}/tax/revision-request", response_model=ApiResponse[ExpenseReportResponse])
async def request_revision(
    expense_id: uuid.UUID,
    payload: TaxRevisionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApiResponse[ExpenseReportResponse]:
    """Send a collected report back to its drafter for revision (tax desk only)."""
    report = await tax_service.request_revision(session, auth, expense_id, payload)
    return ApiResponse(message="Revision requested", data=report)
