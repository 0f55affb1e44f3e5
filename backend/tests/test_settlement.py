"""Tests for recording payment of approved reports (PUT /expenses/{id}/status)."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from httpx import AsyncClient, Response

COMPANY_ID = uuid.uuid4()
DRAFTER_ID = uuid.uuid4()
APPROVER_ID = uuid.uuid4()
ACCOUNTANT_ID = uuid.uuid4()
TAX_ID = uuid.uuid4()


def _headers(user_id: uuid.UUID, role: str = "USER") -> dict[str, str]:
    return {"X-Company-Id": str(COMPANY_ID), "X-User-Id": str(user_id), "X-Role": role}


ACCOUNTANT_HEADERS = _headers(ACCOUNTANT_ID, "ACCOUNTANT")


async def _approved_report(client: AsyncClient, amounts: tuple[int, ...] = (60000, 40000)) -> dict[str, Any]:
    """Create, submit and fully approve a single-approver report."""
    resp = await client.post(
        "/expenses",
        json={
            "reportDate": "2026-04-02",
            "details": [
                {"category": "TRAVEL", "amount": amount, "description": f"leg {i}", "paymentMethod": "CASH"}
                for i, amount in enumerate(amounts)
            ],
        },
        headers=_headers(DRAFTER_ID),
    )
    report_id = resp.json()["data"]["expenseReportId"]
    await client.post(
        f"/expenses/{report_id}/approval-lines",
        json={"approvalLines": [{"approverId": str(APPROVER_ID)}]},
        headers=_headers(DRAFTER_ID),
    )
    resp = await client.post(
        f"/expenses/{report_id}/approve",
        json={"approverId": str(APPROVER_ID), "signatureData": "sig"},
        headers=_headers(APPROVER_ID),
    )
    assert resp.json()["data"]["status"] == "APPROVED"
    return resp.json()["data"]


async def _settle(
    client: AsyncClient, report_id: str, body: dict[str, Any], headers: dict[str, str] = ACCOUNTANT_HEADERS
) -> Response:
    return await client.put(f"/expenses/{report_id}/status", json={"status": "PAID", **body}, headers=headers)


def _error(resp: Response, status_code: int, kind: str) -> None:
    assert resp.status_code == status_code, resp.text
    assert resp.json()["error"] == kind


async def test_full_payment_needs_no_reason(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    resp = await _settle(async_client, report["expenseReportId"], {})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "APPROVED"
    assert data["isPaid"] is True
    assert data["paidBy"] == str(ACCOUNTANT_ID)
    assert data["actualPaidAmount"] == 100000
    assert data["amountDifferenceReason"] is None
    assert [d["actualPaidAmount"] for d in data["details"]] == [60000, 40000]


async def test_explicit_equal_amount_succeeds(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    resp = await _settle(async_client, report["expenseReportId"], {"actualPaidAmount": 100000})
    assert resp.status_code == 200


@pytest.mark.parametrize("reason", [None, "", "   "])
async def test_different_amount_requires_reason(async_client: AsyncClient, reason: str | None) -> None:
    report = await _approved_report(async_client)
    resp = await _settle(
        async_client, report["expenseReportId"], {"actualPaidAmount": 90000, "amountDifferenceReason": reason}
    )
    _error(resp, 422, "MissingJustification")

    data = (await async_client.get(f"/expenses/{report['expenseReportId']}", headers=ACCOUNTANT_HEADERS)).json()
    assert data["data"]["isPaid"] is False


async def test_different_amount_with_reason(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    resp = await _settle(
        async_client,
        report["expenseReportId"],
        {"actualPaidAmount": 90000, "amountDifferenceReason": "hotel refund"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["actualPaidAmount"] == 90000
    assert data["amountDifferenceReason"] == "hotel refund"
    assert [d["actualPaidAmount"] for d in data["details"]] == [None, None]


async def test_per_detail_amounts(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    first, second = (d["expenseDetailId"] for d in report["details"])
    resp = await _settle(
        async_client,
        report["expenseReportId"],
        {
            "actualPaidAmount": 95000,
            "amountDifferenceReason": "partial refund",
            "detailActualPaidAmounts": [
                {"expenseDetailId": first, "actualPaidAmount": 60000},
                {"expenseDetailId": second, "actualPaidAmount": 35000},
            ],
        },
    )
    assert resp.status_code == 200
    assert [d["actualPaidAmount"] for d in resp.json()["data"]["details"]] == [60000, 35000]


async def test_per_detail_amounts_must_add_up(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    first, _ = (d["expenseDetailId"] for d in report["details"])
    resp = await _settle(
        async_client,
        report["expenseReportId"],
        {"detailActualPaidAmounts": [{"expenseDetailId": first, "actualPaidAmount": 1}]},
    )
    _error(resp, 422, "ValidationError")


async def test_per_detail_amounts_must_reference_report_details(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client, amounts=(1000,))
    resp = await _settle(
        async_client,
        report["expenseReportId"],
        {"detailActualPaidAmounts": [{"expenseDetailId": str(uuid.uuid4()), "actualPaidAmount": 1000}]},
    )
    _error(resp, 422, "ValidationError")


@pytest.mark.parametrize("role", ["USER", "CEO", "TAX_ACCOUNTANT"])
async def test_settlement_requires_accounting_role(async_client: AsyncClient, role: str) -> None:
    report = await _approved_report(async_client)
    resp = await _settle(async_client, report["expenseReportId"], {}, headers=_headers(uuid.uuid4(), role))
    _error(resp, 403, "Forbidden")


async def test_admin_may_settle(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    resp = await _settle(async_client, report["expenseReportId"], {}, headers=_headers(uuid.uuid4(), "ADMIN"))
    assert resp.status_code == 200


async def test_settlement_requires_approved_report(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/expenses",
        json={"reportDate": "2026-04-02", "details": [{"category": "X", "amount": 10, "paymentMethod": "CASH"}]},
        headers=_headers(DRAFTER_ID),
    )
    _error(await _settle(async_client, resp.json()["data"]["expenseReportId"], {}), 409, "InvalidTransition")


async def test_only_paid_status_accepted(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    resp = await async_client.put(
        f"/expenses/{report['expenseReportId']}/status", json={"status": "REJECTED"}, headers=ACCOUNTANT_HEADERS
    )
    _error(resp, 422, "ValidationError")


async def test_paid_report_cannot_be_unapproved(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    await _settle(async_client, report["expenseReportId"], {})
    resp = await async_client.post(
        f"/expenses/{report['expenseReportId']}/cancel-approval", headers=_headers(APPROVER_ID)
    )
    _error(resp, 409, "InvalidTransition")


async def test_tax_collected_report_cannot_be_settled(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    await async_client.post(
        "/expenses/tax/batch-complete",
        json={"expenseReportIds": [report["expenseReportId"]]},
        headers=_headers(TAX_ID, "TAX_ACCOUNTANT"),
    )
    _error(await _settle(async_client, report["expenseReportId"], {}), 409, "InvalidTransition")


async def test_partial_resettlement_clears_earlier_detail_amounts(async_client: AsyncClient) -> None:
    report = await _approved_report(async_client)
    resp = await _settle(async_client, report["expenseReportId"], {})
    assert [d["actualPaidAmount"] for d in resp.json()["data"]["details"]] == [60000, 40000]

    resp = await _settle(
        async_client,
        report["expenseReportId"],
        {"actualPaidAmount": 90000, "amountDifferenceReason": "hotel refund"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["actualPaidAmount"] == 90000
    assert [d["actualPaidAmount"] for d in data["details"]] == [None, None]
