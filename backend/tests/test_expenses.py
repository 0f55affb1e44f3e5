"""Integration tests for the expense report lifecycle API."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

import pytest

from app.services.directory import UserInfo

if TYPE_CHECKING:
    from httpx import AsyncClient, Response

    from app.services.directory import InMemoryUserDirectory

COMPANY_ID = uuid.uuid4()
DRAFTER_ID = uuid.uuid4()
APPROVER_A = uuid.uuid4()
APPROVER_B = uuid.uuid4()
APPROVER_C = uuid.uuid4()
OUTSIDER_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()
TAX_ID = uuid.uuid4()
EXPENSES_URL = "/expenses"


def _headers(user_id: uuid.UUID, role: str = "USER") -> dict[str, str]:
    return {"X-Company-Id": str(COMPANY_ID), "X-User-Id": str(user_id), "X-Role": role}


DRAFTER_HEADERS = _headers(DRAFTER_ID)


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


def _report_payload(
    amounts: tuple[int, ...] = (50000, 30000),
    report_date: str = "2026-03-10",
    is_secret: bool = False,
    category: str = "MEALS",
    payment_method: str = "CASH",
    card_number: str | None = None,
) -> dict[str, Any]:
    return {
        "reportDate": report_date,
        "title": "Client visit",
        "isSecret": is_secret,
        "details": [
            {
                "category": category,
                "amount": amount,
                "description": f"item {i + 1}",
                "paymentMethod": payment_method,
                "cardNumber": card_number,
            }
            for i, amount in enumerate(amounts)
        ],
    }


async def _create(client: AsyncClient, **kwargs: Any) -> dict[str, Any]:
    resp = await client.post(EXPENSES_URL, json=_report_payload(**kwargs), headers=DRAFTER_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _submit(client: AsyncClient, report_id: str, *approvers: uuid.UUID) -> Response:
    approvers = approvers or (APPROVER_A, APPROVER_B)
    return await client.post(
        f"{EXPENSES_URL}/{report_id}/approval-lines",
        json={
            "approvalLines": [
                {
                    "approverId": str(a),
                    "approverName": f"Approver {i + 1}",
                    "approverPosition": "Manager",
                    "status": "WAIT",
                }
                for i, a in enumerate(approvers)
            ]
        },
        headers=DRAFTER_HEADERS,
    )


async def _submitted(client: AsyncClient, *approvers: uuid.UUID, **kwargs: Any) -> str:
    report_id = (await _create(client, **kwargs))["expenseReportId"]
    resp = await _submit(client, report_id, *approvers)
    assert resp.status_code == 200, resp.text
    return report_id


async def _approve(client: AsyncClient, report_id: str, approver: uuid.UUID, role: str = "USER") -> Response:
    return await client.post(
        f"{EXPENSES_URL}/{report_id}/approve",
        json={"approverId": str(approver), "signatureData": f"sig-{approver}"},
        headers=_headers(approver, role),
    )


async def _reject(
    client: AsyncClient, report_id: str, approver: uuid.UUID, reason: str = "missing receipt"
) -> Response:
    return await client.post(
        f"{EXPENSES_URL}/{report_id}/reject",
        json={"approverId": str(approver), "rejectionReason": reason},
        headers=_headers(approver),
    )


async def _get(client: AsyncClient, report_id: str, user_id: uuid.UUID = DRAFTER_ID, role: str = "USER") -> Response:
    return await client.get(f"{EXPENSES_URL}/{report_id}", headers=_headers(user_id, role))


def _error(resp: Response, status_code: int, kind: str) -> None:
    assert resp.status_code == status_code, resp.text
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == kind
    assert body["statusCode"] == status_code
    assert body["message"]


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


async def test_create_report_is_draft_with_computed_total(async_client: AsyncClient) -> None:
    resp = await async_client.post(EXPENSES_URL, json=_report_payload(), headers=DRAFTER_HEADERS)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["status"] == "DRAFT"
    assert data["totalAmount"] == 80000
    assert data["drafterId"] == str(DRAFTER_ID)
    assert data["companyId"] == str(COMPANY_ID)
    assert data["summaryDescription"] == "item 1 and 1 more"
    assert data["approvalLines"] == []
    assert len(data["details"]) == 2
    assert data["isPaid"] is False


async def test_create_keeps_only_card_fragment(async_client: AsyncClient) -> None:
    data = await _create(async_client, payment_method="COMPANY_CARD", card_number="4111-2222-3333-4321")
    assert [d["cardNumber"] for d in data["details"]] == ["4321", "4321"]


async def test_create_snapshots_drafter_name(
    async_client: AsyncClient, user_directory: InMemoryUserDirectory
) -> None:
    user_directory.seed(UserInfo(id=DRAFTER_ID, company_id=COMPANY_ID, name="Alice Kim"))
    data = await _create(async_client)
    assert data["drafterName"] == "Alice Kim"


async def test_tax_accountant_cannot_create(async_client: AsyncClient) -> None:
    resp = await async_client.post(EXPENSES_URL, json=_report_payload(), headers=_headers(TAX_ID, "TAX_ACCOUNTANT"))
    _error(resp, 403, "Forbidden")


async def test_create_requires_details(async_client: AsyncClient) -> None:
    payload = _report_payload()
    payload["details"] = []
    resp = await async_client.post(EXPENSES_URL, json=payload, headers=DRAFTER_HEADERS)
    _error(resp, 422, "ValidationError")


async def test_non_deductible_detail_requires_reason(async_client: AsyncClient) -> None:
    payload = _report_payload(amounts=(1000,))
    payload["details"][0]["isTaxDeductible"] = False
    resp = await async_client.post(EXPENSES_URL, json=payload, headers=DRAFTER_HEADERS)
    _error(resp, 422, "ValidationError")

    payload["details"][0]["nonDeductibleReason"] = "personal use"
    resp = await async_client.post(EXPENSES_URL, json=payload, headers=DRAFTER_HEADERS)
    assert resp.status_code == 201
    assert resp.json()["data"]["details"][0]["nonDeductibleReason"] == "personal use"


async def test_negative_amount_rejected(async_client: AsyncClient) -> None:
    resp = await async_client.post(EXPENSES_URL, json=_report_payload(amounts=(-5,)), headers=DRAFTER_HEADERS)
    _error(resp, 422, "ValidationError")


async def test_get_unknown_report_is_not_found(async_client: AsyncClient) -> None:
    resp = await _get(async_client, str(uuid.uuid4()))
    _error(resp, 404, "NotFound")


async def test_report_of_other_company_is_not_found(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    headers = {"X-Company-Id": str(uuid.uuid4()), "X-User-Id": str(DRAFTER_ID), "X-Role": "USER"}
    resp = await async_client.get(f"{EXPENSES_URL}/{report_id}", headers=headers)
    _error(resp, 404, "NotFound")


async def test_missing_auth_headers_rejected(async_client: AsyncClient) -> None:
    resp = await async_client.get(EXPENSES_URL)
    _error(resp, 422, "ValidationError")


async def test_draft_hidden_from_others(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    _error(await _get(async_client, report_id, OUTSIDER_ID), 403, "Forbidden")


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


async def test_update_draft_replaces_details(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    resp = await async_client.put(
        f"{EXPENSES_URL}/{report_id}", json=_report_payload(amounts=(12000,)), headers=DRAFTER_HEADERS
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["totalAmount"] == 12000
    assert len(data["details"]) == 1
    assert data["summaryDescription"] == "item 1"


async def test_update_by_non_drafter_forbidden(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    resp = await async_client.put(f"{EXPENSES_URL}/{report_id}", json=_report_payload(), headers=_headers(OUTSIDER_ID))
    _error(resp, 403, "Forbidden")


async def test_update_waiting_report_before_any_signature(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    resp = await async_client.put(
        f"{EXPENSES_URL}/{report_id}", json=_report_payload(amounts=(7000,)), headers=DRAFTER_HEADERS
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "WAIT"
    assert data["totalAmount"] == 7000


async def test_update_after_signature_is_invalid(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    assert (await _approve(async_client, report_id, APPROVER_A)).status_code == 200
    resp = await async_client.put(f"{EXPENSES_URL}/{report_id}", json=_report_payload(), headers=DRAFTER_HEADERS)
    _error(resp, 409, "InvalidTransition")


async def test_update_rejected_report_without_signatures(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    assert (await _reject(async_client, report_id, APPROVER_A)).status_code == 200
    resp = await async_client.put(
        f"{EXPENSES_URL}/{report_id}", json=_report_payload(amounts=(100,)), headers=DRAFTER_HEADERS
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "REJECTED"


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


async def test_submit_creates_ordered_chain(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    resp = await _submit(async_client, report_id, APPROVER_A, APPROVER_B)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "WAIT"
    assert data["submittedAt"] is not None
    assert data["currentApproverId"] == str(APPROVER_A)
    lines = data["approvalLines"]
    assert [line["stepOrder"] for line in lines] == [1, 2]
    assert [line["approverId"] for line in lines] == [str(APPROVER_A), str(APPROVER_B)]
    assert {line["status"] for line in lines} == {"WAIT"}
    assert lines[0]["approverName"] == "Approver 1"


async def test_submit_fills_approver_snapshot_from_directory(
    async_client: AsyncClient, user_directory: InMemoryUserDirectory
) -> None:
    user_directory.seed(UserInfo(id=APPROVER_A, company_id=COMPANY_ID, name="Bob Lee", position="Team Lead"))
    report_id = (await _create(async_client))["expenseReportId"]
    resp = await async_client.post(
        f"{EXPENSES_URL}/{report_id}/approval-lines",
        json={"approvalLines": [{"approverId": str(APPROVER_A)}]},
        headers=DRAFTER_HEADERS,
    )
    line = resp.json()["data"]["approvalLines"][0]
    assert line["approverName"] == "Bob Lee"
    assert line["approverPosition"] == "Team Lead"


async def test_submit_requires_approvers(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    resp = await async_client.post(
        f"{EXPENSES_URL}/{report_id}/approval-lines", json={"approvalLines": []}, headers=DRAFTER_HEADERS
    )
    _error(resp, 422, "ValidationError")


async def test_submit_rejects_duplicate_approver(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    _error(await _submit(async_client, report_id, APPROVER_A, APPROVER_A), 422, "ValidationError")


async def test_submit_rejects_zero_total(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client, amounts=(0,)))["expenseReportId"]
    _error(await _submit(async_client, report_id), 422, "ValidationError")


async def test_submit_twice_is_invalid(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    _error(await _submit(async_client, report_id), 409, "InvalidTransition")


async def test_submit_by_non_drafter_forbidden(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    resp = await async_client.post(
        f"{EXPENSES_URL}/{report_id}/approval-lines",
        json={"approvalLines": [{"approverId": str(APPROVER_A)}]},
        headers=_headers(OUTSIDER_ID),
    )
    _error(resp, 403, "Forbidden")


# ---------------------------------------------------------------------------
# Approve / reject
# ---------------------------------------------------------------------------


async def test_two_step_approval(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)

    resp = await _approve(async_client, report_id, APPROVER_A)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "WAIT"
    assert data["currentApproverId"] == str(APPROVER_B)
    assert data["approvalLines"][0]["status"] == "APPROVED"
    assert data["approvalLines"][0]["signatureData"] == f"sig-{APPROVER_A}"
    assert data["approvalLines"][0]["approvalDate"] is not None

    resp = await _approve(async_client, report_id, APPROVER_B)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "APPROVED"
    assert data["finalApprovalDate"] is not None
    assert data["currentApproverId"] is None

    _error(await _approve(async_client, report_id, APPROVER_B), 409, "AlreadyResolved")


async def test_approve_out_of_turn(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    _error(await _approve(async_client, report_id, APPROVER_B), 409, "NotYourTurn")
    _error(await _approve(async_client, report_id, OUTSIDER_ID), 409, "NotYourTurn")
    _error(await _reject(async_client, report_id, APPROVER_B), 409, "NotYourTurn")

    data = (await _get(async_client, report_id)).json()["data"]
    assert {line["status"] for line in data["approvalLines"]} == {"WAIT"}


async def test_approve_on_behalf_of_someone_else_forbidden(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    resp = await async_client.post(
        f"{EXPENSES_URL}/{report_id}/approve",
        json={"approverId": str(APPROVER_A)},
        headers=_headers(APPROVER_B),
    )
    _error(resp, 403, "Forbidden")


async def test_approve_draft_is_invalid(async_client: AsyncClient) -> None:
    report_id = (await _create(async_client))["expenseReportId"]
    _error(await _approve(async_client, report_id, APPROVER_A), 409, "InvalidTransition")


async def test_reject_short_circuits_chain(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B, APPROVER_C)
    assert (await _approve(async_client, report_id, APPROVER_A)).status_code == 200

    resp = await _reject(async_client, report_id, APPROVER_B, "over budget")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "REJECTED"
    assert [line["status"] for line in data["approvalLines"]] == ["APPROVED", "REJECTED", "WAIT"]
    assert data["approvalLines"][1]["rejectionReason"] == "over budget"
    assert data["currentApproverId"] is None

    _error(await _approve(async_client, report_id, APPROVER_C), 409, "AlreadyResolved")


async def test_reject_requires_reason(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    _error(await _reject(async_client, report_id, APPROVER_A, reason=""), 422, "ValidationError")


# ---------------------------------------------------------------------------
# Reversals
# ---------------------------------------------------------------------------


async def test_reject_then_cancel_rejection(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    assert (await _reject(async_client, report_id, APPROVER_A)).status_code == 200

    resp = await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-rejection", headers=DRAFTER_HEADERS)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "WAIT"
    assert [line["status"] for line in data["approvalLines"]] == ["WAIT", "WAIT"]
    assert data["approvalLines"][0]["rejectionReason"] is None
    assert data["currentApproverId"] == str(APPROVER_A)

    assert (await _approve(async_client, report_id, APPROVER_A)).status_code == 200


async def test_cancel_rejection_by_rejecting_approver(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    await _approve(async_client, report_id, APPROVER_A)
    await _reject(async_client, report_id, APPROVER_B)
    resp = await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-rejection", headers=_headers(APPROVER_B))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [line["status"] for line in data["approvalLines"]] == ["APPROVED", "WAIT"]
    assert data["currentApproverId"] == str(APPROVER_B)


async def test_cancel_rejection_by_outsider_forbidden(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    await _reject(async_client, report_id, APPROVER_A)
    resp = await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-rejection", headers=_headers(OUTSIDER_ID))
    _error(resp, 403, "Forbidden")


async def test_cancel_rejection_requires_rejected_report(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    resp = await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-rejection", headers=DRAFTER_HEADERS)
    _error(resp, 409, "InvalidTransition")


async def test_cancel_approval_reopens_last_step(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    await _approve(async_client, report_id, APPROVER_A)
    await _approve(async_client, report_id, APPROVER_B)

    resp = await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-approval", headers=_headers(APPROVER_B))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "WAIT"
    assert data["finalApprovalDate"] is None
    assert [line["status"] for line in data["approvalLines"]] == ["APPROVED", "WAIT"]
    assert data["approvalLines"][1]["signatureData"] is None
    assert data["currentApproverId"] == str(APPROVER_B)


async def test_cancel_approval_by_earlier_approver_forbidden(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    await _approve(async_client, report_id, APPROVER_A)
    await _approve(async_client, report_id, APPROVER_B)
    resp = await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-approval", headers=_headers(APPROVER_A))
    _error(resp, 403, "Forbidden")


async def test_admin_can_cancel_approval(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A)
    await _approve(async_client, report_id, APPROVER_A)
    resp = await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-approval", headers=_headers(ADMIN_ID, "ADMIN"))
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "WAIT"


async def test_cancel_approval_requires_approved_report(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    await _approve(async_client, report_id, APPROVER_A)
    resp = await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-approval", headers=_headers(APPROVER_A))
    _error(resp, 409, "InvalidTransition")


# ---------------------------------------------------------------------------
# Append approver
# ---------------------------------------------------------------------------


async def test_first_approver_appends_after_signing(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A)
    await _approve(async_client, report_id, APPROVER_A)

    resp = await async_client.post(
        f"{EXPENSES_URL}/{report_id}/approval-lines/additional",
        json={"approverId": str(APPROVER_C), "approverName": "Carol"},
        headers=_headers(APPROVER_A),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "WAIT"
    assert data["finalApprovalDate"] is None
    assert [line["stepOrder"] for line in data["approvalLines"]] == [1, 2]
    assert data["currentApproverId"] == str(APPROVER_C)

    resp = await _approve(async_client, report_id, APPROVER_C)
    assert resp.json()["data"]["status"] == "APPROVED"


async def test_append_before_signing_is_invalid(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    resp = await async_client.post(
        f"{EXPENSES_URL}/{report_id}/approval-lines/additional",
        json={"approverId": str(APPROVER_C)},
        headers=_headers(APPROVER_A),
    )
    _error(resp, 409, "InvalidTransition")


async def test_append_by_other_approver_forbidden(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    await _approve(async_client, report_id, APPROVER_A)
    resp = await async_client.post(
        f"{EXPENSES_URL}/{report_id}/approval-lines/additional",
        json={"approverId": str(APPROVER_C)},
        headers=_headers(APPROVER_B),
    )
    _error(resp, 403, "Forbidden")


async def test_append_existing_approver_rejected(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    await _approve(async_client, report_id, APPROVER_A)
    resp = await async_client.post(
        f"{EXPENSES_URL}/{report_id}/approval-lines/additional",
        json={"approverId": str(APPROVER_B)},
        headers=_headers(APPROVER_A),
    )
    _error(resp, 422, "ValidationError")


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


def _delete_url(report_id: str, user_id: uuid.UUID = DRAFTER_ID) -> str:
    return f"{EXPENSES_URL}/{report_id}?userId={user_id}"


async def test_delete_waiting_unsigned_report(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    resp = await async_client.delete(_delete_url(report_id), headers=DRAFTER_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    _error(await _get(async_client, report_id), 404, "NotFound")


async def test_delete_rejected_report_after_signatures(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    await _approve(async_client, report_id, APPROVER_A)
    await _reject(async_client, report_id, APPROVER_B)
    resp = await async_client.delete(_delete_url(report_id), headers=DRAFTER_HEADERS)
    assert resp.status_code == 200


async def test_delete_signed_waiting_report_is_invalid(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)
    await _approve(async_client, report_id, APPROVER_A)
    _error(await async_client.delete(_delete_url(report_id), headers=DRAFTER_HEADERS), 409, "InvalidTransition")


async def test_delete_guard_survives_approval_reversal(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A)
    await _approve(async_client, report_id, APPROVER_A)
    await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-approval", headers=_headers(APPROVER_A))
    _error(await async_client.delete(_delete_url(report_id), headers=DRAFTER_HEADERS), 409, "InvalidTransition")


@pytest.mark.parametrize("approve_all", [False, True])
async def test_delete_draft_or_approved_is_invalid(async_client: AsyncClient, approve_all: bool) -> None:
    if approve_all:
        report_id = await _submitted(async_client, APPROVER_A)
        await _approve(async_client, report_id, APPROVER_A)
    else:
        report_id = (await _create(async_client))["expenseReportId"]
    _error(await async_client.delete(_delete_url(report_id), headers=DRAFTER_HEADERS), 409, "InvalidTransition")


async def test_delete_by_non_drafter_forbidden(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    resp = await async_client.delete(_delete_url(report_id, APPROVER_A), headers=_headers(APPROVER_A))
    _error(resp, 403, "Forbidden")


async def test_delete_user_id_must_match_caller(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client)
    resp = await async_client.delete(_delete_url(report_id, OUTSIDER_ID), headers=DRAFTER_HEADERS)
    _error(resp, 403, "Forbidden")


# ---------------------------------------------------------------------------
# Approver inboxes
# ---------------------------------------------------------------------------


async def test_pending_approvals_follow_the_turn(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A, APPROVER_B)

    def _ids(resp: Response) -> list[str]:
        return [r["expenseReportId"] for r in resp.json()["data"]]

    url = f"{EXPENSES_URL}/pending-approvals"
    assert _ids(await async_client.get(url, params={"userId": str(APPROVER_A)}, headers=_headers(APPROVER_A))) == [
        report_id
    ]
    assert _ids(await async_client.get(url, params={"userId": str(APPROVER_B)}, headers=_headers(APPROVER_B))) == []

    await _approve(async_client, report_id, APPROVER_A)
    assert _ids(await async_client.get(url, params={"userId": str(APPROVER_A)}, headers=_headers(APPROVER_A))) == []
    assert _ids(await async_client.get(url, params={"userId": str(APPROVER_B)}, headers=_headers(APPROVER_B))) == [
        report_id
    ]


async def test_pending_approvals_for_someone_else_forbidden(async_client: AsyncClient) -> None:
    resp = await async_client.get(
        f"{EXPENSES_URL}/pending-approvals", params={"userId": str(APPROVER_A)}, headers=_headers(APPROVER_B)
    )
    _error(resp, 403, "Forbidden")


async def test_my_approvals_lists_resolved_reports(async_client: AsyncClient) -> None:
    approved = await _submitted(async_client, APPROVER_A, APPROVER_B)
    rejected = await _submitted(async_client, APPROVER_A)
    untouched = await _submitted(async_client, APPROVER_B)
    await _approve(async_client, approved, APPROVER_A)
    await _reject(async_client, rejected, APPROVER_A)

    resp = await async_client.get(
        f"{EXPENSES_URL}/my-approvals", params={"userId": str(APPROVER_A)}, headers=_headers(APPROVER_A)
    )
    ids = {r["expenseReportId"] for r in resp.json()["data"]}
    assert ids == {approved, rejected}
    assert untouched not in ids


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


async def _list(client: AsyncClient, user_id: uuid.UUID = DRAFTER_ID, role: str = "USER", **params: Any) -> dict:
    resp = await client.get(EXPENSES_URL, params=params, headers=_headers(user_id, role))
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def test_list_paginates_newest_first(async_client: AsyncClient) -> None:
    for day in ("2026-01-05", "2026-01-20", "2026-01-10"):
        await _create(async_client, report_date=day)

    page = await _list(async_client, page=1, size=2)
    assert page["page"] == 1
    assert page["size"] == 2
    assert page["totalElements"] == 3
    assert page["totalPages"] == 2
    assert [r["reportDate"] for r in page["content"]] == ["2026-01-20", "2026-01-10"]

    page = await _list(async_client, page=2, size=2)
    assert [r["reportDate"] for r in page["content"]] == ["2026-01-05"]


async def test_list_page_size_is_capped(async_client: AsyncClient) -> None:
    await _create(async_client)
    page = await _list(async_client, size=1000)
    assert page["size"] == 100


async def test_list_rejects_page_zero(async_client: AsyncClient) -> None:
    resp = await async_client.get(EXPENSES_URL, params={"page": 0}, headers=DRAFTER_HEADERS)
    _error(resp, 422, "ValidationError")


async def test_list_filters(async_client: AsyncClient, user_directory: InMemoryUserDirectory) -> None:
    user_directory.seed(UserInfo(id=DRAFTER_ID, company_id=COMPANY_ID, name="Alice Kim"))
    meals = await _create(async_client, amounts=(10000,), report_date="2026-02-01")
    travel = await _create(
        async_client,
        amounts=(90000,),
        report_date="2026-02-15",
        category="TRAVEL",
        payment_method="COMPANY_CARD",
        card_number="5555 4444 3333 9876",
    )
    submitted = await _submitted(async_client, amounts=(40000,), report_date="2026-03-01")

    def _ids(page: dict) -> set[str]:
        return {r["expenseReportId"] for r in page["content"]}

    assert _ids(await _list(async_client, category="TRAVEL")) == {travel["expenseReportId"]}
    assert _ids(await _list(async_client, paymentMethod="COMPANY_CARD")) == {travel["expenseReportId"]}
    assert _ids(await _list(async_client, cardNumber="9876")) == {travel["expenseReportId"]}
    assert _ids(await _list(async_client, cardNumber="1111")) == set()
    assert _ids(await _list(async_client, minAmount=20000, maxAmount=50000)) == {submitted}
    assert _ids(await _list(async_client, startDate="2026-02-10", endDate="2026-02-28")) == {travel["expenseReportId"]}
    assert _ids(await _list(async_client, status="WAIT")) == {submitted}
    assert _ids(await _list(async_client, drafterName="alice")) == {
        meals["expenseReportId"],
        travel["expenseReportId"],
        submitted,
    }
    assert _ids(await _list(async_client, drafterName="nobody")) == set()


async def test_list_accepts_several_statuses(async_client: AsyncClient) -> None:
    draft = (await _create(async_client))["expenseReportId"]
    waiting = await _submitted(async_client)
    rejected = await _submitted(async_client, APPROVER_A)
    await _reject(async_client, rejected, APPROVER_A)

    resp = await async_client.get(
        EXPENSES_URL, params=[("status", "WAIT"), ("status", "REJECTED")], headers=DRAFTER_HEADERS
    )
    ids = {r["expenseReportId"] for r in resp.json()["data"]["content"]}
    assert ids == {waiting, rejected}
    assert draft not in ids


async def test_secret_report_visibility(async_client: AsyncClient) -> None:
    secret = await _submitted(async_client, APPROVER_A, is_secret=True)
    public = await _submitted(async_client, APPROVER_A)

    def _ids(page: dict) -> set[str]:
        return {r["expenseReportId"] for r in page["content"]}

    assert _ids(await _list(async_client, OUTSIDER_ID)) == {public}
    assert _ids(await _list(async_client, APPROVER_A)) == {secret, public}
    assert _ids(await _list(async_client, ADMIN_ID, "ADMIN")) == {secret, public}
    assert _ids(await _list(async_client, DRAFTER_ID)) == {secret, public}

    _error(await _get(async_client, secret, OUTSIDER_ID), 403, "Forbidden")
    assert (await _get(async_client, secret, APPROVER_A)).status_code == 200
    assert (await _get(async_client, secret, ADMIN_ID, "CEO")).status_code == 200
    assert (await _get(async_client, public, OUTSIDER_ID)).status_code == 200


async def test_others_drafts_not_listed(async_client: AsyncClient) -> None:
    await _create(async_client)
    assert (await _list(async_client, OUTSIDER_ID))["totalElements"] == 0
    assert (await _list(async_client, ADMIN_ID, "ADMIN"))["totalElements"] == 0


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


async def test_history_records_each_transition(async_client: AsyncClient) -> None:
    report_id = await _submitted(async_client, APPROVER_A)
    await _reject(async_client, report_id, APPROVER_A)
    await async_client.post(f"{EXPENSES_URL}/{report_id}/cancel-rejection", headers=DRAFTER_HEADERS)
    await _approve(async_client, report_id, APPROVER_A)

    resp = await async_client.get(f"{EXPENSES_URL}/{report_id}/history", headers=DRAFTER_HEADERS)
    assert resp.status_code == 200
    entries = resp.json()["data"]
    assert [e["action"] for e in entries] == ["CREATE", "SUBMIT", "REJECT", "CANCEL_REJECTION", "APPROVE"]
    assert entries[-1]["actorId"] == str(APPROVER_A)
    assert entries[-1]["afterJson"]["status"] == "APPROVED"
    # Signature images are reduced to a presence flag.
    assert entries[-1]["afterJson"]["approval_lines"][0]["signature_data"] is True
