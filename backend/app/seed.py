"""Seed script for development data.

Creates a handful of expense reports through the public API, one in each
interesting state of the workflow.

Run with:  python -m app.seed
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date, timedelta
from typing import Any

import httpx

BASE_URL = "http://localhost:8000"
COMPANY_ID = "00000000-0000-0000-0000-000000000001"

# Well-known user UUIDs
ALICE_ID = "00000000-0000-0000-0000-000000000002"  # drafter
BOB_ID = "00000000-0000-0000-0000-000000000003"  # team lead
CAROL_ID = "00000000-0000-0000-0000-000000000004"  # CEO
DAVE_ID = "00000000-0000-0000-0000-000000000005"  # accountant
ERIN_ID = "00000000-0000-0000-0000-000000000006"  # tax accountant

ROLES = {ALICE_ID: "USER", BOB_ID: "USER", CAROL_ID: "CEO", DAVE_ID: "ACCOUNTANT", ERIN_ID: "TAX_ACCOUNTANT"}

APPROVERS = [
    {"approverId": BOB_ID, "approverName": "Bob Smith", "approverPosition": "Team Lead", "status": "WAIT"},
    {"approverId": CAROL_ID, "approverName": "Carol Williams", "approverPosition": "CEO", "status": "WAIT"},
]


def _headers(user_id: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Company-Id": COMPANY_ID,
        "X-User-Id": user_id,
        "X-Role": ROLES[user_id],
    }


async def _call(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    user_id: str,
    label: str,
    json: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Send one request and print the outcome; returns the ``data`` field."""
    resp = await client.request(method, f"{BASE_URL}{path}", json=json, headers=_headers(user_id))
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json().get("data")
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


def _report(title: str, days_ago: int, details: list[tuple[str, int, str, str]]) -> dict[str, Any]:
    return {
        "reportDate": (date.today() - timedelta(days=days_ago)).isoformat(),
        "title": title,
        "details": [
            {
                "category": category,
                "amount": amount,
                "description": description,
                "paymentMethod": method,
                "cardNumber": "4111-1111-1111-1234" if method == "COMPANY_CARD" else None,
            }
            for category, amount, description, method in details
        ],
    }


async def _draft(client: httpx.AsyncClient, title: str, days_ago: int, details: list[tuple[str, int, str, str]]) -> str:
    data = await _call(client, "POST", "/expenses", ALICE_ID, f"Create '{title}'", _report(title, days_ago, details))
    if data is None:
        sys.exit(1)
    return data["expenseReportId"]


async def _submit(client: httpx.AsyncClient, report_id: str) -> None:
    await _call(
        client, "POST", f"/expenses/{report_id}/approval-lines", ALICE_ID, "  submit", {"approvalLines": APPROVERS}
    )


async def _approve(client: httpx.AsyncClient, report_id: str, approver_id: str) -> None:
    await _call(
        client,
        "POST",
        f"/expenses/{report_id}/approve",
        approver_id,
        "  approve",
        {"approverId": approver_id, "signatureData": "data:image/png;base64,c2lnbmVk"},
    )


async def seed_reports(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding expense reports ---")

    await _draft(client, "Team lunch (draft)", 1, [("MEALS", 86000, "Team lunch", "COMPANY_CARD")])

    waiting = await _draft(client, "Conference travel", 5, [
        ("TRAVEL", 320000, "Train tickets", "CREDIT_CARD"),
        ("LODGING", 450000, "Hotel, 2 nights", "COMPANY_CARD"),
    ])
    await _submit(client, waiting)
    await _approve(client, waiting, BOB_ID)

    rejected = await _draft(client, "Office supplies", 8, [("SUPPLIES", 54000, "Printer toner", "CASH")])
    await _submit(client, rejected)
    await _call(
        client,
        "POST",
        f"/expenses/{rejected}/reject",
        BOB_ID,
        "  reject",
        {"approverId": BOB_ID, "rejectionReason": "missing receipt"},
    )

    paid = await _draft(client, "Client dinner", 12, [("MEALS", 128000, "Dinner with client", "COMPANY_CARD")])
    await _submit(client, paid)
    await _approve(client, paid, BOB_ID)
    await _approve(client, paid, CAROL_ID)
    await _call(client, "PUT", f"/expenses/{paid}/status", DAVE_ID, "  settle", {"status": "PAID"})

    collected = await _draft(client, "Software subscription", 20, [("SOFTWARE", 99000, "Design tool", "CARD")])
    await _submit(client, collected)
    await _approve(client, collected, BOB_ID)
    await _approve(client, collected, CAROL_ID)
    await _call(
        client,
        "POST",
        "/expenses/tax/batch-complete",
        ERIN_ID,
        "  tax batch-complete",
        {"expenseReportIds": [collected]},
    )


async def main() -> None:
    print("=" * 60)
    print("  Expense Workflow - Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            sys.exit(1)

        await seed_reports(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
