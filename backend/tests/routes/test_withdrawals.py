"""Instructor balance, withdrawal and earnings endpoints."""

from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from coursepay.core.config import settings
from coursepay.models import Withdrawal
from coursepay.schemas.payment_schemas import ConfirmedPaymentEvent
from coursepay.services.settlement_service import SettlementService

pytestmark = pytest.mark.integration

PAYOUT = {
    "accountName": "Hana Tesfaye",
    "accountNumber": "1000123456789",
    "bankCode": "946",
    "bankName": "Commercial Bank of Ethiopia",
}


@pytest.fixture
def earned(db, pending_payment, instructor, monkeypatch):
    """Instructor credited 800.00 by settling ABC-1; payouts simulated."""
    monkeypatch.setattr(settings, "simulate_payouts", True)
    SettlementService(db).settle(
        ConfirmedPaymentEvent(reference="ABC-1", raw_payload={}, source="verification")
    )
    return instructor


def test_balance(client, earned, auth_headers_for):
    response = client.get("/withdrawals/balance", headers=auth_headers_for(earned))

    assert response.status_code == 200
    assert response.json() == {"balance": "800.00", "range": "all"}


def test_balance_with_range(client, earned, auth_headers_for):
    response = client.get("/withdrawals/balance?range=30d", headers=auth_headers_for(earned))

    assert response.status_code == 200
    assert response.json() == {"balance": "800.00", "range": "30d"}


def test_balance_rejects_unknown_range(client, earned, auth_headers_for):
    response = client.get("/withdrawals/balance?range=forever", headers=auth_headers_for(earned))

    assert response.status_code == 400


def test_overdraw_returns_insufficient_balance(client, db, earned, auth_headers_for):
    response = client.post(
        "/withdrawals/request",
        json={"amount": "900", "payoutDetails": PAYOUT},
        headers=auth_headers_for(earned),
    )

    assert response.status_code == 400
    problem = response.json()
    assert problem["detail"] == "Insufficient balance"
    assert problem["code"] == "INSUFFICIENT_BALANCE"
    assert db.scalar(select(func.count()).select_from(Withdrawal)) == 0


def test_withdraw_and_history(client, earned, auth_headers_for):
    headers = auth_headers_for(earned)

    response = client.post(
        "/withdrawals/request", json={"amount": "300", "payoutDetails": PAYOUT}, headers=headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["remaining_balance"] == "500.00"
    assert data["withdrawal"]["status"] == "success"
    assert data["withdrawal"]["amount"] == "300.00"
    assert data["withdrawal"]["bank_name"] == "Commercial Bank of Ethiopia"

    balance = client.get("/withdrawals/balance", headers=headers).json()
    assert balance["balance"] == "500.00"

    history = client.get("/withdrawals/history", headers=headers).json()
    assert [w["id"] for w in history["withdrawals"]] == [data["withdrawal"]["id"]]


def test_missing_payout_details_is_400(client, earned, auth_headers_for):
    response = client.post(
        "/withdrawals/request", json={"amount": "100"}, headers=auth_headers_for(earned)
    )

    assert response.status_code == 400


def test_earnings(client, earned, course, auth_headers_for):
    response = client.get("/withdrawals/earnings", headers=auth_headers_for(earned))

    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == {
        "total_instructor_earnings": "800.00",
        "total_platform_revenue": "200.00",
        "total_received": "1000.00",
    }
    assert data["per_course_revenue"] == [
        {
            "course_id": course.id,
            "course_title": course.title,
            "total_earnings": "800.00",
            "total_payments": 1,
            "student_count": 1,
        }
    ]


def test_earnings_outside_window_is_empty(client, earned, auth_headers_for):
    start = date.today() - timedelta(days=30)
    end = date.today() - timedelta(days=10)

    response = client.get(
        f"/withdrawals/earnings?start_date={start}&end_date={end}",
        headers=auth_headers_for(earned),
    )

    assert response.status_code == 200
    assert response.json()["summary"]["total_received"] == "0.00"
    assert response.json()["per_course_revenue"] == []


def test_earnings_rejects_inverted_window(client, earned, auth_headers_for):
    response = client.get(
        "/withdrawals/earnings?start_date=2024-02-01&end_date=2024-01-01",
        headers=auth_headers_for(earned),
    )

    assert response.status_code == 400


def test_students_cannot_see_balances(client, student, auth_headers_for):
    response = client.get("/withdrawals/balance", headers=auth_headers_for(student))

    assert response.status_code == 403
