"""Withdrawal handler: reservation, payout outcomes and release on rejection."""

from decimal import Decimal

import httpx
import pytest
from sqlalchemy import func, select

from coursepay.constants.payment_status import WithdrawalStatus
from coursepay.core.exceptions import (
    InsufficientBalanceException,
    ServiceException,
    ValidationException,
)
from coursepay.models import User, Withdrawal
from coursepay.schemas.payment_schemas import ConfirmedPaymentEvent
from coursepay.schemas.withdrawal_schemas import PayoutDetails
from coursepay.services.balance_service import BalanceService
from coursepay.services.settlement_service import SettlementService
from coursepay.services.withdrawal_service import SIMULATED_PAYOUT_MESSAGE, WithdrawalService

pytestmark = pytest.mark.integration

PAYOUT = PayoutDetails(
    account_name="Hana Tesfaye",
    account_number="1000123456789",
    bank_code="946",
    bank_name="Commercial Bank of Ethiopia",
)


@pytest.fixture
def funded_instructor(db, pending_payment, instructor):
    """Instructor with 800.00 earned from the ABC-1 settlement."""
    SettlementService(db).settle(
        ConfirmedPaymentEvent(reference="ABC-1", raw_payload={}, source="webhook")
    )
    return instructor


def _service(db, gateway=None, *, simulate: bool) -> WithdrawalService:
    return WithdrawalService(db, gateway, BalanceService(db), simulate_payouts=simulate)


def _withdrawal_count(db) -> int:
    return db.scalar(select(func.count()).select_from(Withdrawal))


def _legacy_balance(db, user_id: str) -> Decimal:
    return db.scalar(select(User.available_balance).where(User.id == user_id))


def test_overdraw_is_rejected_without_row(db, funded_instructor):
    with pytest.raises(InsufficientBalanceException) as exc_info:
        _service(db, simulate=True).request_withdrawal(
            funded_instructor.id, Decimal("900"), PAYOUT
        )

    assert exc_info.value.message == "Insufficient balance"
    assert exc_info.value.details == {"requested": "900.00", "available": "800.00"}
    assert _withdrawal_count(db) == 0
    assert _legacy_balance(db, funded_instructor.id) == Decimal("800.00")


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_amount_is_rejected(db, funded_instructor, amount):
    with pytest.raises(ValidationException) as exc_info:
        _service(db, simulate=True).request_withdrawal(
            funded_instructor.id, Decimal(amount), PAYOUT
        )

    assert exc_info.value.code == "INVALID_AMOUNT"
    assert _withdrawal_count(db) == 0


def test_simulated_payout_succeeds_and_reserves(db, funded_instructor):
    outcome = _service(db, simulate=True).request_withdrawal(
        funded_instructor.id, Decimal("300"), PAYOUT
    )

    assert outcome.withdrawal.status == WithdrawalStatus.SUCCESS.value
    assert outcome.withdrawal.response_message == SIMULATED_PAYOUT_MESSAGE
    assert outcome.withdrawal.bank_name == "Commercial Bank of Ethiopia"
    assert outcome.remaining_balance == Decimal("500.00")
    assert _legacy_balance(db, funded_instructor.id) == Decimal("500.00")


def test_withdraw_full_balance_then_nothing_left(db, funded_instructor):
    service = _service(db, simulate=True)
    service.request_withdrawal(funded_instructor.id, Decimal("800"), PAYOUT)

    with pytest.raises(InsufficientBalanceException):
        service.request_withdrawal(funded_instructor.id, Decimal("0.01"), PAYOUT)
    assert _withdrawal_count(db) == 1


def test_real_payout_success(db, funded_instructor, chapa_stub, gateway):
    outcome = _service(db, gateway, simulate=False).request_withdrawal(
        funded_instructor.id, Decimal("200"), PAYOUT
    )

    assert outcome.withdrawal.status == WithdrawalStatus.SUCCESS.value
    assert outcome.withdrawal.response_message == "Transfer Queued Successfully"
    assert outcome.remaining_balance == Decimal("600.00")
    assert chapa_stub.paths() == ["/v1/transfers"]


def test_rejected_payout_is_failed_and_released(db, funded_instructor, chapa_stub, gateway):
    chapa_stub.transfer = httpx.Response(
        200, json={"status": "failed", "message": "Invalid account number"}
    )

    outcome = _service(db, gateway, simulate=False).request_withdrawal(
        funded_instructor.id, Decimal("200"), PAYOUT
    )

    assert outcome.withdrawal.status == WithdrawalStatus.FAILED.value
    assert outcome.withdrawal.response_message == "Invalid account number"
    assert outcome.remaining_balance == Decimal("800.00")
    assert _legacy_balance(db, funded_instructor.id) == Decimal("800.00")


def test_unreachable_processor_leaves_withdrawal_pending(
    db, funded_instructor, chapa_stub, gateway
):
    chapa_stub.transfer = httpx.ConnectTimeout("timed out")

    outcome = _service(db, gateway, simulate=False).request_withdrawal(
        funded_instructor.id, Decimal("200"), PAYOUT
    )

    assert outcome.withdrawal.status == WithdrawalStatus.PENDING.value
    # Outcome unknown: the funds stay reserved.
    assert outcome.remaining_balance == Decimal("600.00")


def test_real_payouts_without_gateway_fail_fast(db, funded_instructor):
    with pytest.raises(ServiceException) as exc_info:
        _service(db, None, simulate=False).request_withdrawal(
            funded_instructor.id, Decimal("100"), PAYOUT
        )

    assert exc_info.value.code == "GATEWAY_NOT_CONFIGURED"
    assert _withdrawal_count(db) == 0


def test_history_is_newest_first(db, funded_instructor):
    service = _service(db, simulate=True)
    first = service.request_withdrawal(funded_instructor.id, Decimal("100"), PAYOUT).withdrawal
    second = service.request_withdrawal(funded_instructor.id, Decimal("50"), PAYOUT).withdrawal

    history = service.list_history(funded_instructor.id)

    assert [w.id for w in history] == [second.id, first.id]
