# backend/coursepay/services/withdrawal_service.py
"""
Instructor withdrawals.

A request runs in three short steps so the instructor row lock is never held
across a processor call:

1. Lock the instructor, check the derived balance, insert the withdrawal as
   ``pending`` and debit the legacy accumulator. Pending withdrawals count
   against the balance, so the funds are reserved once this commits.
2. Call the payout primitive (or simulate it outside production).
3. Record the outcome. ``success`` keeps the reservation, an explicit
   rejection marks the row ``failed`` and releases it, and an unreachable
   processor leaves it ``pending`` for manual reconciliation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..constants.payment_status import WithdrawalStatus
from ..core.config import settings
from ..core.exceptions import (
    InsufficientBalanceException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from ..core.ulid_helper import generate_ulid
from ..domain.revenue_split import quantize_money
from ..integrations.chapa_client import ChapaClient, GatewayError, GatewayUnavailable
from ..models.withdrawal import Withdrawal
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.user_repository import UserRepository
from ..repositories.withdrawal_repository import WithdrawalRepository
from ..schemas.withdrawal_schemas import PayoutDetails
from .balance_service import BalanceService
from .base import BaseService

SIMULATED_PAYOUT_MESSAGE = "Simulated payout (payouts disabled in this environment)"


@dataclass(frozen=True)
class WithdrawalOutcome:
    withdrawal: Withdrawal
    remaining_balance: Decimal


def new_withdrawal_reference(prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.reference_prefix}-WD-{generate_ulid()}"


class WithdrawalService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: Optional[ChapaClient],
        balance_service: BalanceService,
        simulate_payouts: Optional[bool] = None,
    ):
        super().__init__(db)
        self.gateway = gateway
        self.balance_service = balance_service
        self.simulate_payouts = (
            settings.simulate_payouts if simulate_payouts is None else simulate_payouts
        )
        self.users = UserRepository(db)
        self.withdrawals = WithdrawalRepository(db)

    @BaseService.measure_operation("request_withdrawal")
    def request_withdrawal(
        self,
        instructor_id: str,
        amount: Decimal,
        payout_details: PayoutDetails,
    ) -> WithdrawalOutcome:
        """
        Reserve funds and pay them out.

        Raises:
            ValidationException: amount is zero or negative
            InsufficientBalanceException: amount exceeds the derived balance;
                no withdrawal row is written
            ServiceException: real payouts are enabled but no gateway is configured
        """
        amount = quantize_money(amount)
        if amount <= 0:
            raise ValidationException(
                "Withdrawal amount must be greater than zero",
                code="INVALID_AMOUNT",
                details={"amount": str(amount)},
            )
        if not self.simulate_payouts and self.gateway is None:
            self.logger.error("Payouts enabled but payment gateway is not configured")
            raise ServiceException(
                "Payment processor is not configured", code="GATEWAY_NOT_CONFIGURED"
            )

        with self.transaction():
            instructor = self.users.get_fresh(instructor_id, for_update=True)
            if instructor is None:
                raise NotFoundException(
                    "Instructor not found", details={"instructor_id": instructor_id}
                )
            available = self.balance_service.compute_balance(instructor_id)
            if amount > available:
                prometheus_metrics.inc_withdrawal("rejected")
                self.logger.info(
                    "Withdrawal of %s rejected for %s: balance %s",
                    amount,
                    instructor_id,
                    available,
                    extra={"evt": "withdrawal_insufficient_balance", "instructor_id": instructor_id},
                )
                raise InsufficientBalanceException(requested=amount, available=available)

            withdrawal = self.withdrawals.create(
                instructor_id=instructor_id,
                amount=amount,
                status=WithdrawalStatus.PENDING.value,
                reference=new_withdrawal_reference(),
                bank_name=payout_details.bank_name,
                account_number=payout_details.account_number,
            )
            self.users.adjust_available_balance(instructor_id, -amount)

        status, message = self._execute_payout(withdrawal, instructor.full_name, payout_details)

        with self.transaction():
            withdrawal.status = status
            withdrawal.response_message = message
            if status == WithdrawalStatus.FAILED.value:
                self.users.adjust_available_balance(instructor_id, amount)
            self.withdrawals.flush()

        prometheus_metrics.inc_withdrawal(status)
        self.logger.info(
            "Withdrawal %s finished with status %s",
            withdrawal.reference,
            status,
            extra={
                "evt": "withdrawal_completed",
                "reference": withdrawal.reference,
                "instructor_id": instructor_id,
            },
        )
        remaining = self.balance_service.compute_balance(instructor_id)
        return WithdrawalOutcome(withdrawal=withdrawal, remaining_balance=remaining)

    def _execute_payout(
        self, withdrawal: Withdrawal, instructor_name: str, payout_details: PayoutDetails
    ) -> tuple[str, str]:
        if self.simulate_payouts:
            return WithdrawalStatus.SUCCESS.value, SIMULATED_PAYOUT_MESSAGE

        assert self.gateway is not None
        try:
            response = self.gateway.transfer(
                account_name=payout_details.account_name or instructor_name,
                account_number=payout_details.account_number,
                bank_code=payout_details.bank_code,
                amount=withdrawal.amount,
                reference=withdrawal.reference,
            )
        except GatewayUnavailable as exc:
            self.logger.error(
                "Payout outcome unknown for %s: %s",
                withdrawal.reference,
                exc,
                extra={"evt": "withdrawal_gateway_unavailable", "reference": withdrawal.reference},
            )
            return WithdrawalStatus.PENDING.value, exc.processor_message
        except GatewayError as exc:
            self.logger.warning(
                "Payout rejected for %s: %s",
                withdrawal.reference,
                exc.processor_message,
                extra={"evt": "withdrawal_rejected", "reference": withdrawal.reference},
            )
            return WithdrawalStatus.FAILED.value, exc.processor_message

        message = response.get("message")
        return WithdrawalStatus.SUCCESS.value, message if isinstance(message, str) else "Transfer queued"

    @BaseService.measure_operation("list_withdrawals")
    def list_history(self, instructor_id: str, limit: int = 100) -> list[Withdrawal]:
        return self.withdrawals.list_for_instructor(instructor_id, limit=limit)
