# backend/coursepay/services/balance_service.py
"""
Instructor balance ledger (read-only).

The balance is derived on every read rather than stored:

    sum(instructor_share on the instructor's active courses)
  - sum(withdrawals that are pending or paid out)

Instructors whose earnings predate transaction rows only have the legacy
``users.available_balance`` accumulator, so a zero transaction sum falls
back to that scalar. The result is clamped at zero.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..domain.date_range import DateRange
from ..domain.revenue_split import quantize_money
from ..repositories.payment_repository import TransactionRepository
from ..repositories.user_repository import UserRepository
from ..repositories.withdrawal_repository import WithdrawalRepository
from ..schemas.withdrawal_schemas import CourseRevenue, EarningsResponse, EarningsSummary
from .base import BaseService

ZERO = Decimal("0.00")


class BalanceService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.transactions = TransactionRepository(db)
        self.withdrawals = WithdrawalRepository(db)
        self.users = UserRepository(db)

    @BaseService.measure_operation("compute_balance")
    def compute_balance(
        self, instructor_id: str, date_range: Optional[DateRange] = None
    ) -> Decimal:
        earned = self.transactions.sum_instructor_share(instructor_id, date_range)
        if earned == 0:
            instructor = self.users.get_fresh(instructor_id)
            if instructor is None:
                raise NotFoundException(
                    "Instructor not found", details={"instructor_id": instructor_id}
                )
            # The legacy accumulator already nets out withdrawals.
            return max(ZERO, quantize_money(instructor.available_balance or 0))

        reserved = self.withdrawals.sum_reserved(instructor_id, date_range)
        return max(ZERO, quantize_money(earned - reserved))

    @BaseService.measure_operation("earnings_summary")
    def earnings_summary(
        self, instructor_id: str, date_range: Optional[DateRange] = None
    ) -> EarningsResponse:
        """Totals and per-course revenue for the instructor dashboard."""
        totals = self.transactions.earnings_totals(instructor_id, date_range)
        per_course = self.transactions.revenue_by_course(instructor_id, date_range)
        return EarningsResponse(
            summary=EarningsSummary(
                **{key: quantize_money(value) for key, value in totals.items()}
            ),
            per_course_revenue=[
                CourseRevenue(**{**row, "total_earnings": quantize_money(row["total_earnings"])})
                for row in per_course
            ],
        )
