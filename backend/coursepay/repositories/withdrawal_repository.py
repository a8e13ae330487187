"""Withdrawal rows and the reserved-funds aggregate."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..constants.payment_status import BALANCE_RESERVING_WITHDRAWAL_STATUSES
from ..domain.date_range import DateRange
from ..models.withdrawal import Withdrawal
from .base_repository import BaseRepository


class WithdrawalRepository(BaseRepository[Withdrawal]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Withdrawal)

    def sum_reserved(self, instructor_id: str, date_range: Optional[DateRange] = None) -> Decimal:
        """Total of withdrawals that still count against the balance (pending or paid out)."""
        query = select(func.coalesce(func.sum(Withdrawal.amount), 0)).where(
            Withdrawal.instructor_id == instructor_id,
            Withdrawal.status.in_(BALANCE_RESERVING_WITHDRAWAL_STATUSES),
        )
        if date_range is not None:
            if date_range.start is not None:
                query = query.where(Withdrawal.created_at >= date_range.start)
            if date_range.end is not None:
                query = query.where(Withdrawal.created_at <= date_range.end)
        return Decimal(str(self._execute_scalar(query) or 0))

    def list_for_instructor(self, instructor_id: str, limit: int = 100) -> list[Withdrawal]:
        query = (
            select(Withdrawal)
            .where(Withdrawal.instructor_id == instructor_id)
            .order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())
            .limit(limit)
        )
        return self._execute_query(query)
