"""Instructor payout requests."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..constants.payment_status import WithdrawalStatus
from ..database import Base
from ._columns import Money, now_utc


class Withdrawal(Base):
    """
    A payout request against the instructor's derived balance.

    ``pending`` means the processor outcome is unknown (timeout or outage);
    the amount keeps counting against the balance until an operator resolves it.
    """

    __tablename__ = "withdrawals"

    __table_args__ = (Index("ix_withdrawals_instructor_created", "instructor_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    instructor_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WithdrawalStatus.PENDING.value
    )
    reference: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    response_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Withdrawal(reference={self.reference}, status={self.status}, amount={self.amount})>"
