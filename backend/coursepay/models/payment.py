"""
Payment and settlement records.

A Payment is the student's intent to buy a course, keyed by the processor
reference. A Transaction is the revenue split written exactly once when that
payment is confirmed; the unique index on ``transactions.payment_id`` is what
stops duplicate confirmations from splitting the same money twice.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..constants.payment_status import TRANSACTION_STATUS_COMPLETED, PaymentStatus
from ..database import Base
from ._columns import JSONPayload, Money, now_utc


class Payment(Base):
    """A student's payment for a course, tracked by processor reference."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("ix_payments_student_id", "student_id"),
        Index("ix_payments_course_id", "course_id"),
        Index("ix_payments_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    student_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    course_id: Mapped[str] = mapped_column(String(26), ForeignKey("courses.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reference: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    processor_payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONPayload, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, server_default=func.now()
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Payment(reference={self.reference}, status={self.status}, amount={self.amount})>"


class Transaction(Base):
    """Immutable revenue split for one settled payment."""

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_transactions_payment_id"),
        Index("ix_transactions_instructor_created", "instructor_id", "created_at"),
        Index("ix_transactions_course_id", "course_id"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    payment_id: Mapped[str] = mapped_column(String(26), ForeignKey("payments.id"), nullable=False)
    student_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    instructor_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    course_id: Mapped[str] = mapped_column(String(26), ForeignKey("courses.id"), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Money, nullable=False)
    instructor_share: Mapped[Decimal] = mapped_column(Money, nullable=False)
    platform_share: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TRANSACTION_STATUS_COMPLETED
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(payment_id={self.payment_id}, instructor={self.instructor_share}, "
            f"platform={self.platform_share})>"
        )
