"""User accounts participating in payments: students pay, instructors earn."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..constants.payment_status import UserRole
from ..database import Base
from ._columns import Money, now_utc


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.STUDENT.value)
    # Legacy running total, incremented on settlement and decremented on withdrawal.
    # The derived balance falls back to it when an instructor has no transactions.
    available_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, server_default=func.now()
    )

    @property
    def is_instructor(self) -> bool:
        return self.role == UserRole.INSTRUCTOR.value

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT.value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"
