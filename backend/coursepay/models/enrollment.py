"""Course enrollment granted by a settled payment."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..database import Base
from ._columns import now_utc


class Enrollment(Base):
    __tablename__ = "enrollments"

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    student_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    course_id: Mapped[str] = mapped_column(String(26), ForeignKey("courses.id"), nullable=False)
    payment_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("payments.id"), nullable=True
    )
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, server_default=func.now()
    )
