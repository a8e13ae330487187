"""Enrollment store keyed by (student, course)."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.enrollment import Enrollment
from .base_repository import BaseRepository


class EnrollmentRepository(BaseRepository[Enrollment]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Enrollment)

    def get_for_student_course(self, student_id: str, course_id: str) -> Optional[Enrollment]:
        return self.find_one_by(student_id=student_id, course_id=course_id)

    def get_or_create(
        self, *, student_id: str, course_id: str, payment_id: Optional[str] = None
    ) -> tuple[Enrollment, bool]:
        """Return ``(enrollment, created)``; a lost insert race re-reads the winner's row."""
        existing = self.get_for_student_course(student_id, course_id)
        if existing is not None:
            return existing, False
        try:
            created = self.create_in_savepoint(
                student_id=student_id, course_id=course_id, payment_id=payment_id
            )
        except IntegrityError:
            winner = self.get_for_student_course(student_id, course_id)
            if winner is None:
                raise
            return winner, False
        return created, True
