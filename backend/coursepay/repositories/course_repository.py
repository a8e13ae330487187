"""Course lookups used by payment initiation and settlement."""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..models.course import Course
from .base_repository import BaseRepository


class CourseRepository(BaseRepository[Course]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Course)
