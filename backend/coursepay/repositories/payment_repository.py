"""Data access for payments and their settlement transactions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import distinct, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants.payment_status import PaymentStatus
from ..core.exceptions import DuplicateSettlementError, RepositoryException
from ..domain.date_range import DateRange
from ..models.course import Course
from ..models.payment import Payment, Transaction
from .base_repository import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    """Payment record store keyed by processor reference."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, Payment)

    def get_by_reference(self, reference: str) -> Optional[Payment]:
        return self.find_one_by(reference=reference)

    def mark_succeeded_if_unsettled(
        self,
        reference: str,
        *,
        processor_payload: dict[str, Any],
        verified_at: datetime,
    ) -> bool:
        """
        Conditionally move a payment to ``success``.

        Returns False when no row changed, i.e. another caller already
        settled the reference between our read and this write.
        """
        try:
            result = self.db.execute(
                update(Payment)
                .where(
                    Payment.reference == reference,
                    Payment.status != PaymentStatus.SUCCESS.value,
                )
                .values(
                    status=PaymentStatus.SUCCESS.value,
                    processor_payload=processor_payload,
                    verified_at=verified_at,
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error marking payment {reference} successful: {str(e)}")
            raise RepositoryException(f"Failed to update payment {reference}: {str(e)}")
        return bool(result.rowcount)

    def mark_failed(self, payment: Payment, *, processor_payload: Any = None) -> Payment:
        if payment.status == PaymentStatus.PENDING.value:
            payment.status = PaymentStatus.FAILED.value
            if isinstance(processor_payload, dict):
                payment.processor_payload = processor_payload
            self.flush()
        return payment


class TransactionRepository(BaseRepository[Transaction]):
    """Revenue split rows plus the aggregates the balance ledger reads."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, Transaction)

    def get_by_payment_id(self, payment_id: str) -> Optional[Transaction]:
        return self.find_one_by(payment_id=payment_id)

    def create_for_payment(self, **values: Any) -> Transaction:
        """
        Insert the split row for a payment.

        Raises:
            DuplicateSettlementError: the unique index on ``payment_id`` already
                holds a row, so a concurrent settlement won.
        """
        try:
            return self.create_in_savepoint(**values)
        except IntegrityError as exc:
            raise DuplicateSettlementError(
                f"Transaction already exists for payment {values.get('payment_id')}"
            ) from exc

    def _apply_range(self, query, column, date_range: Optional[DateRange]):
        if date_range is None:
            return query
        if date_range.start is not None:
            query = query.where(column >= date_range.start)
        if date_range.end is not None:
            query = query.where(column <= date_range.end)
        return query

    def sum_instructor_share(
        self, instructor_id: str, date_range: Optional[DateRange] = None
    ) -> Decimal:
        """Sum instructor earnings over the instructor's currently active courses."""
        query = (
            select(func.coalesce(func.sum(Transaction.instructor_share), 0))
            .join(Course, Course.id == Transaction.course_id)
            .where(
                Transaction.instructor_id == instructor_id,
                Course.instructor_id == instructor_id,
                Course.is_active.is_(True),
            )
        )
        query = self._apply_range(query, Transaction.created_at, date_range)
        return Decimal(str(self._execute_scalar(query) or 0))

    def earnings_totals(
        self, instructor_id: str, date_range: Optional[DateRange] = None
    ) -> dict[str, Decimal]:
        query = select(
            func.coalesce(func.sum(Transaction.instructor_share), 0),
            func.coalesce(func.sum(Transaction.platform_share), 0),
            func.coalesce(func.sum(Transaction.amount_paid), 0),
        ).where(Transaction.instructor_id == instructor_id)
        query = self._apply_range(query, Transaction.created_at, date_range)
        try:
            instructor_total, platform_total, received_total = self.db.execute(query).one()
        except SQLAlchemyError as e:
            self.logger.error(f"Earnings totals query failed for {instructor_id}: {str(e)}")
            raise RepositoryException(f"Failed to load earnings totals: {str(e)}")
        return {
            "total_instructor_earnings": Decimal(str(instructor_total or 0)),
            "total_platform_revenue": Decimal(str(platform_total or 0)),
            "total_received": Decimal(str(received_total or 0)),
        }

    def revenue_by_course(
        self, instructor_id: str, date_range: Optional[DateRange] = None
    ) -> list[dict[str, Any]]:
        query = (
            select(
                Transaction.course_id,
                Course.title,
                func.coalesce(func.sum(Transaction.instructor_share), 0),
                func.count(Transaction.id),
                func.count(distinct(Transaction.student_id)),
            )
            .join(Course, Course.id == Transaction.course_id)
            .where(Transaction.instructor_id == instructor_id)
            .group_by(Transaction.course_id, Course.title)
            .order_by(func.sum(Transaction.instructor_share).desc())
        )
        query = self._apply_range(query, Transaction.created_at, date_range)
        try:
            rows = self.db.execute(query).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Per-course revenue query failed for {instructor_id}: {str(e)}")
            raise RepositoryException(f"Failed to load per-course revenue: {str(e)}")
        return [
            {
                "course_id": course_id,
                "course_title": title,
                "total_earnings": Decimal(str(earned or 0)),
                "total_payments": int(payments),
                "student_count": int(students),
            }
            for course_id, title, earned, payments, students in rows
        ]
