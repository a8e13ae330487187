# backend/coursepay/services/settlement_service.py
"""
Settlement engine.

Turns a confirmed payment into its financial effects: the payment record is
marked successful, the revenue split is written, the instructor's running
balance is credited and the student is enrolled. Both confirmation paths
(webhook push and client-triggered verification) end up here, usually for
the same reference, so every step tolerates having already happened.

Correctness under concurrency comes from the database, in this order:
    1. conditional status update (only one caller flips pending -> success)
    2. unique index on ``transactions.payment_id``
    3. unique index on ``enrollments(student_id, course_id)``
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from ..constants.payment_status import TRANSACTION_STATUS_COMPLETED, PaymentStatus
from ..core.config import settings
from ..core.exceptions import (
    DuplicateSettlementError,
    PaymentNotFoundException,
    ReconciliationRequiredException,
)
from ..domain.revenue_split import compute_revenue_split
from ..models.payment import Payment
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.course_repository import CourseRepository
from ..repositories.enrollment_repository import EnrollmentRepository
from ..repositories.payment_repository import PaymentRepository, TransactionRepository
from ..repositories.user_repository import UserRepository
from ..schemas.payment_schemas import ConfirmedPaymentEvent
from .base import BaseService
from .notification_service import NotificationService


class SettlementOutcome(str, Enum):
    SETTLED = "settled"
    ALREADY_SETTLED = "already_settled"


@dataclass(frozen=True)
class SettlementResult:
    outcome: SettlementOutcome
    reference: str
    payment_id: Optional[str] = None
    transaction_id: Optional[str] = None
    enrollment_id: Optional[str] = None

    @property
    def settled_now(self) -> bool:
        return self.outcome is SettlementOutcome.SETTLED


@dataclass(frozen=True)
class _EnrollmentNotice:
    to_email: str
    student_name: str
    course_title: str
    reference: str


class SettlementService(BaseService):
    """Idempotent settlement of confirmed payments."""

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationService] = None,
        instructor_share_ratio: Optional[Decimal] = None,
    ):
        super().__init__(db)
        self.notifier = notifier
        self.instructor_share_ratio = instructor_share_ratio or settings.instructor_share_ratio
        self.payments = PaymentRepository(db)
        self.transactions = TransactionRepository(db)
        self.enrollments = EnrollmentRepository(db)
        self.courses = CourseRepository(db)
        self.users = UserRepository(db)

    @BaseService.measure_operation("settle")
    def settle(self, event: ConfirmedPaymentEvent) -> SettlementResult:
        """
        Apply a confirmed payment exactly once.

        Returns ``ALREADY_SETTLED`` for every repeat, including repeats that lose
        a race at the database constraint. All writes share one transaction,
        so a failure part-way leaves the payment unsettled and retryable.

        Raises:
            PaymentNotFoundException: no payment carries this reference
            ReconciliationRequiredException: course/instructor data is missing;
                needs an operator, must not be retried blindly
        """
        reference = event.reference
        notice: Optional[_EnrollmentNotice] = None
        try:
            with self.transaction():
                result, notice = self._settle_in_transaction(event)
        except PaymentNotFoundException:
            prometheus_metrics.inc_settlement(event.source, "not_found")
            raise
        except ReconciliationRequiredException as exc:
            prometheus_metrics.inc_settlement(event.source, "reconciliation_required")
            self.logger.critical(
                "Settlement halted for %s: %s",
                reference,
                exc.reason,
                extra={"evt": "settlement_reconciliation_required", "reference": reference},
            )
            raise

        prometheus_metrics.inc_settlement(event.source, result.outcome.value)
        if notice is not None:
            self._send_enrollment_notice(notice)
        return result

    def _already_settled(
        self, payment: Payment, transaction_id: Optional[str] = None, *, why: str
    ) -> SettlementResult:
        self.logger.info(
            "Payment %s already settled (%s)",
            payment.reference,
            why,
            extra={"evt": "settlement_already_settled", "reference": payment.reference},
        )
        return SettlementResult(
            outcome=SettlementOutcome.ALREADY_SETTLED,
            reference=payment.reference,
            payment_id=payment.id,
            transaction_id=transaction_id,
        )

    def _settle_in_transaction(
        self, event: ConfirmedPaymentEvent
    ) -> tuple[SettlementResult, Optional[_EnrollmentNotice]]:
        reference = event.reference
        payment = self.payments.get_by_reference(reference)
        if payment is None:
            self.logger.warning(
                "Confirmation for unknown reference %s via %s",
                reference,
                event.source,
                extra={"evt": "settlement_payment_not_found", "reference": reference},
            )
            raise PaymentNotFoundException(reference)

        if payment.status == PaymentStatus.SUCCESS.value:
            return self._already_settled(payment, why="status gate"), None

        if not self.payments.mark_succeeded_if_unsettled(
            reference,
            processor_payload=event.raw_payload,
            verified_at=datetime.now(timezone.utc),
        ):
            self.db.refresh(payment)
            return self._already_settled(payment, why="lost status update"), None
        self.db.refresh(payment)

        existing = self.transactions.get_by_payment_id(payment.id)
        if existing is not None:
            return self._already_settled(payment, existing.id, why="transaction exists"), None

        course = self.courses.get_by_id(payment.course_id)
        if course is None:
            raise ReconciliationRequiredException(
                reference, "course not found", course_id=payment.course_id
            )
        if not course.instructor_id:
            raise ReconciliationRequiredException(
                reference, "course has no instructor", course_id=course.id
            )
        instructor = self.users.get_by_id(course.instructor_id)
        if instructor is None:
            raise ReconciliationRequiredException(
                reference,
                "instructor account not found",
                course_id=course.id,
                instructor_id=course.instructor_id,
            )

        split = compute_revenue_split(payment.amount, self.instructor_share_ratio)
        try:
            transaction = self.transactions.create_for_payment(
                payment_id=payment.id,
                student_id=payment.student_id,
                instructor_id=instructor.id,
                course_id=course.id,
                amount_paid=split.amount_paid,
                instructor_share=split.instructor_share,
                platform_share=split.platform_share,
                status=TRANSACTION_STATUS_COMPLETED,
            )
        except DuplicateSettlementError:
            return self._already_settled(payment, why="unique index on payment_id"), None

        self.users.adjust_available_balance(instructor.id, split.instructor_share)

        enrollment, created = self.enrollments.get_or_create(
            student_id=payment.student_id, course_id=course.id, payment_id=payment.id
        )

        self.logger.info(
            "Settled payment %s: instructor %s, platform %s",
            reference,
            split.instructor_share,
            split.platform_share,
            extra={
                "evt": "settlement_settled",
                "reference": reference,
                "source": event.source,
                "transaction_id": transaction.id,
                "enrollment_created": created,
            },
        )

        notice = None
        student = self.users.get_by_id(payment.student_id)
        if created and student is not None and student.email:
            notice = _EnrollmentNotice(
                to_email=student.email,
                student_name=student.full_name,
                course_title=course.title,
                reference=reference,
            )
        result = SettlementResult(
            outcome=SettlementOutcome.SETTLED,
            reference=reference,
            payment_id=payment.id,
            transaction_id=transaction.id,
            enrollment_id=enrollment.id,
        )
        return result, notice

    def _send_enrollment_notice(self, notice: _EnrollmentNotice) -> None:
        if self.notifier is None:
            return
        sent = self.notifier.send_enrollment_confirmation(
            to_email=notice.to_email,
            student_name=notice.student_name,
            course_title=notice.course_title,
            reference=notice.reference,
        )
        if not sent:
            self.logger.warning(
                "Enrollment email not delivered for %s",
                notice.reference,
                extra={"evt": "settlement_email_failed", "reference": notice.reference},
            )
