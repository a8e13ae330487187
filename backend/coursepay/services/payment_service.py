# backend/coursepay/services/payment_service.py
"""
Payment initiation and client-triggered verification.

Initiation persists a pending Payment before talking to the processor so a
checkout can never exist without a local record. Verification is the second
confirmation path next to the webhook; when the processor says the reference
is paid it hands off to the same settlement engine.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import NotFoundException, ServiceException, ValidationException
from ..core.ulid_helper import generate_ulid
from ..domain.revenue_split import quantize_money
from ..integrations.chapa_client import ChapaClient, GatewayError, GatewayUnavailable
from ..models.user import User
from ..repositories.course_repository import CourseRepository
from ..repositories.payment_repository import PaymentRepository
from ..schemas.payment_schemas import (
    ConfirmedPaymentEvent,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentResponse,
    SettlementResponse,
    VerifyPaymentResponse,
)
from .base import BaseService
from .settlement_service import SettlementService


def new_payment_reference(prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.reference_prefix}-{generate_ulid()}"


class PaymentService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: Optional[ChapaClient],
        settlement_service: SettlementService,
    ):
        super().__init__(db)
        self.gateway = gateway
        self.settlement_service = settlement_service
        self.payments = PaymentRepository(db)
        self.courses = CourseRepository(db)

    def _require_gateway(self) -> ChapaClient:
        if self.gateway is None:
            self.logger.error("Payment gateway is not configured (CHAPA_SECRET_KEY missing)")
            raise ServiceException(
                "Payment processor is not configured", code="GATEWAY_NOT_CONFIGURED"
            )
        return self.gateway

    @BaseService.measure_operation("initiate_payment")
    def initiate_payment(
        self, student: User, request: InitiatePaymentRequest
    ) -> InitiatePaymentResponse:
        """
        Create a pending payment and a hosted checkout for it.

        An explicit processor rejection marks the payment ``failed``. When the
        processor is unreachable the outcome is unknown, so the payment stays
        ``pending`` and can still be confirmed later.
        """
        gateway = self._require_gateway()

        course = self.courses.get_by_id(request.course_id)
        if course is None:
            raise NotFoundException("Course not found", details={"course_id": request.course_id})
        if not course.is_active:
            raise ValidationException(
                "Course is not available for purchase", details={"course_id": course.id}
            )
        amount = quantize_money(request.amount)
        # Free-priced (0) catalog entries accept any positive amount.
        price = quantize_money(course.price or 0)
        if price > 0 and amount != price:
            raise ValidationException(
                "Amount does not match course price",
                code="AMOUNT_MISMATCH",
                details={"expected": str(price), "received": str(amount)},
            )

        reference = new_payment_reference()
        with self.transaction():
            payment = self.payments.create(
                student_id=student.id,
                course_id=course.id,
                amount=amount,
                reference=reference,
            )
        self.log_operation("payment_initiated", reference=reference, course_id=course.id)

        try:
            checkout_url = gateway.initialize(
                amount=amount,
                email=request.email,
                full_name=request.full_name,
                reference=reference,
                callback_url=settings.webhook_callback_url,
                return_url=settings.payment_return_url(course.id, reference),
                title=course.title,
            )
        except GatewayUnavailable as exc:
            self.logger.error(
                "Processor unavailable while initializing %s: %s",
                reference,
                exc,
                extra={"evt": "payment_initialize_unavailable", "reference": reference},
            )
            raise ServiceException(
                "Payment processor unavailable",
                code="GATEWAY_UNAVAILABLE",
                details={"reference": reference, "processor_message": exc.processor_message},
            ) from exc
        except GatewayError as exc:
            self.logger.warning(
                "Processor rejected initialization of %s: %s",
                reference,
                exc.processor_message,
                extra={"evt": "payment_initialize_rejected", "reference": reference},
            )
            with self.transaction():
                self.payments.mark_failed(payment, processor_payload=exc.error_body)
            raise ServiceException(
                "Payment initialization failed",
                code="GATEWAY_REJECTED",
                details={"reference": reference, "processor_message": exc.processor_message},
            ) from exc

        return InitiatePaymentResponse(checkout_url=checkout_url, reference=reference)

    @BaseService.measure_operation("verify_payment")
    def verify_payment(self, reference: str, course_id: Optional[str]) -> VerifyPaymentResponse:
        """
        Ask the processor about ``reference`` and settle it when paid.

        A pending or failed processor status is reported back as a 400 and
        changes nothing locally.
        """
        if not course_id:
            raise ValidationException("course_id is required", code="COURSE_ID_REQUIRED")
        payment = self.payments.get_by_reference(reference)
        if payment is None:
            raise NotFoundException("Payment not found", details={"reference": reference})
        if payment.course_id != course_id:
            raise ValidationException(
                "Course does not match payment",
                code="COURSE_MISMATCH",
                details={"reference": reference, "course_id": course_id},
            )

        gateway = self._require_gateway()
        try:
            verification = gateway.verify(reference)
        except GatewayError as exc:
            self.logger.error(
                "Verification call failed for %s: %s",
                reference,
                exc,
                extra={"evt": "payment_verify_gateway_error", "reference": reference},
            )
            raise ServiceException(
                "Payment verification failed",
                code="GATEWAY_ERROR",
                details={"reference": reference, "processor_message": exc.processor_message},
            ) from exc

        if not verification.is_success:
            self.logger.info(
                "Verification for %s returned %s",
                reference,
                verification.status,
                extra={"evt": "payment_verify_not_successful", "reference": reference},
            )
            raise ValidationException(
                "Payment not successful",
                code="PAYMENT_NOT_SUCCESSFUL",
                details={"status": verification.status, "gateway": verification.raw_payload},
            )

        result = self.settlement_service.settle(
            ConfirmedPaymentEvent(
                reference=reference,
                raw_payload=verification.raw_payload,
                source="verification",
            )
        )
        payment = self.payments.get_by_reference(reference) or payment
        return VerifyPaymentResponse(
            message=(
                "Payment verified successfully"
                if result.settled_now
                else "Payment already verified"
            ),
            payment=PaymentResponse.model_validate(payment),
            course_id=course_id,
            settlement=SettlementResponse(
                outcome=result.outcome.value,
                transaction_id=result.transaction_id,
                enrollment_id=result.enrollment_id,
            ),
        )
