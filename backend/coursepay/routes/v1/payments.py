# backend/coursepay/routes/v1/payments.py
"""
Payment routes: checkout initiation and client-triggered verification.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies.auth import get_current_student
from ...api.dependencies.services import get_payment_service
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.payment_schemas import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    VerifyPaymentResponse,
)
from ...services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payments"])


@router.post("/initiate", response_model=InitiatePaymentResponse)
def initiate_payment(
    payload: InitiatePaymentRequest,
    current_user: User = Depends(get_current_student),
    payment_service: PaymentService = Depends(get_payment_service),
) -> InitiatePaymentResponse:
    """Create a pending payment and return the processor checkout URL."""
    try:
        return payment_service.initiate_payment(current_user, payload)
    except DomainException as exc:
        raise exc.to_http_exception()


@router.get("/verify/{reference}", response_model=VerifyPaymentResponse)
def verify_payment(
    reference: str,
    course_id: Optional[str] = Query(default=None),
    payment_service: PaymentService = Depends(get_payment_service),
) -> VerifyPaymentResponse:
    """
    Confirm a payment by asking the processor directly.

    Used by the checkout return page; settles the payment if the webhook
    has not done so already.
    """
    try:
        return payment_service.verify_payment(reference, course_id)
    except DomainException as exc:
        raise exc.to_http_exception()
