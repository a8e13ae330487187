"""
Payment-related Pydantic schemas.

Request/response DTOs for initiation and verification, the processor
webhook envelope, and the typed event handed to the settlement engine.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from pydantic import AliasChoices, ConfigDict, Field

from ._strict_base import ProcessorPayloadModel, StrictModel, StrictRequestModel

SUCCESS_WEBHOOK_EVENTS = frozenset({"charge.completed", "charge.success"})

# ========== Request Models ==========


class InitiatePaymentRequest(StrictRequestModel):
    """Start a checkout for one course."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    full_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("full_name", "fullName"),
    )
    course_id: str = Field(
        ...,
        min_length=1,
        max_length=26,
        validation_alias=AliasChoices("course_id", "courseId"),
    )


# ========== Internal Events ==========


class ConfirmedPaymentEvent(StrictModel):
    """
    A processor confirmation that a reference has been paid.

    Only the webhook ingress and the verification poller build these, and
    only after checking the processor's success markers.
    """

    reference: str = Field(..., min_length=1, max_length=64)
    raw_payload: Dict[str, Any]
    source: Literal["webhook", "verification"]


# ========== Processor Payloads ==========


class ChapaWebhookData(ProcessorPayloadModel):
    status: Optional[str] = None
    tx_ref: Optional[str] = None
    amount: Optional[Any] = None
    currency: Optional[str] = None


class ChapaWebhookEnvelope(ProcessorPayloadModel):
    """Chapa pushes either ``{event, data}`` or ``{status, data}`` shaped bodies."""

    event: Optional[str] = None
    status: Optional[str] = None
    data: Optional[ChapaWebhookData] = None

    @property
    def reference(self) -> Optional[str]:
        return self.data.tx_ref if self.data and self.data.tx_ref else None

    def is_successful_charge(self) -> bool:
        if self.data is None or self.data.status != "success" or not self.reference:
            return False
        if self.event is not None and self.event not in SUCCESS_WEBHOOK_EVENTS:
            return False
        if self.status is not None:
            return self.status == "success"
        return self.event in SUCCESS_WEBHOOK_EVENTS


# ========== Response Models ==========


class InitiatePaymentResponse(StrictModel):
    checkout_url: str
    reference: str


class PaymentResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference: str
    student_id: str
    course_id: str
    amount: Decimal
    status: str
    created_at: datetime
    verified_at: Optional[datetime] = None


class SettlementResponse(StrictModel):
    outcome: Literal["settled", "already_settled"]
    transaction_id: Optional[str] = None
    enrollment_id: Optional[str] = None


class VerifyPaymentResponse(StrictModel):
    message: str
    payment: PaymentResponse
    course_id: str
    settlement: SettlementResponse
