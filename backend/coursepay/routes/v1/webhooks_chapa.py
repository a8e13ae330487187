# backend/coursepay/routes/v1/webhooks_chapa.py
"""
Chapa webhook ingress.

The processor pushes charge notifications here. Every rejection (signature,
body, success markers) happens before anything is written, and the response
is a bare text body the processor only uses for its retry decision.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from time import monotonic
from typing import Optional, cast

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from ...api.dependencies.services import get_settlement_service, get_webhook_ledger_service
from ...core.config import settings
from ...core.exceptions import (
    DomainException,
    PaymentNotFoundException,
    ReconciliationRequiredException,
)
from ...monitoring.prometheus_metrics import prometheus_metrics
from ...schemas.payment_schemas import ChapaWebhookEnvelope, ConfirmedPaymentEvent
from ...services.settlement_service import SettlementService
from ...services.webhook_ledger_service import WebhookLedgerService, body_fingerprint

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

WEBHOOK_SOURCE = "chapa"
SIGNATURE_HEADERS = ("x-chapa-signature", "chapa-signature")


def _compute_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def _provided_signature(request: Request) -> Optional[str]:
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()
    return None


def _verify_signature(request: Request, raw_body: bytes) -> Optional[PlainTextResponse]:
    """Return a rejection response, or None when the body may be processed."""

    secret = settings.webhook_secret
    if secret is None or not secret.get_secret_value():
        logger.warning(
            "CHAPA_WEBHOOK_SECRET is not configured; accepting webhook without signature "
            "verification (degraded security mode)",
            extra={"evt": "chapa_webhook_unverified"},
        )
        return None

    provided = _provided_signature(request)
    if provided is None:
        logger.warning("Missing Chapa webhook signature header")
        prometheus_metrics.inc_webhook_delivery("missing_signature")
        return PlainTextResponse("Missing signature", status_code=status.HTTP_400_BAD_REQUEST)

    if provided.lower().startswith("sha256="):
        provided = provided.split("=", 1)[1].strip()

    computed = _compute_signature(secret.get_secret_value(), raw_body)
    if not hmac.compare_digest(provided.lower(), computed):
        logger.warning(
            "Chapa webhook signature mismatch",
            extra={"evt": "chapa_webhook_bad_signature", "body_sha256": body_fingerprint(raw_body)},
        )
        prometheus_metrics.inc_webhook_delivery("invalid_signature")
        return PlainTextResponse("Invalid signature", status_code=status.HTTP_401_UNAUTHORIZED)
    return None


@router.post("/payment/webhook", response_class=PlainTextResponse)
async def handle_chapa_webhook(
    request: Request,
    settlement_service: SettlementService = Depends(get_settlement_service),
    ledger_service: WebhookLedgerService = Depends(get_webhook_ledger_service),
) -> PlainTextResponse:
    """Settle a payment the processor reports as successfully charged."""

    raw_body = await request.body()
    rejection = _verify_signature(request, raw_body)
    if rejection is not None:
        return rejection

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        prometheus_metrics.inc_webhook_delivery("invalid_payload")
        return PlainTextResponse("Invalid payload", status_code=status.HTTP_400_BAD_REQUEST)
    if not isinstance(payload, dict):
        prometheus_metrics.inc_webhook_delivery("invalid_payload")
        return PlainTextResponse("Invalid payload", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        envelope = ChapaWebhookEnvelope.model_validate(payload)
    except ValidationError:
        envelope = None
    event: Optional[ConfirmedPaymentEvent] = None
    if envelope is not None and envelope.is_successful_charge():
        try:
            event = ConfirmedPaymentEvent(
                reference=cast(str, envelope.reference), raw_payload=payload, source="webhook"
            )
        except ValidationError:
            event = None
    if envelope is None or event is None:
        logger.info(
            "Ignoring Chapa webhook without usable success markers",
            extra={"evt": "chapa_webhook_not_success", "event": payload.get("event")},
        )
        prometheus_metrics.inc_webhook_delivery("invalid_webhook")
        return PlainTextResponse("Invalid webhook", status_code=status.HTTP_400_BAD_REQUEST)

    reference = event.reference
    ledger_event = await asyncio.to_thread(
        ledger_service.log_received,
        source=WEBHOOK_SOURCE,
        event_type=envelope.event or envelope.status or "unknown",
        payload=payload,
        event_id=body_fingerprint(raw_body),
        reference=reference,
        headers=dict(request.headers),
    )

    start_time = monotonic()
    try:
        result = await asyncio.to_thread(settlement_service.settle, event)
    except PaymentNotFoundException as exc:
        await asyncio.to_thread(
            ledger_service.mark_failed,
            ledger_event,
            error=exc.message,
            duration_ms=ledger_service.elapsed_ms(start_time),
            status="ignored",
        )
        prometheus_metrics.inc_webhook_delivery("payment_not_found")
        return PlainTextResponse("Payment not found", status_code=status.HTTP_404_NOT_FOUND)
    except ReconciliationRequiredException as exc:
        await asyncio.to_thread(
            ledger_service.mark_failed,
            ledger_event,
            error=exc.message,
            duration_ms=ledger_service.elapsed_ms(start_time),
        )
        prometheus_metrics.inc_webhook_delivery("reconciliation_required")
        return PlainTextResponse(
            "Payment requires reconciliation",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except DomainException as exc:
        logger.error(
            "Settlement failed for %s: %s",
            reference,
            exc.message,
            extra={"evt": "chapa_webhook_settlement_error", "reference": reference},
        )
        await asyncio.to_thread(
            ledger_service.mark_failed,
            ledger_event,
            error=exc.message,
            duration_ms=ledger_service.elapsed_ms(start_time),
        )
        prometheus_metrics.inc_webhook_delivery("error")
        return PlainTextResponse(
            "Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    await asyncio.to_thread(
        ledger_service.mark_processed,
        ledger_event,
        related_entity_type="payment",
        related_entity_id=result.payment_id,
        duration_ms=ledger_service.elapsed_ms(start_time),
    )
    prometheus_metrics.inc_webhook_delivery(result.outcome.value)
    if result.settled_now:
        return PlainTextResponse("Payment processed successfully", status_code=status.HTTP_200_OK)
    return PlainTextResponse("Payment already processed", status_code=status.HTTP_200_OK)
