"""Service for recording inbound processor webhooks."""

from __future__ import annotations

from datetime import datetime, timezone
import hashlib
import time
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.webhook_event import WebhookEvent
from ..repositories.webhook_event_repository import WebhookEventRepository
from .base import BaseService

_SENSITIVE_HEADERS = {
    "authorization",
    "chapa-signature",
    "x-chapa-signature",
    "cookie",
}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def body_fingerprint(raw_body: bytes) -> str:
    """Stable event id for processors that do not send one: sha256 of the exact bytes."""
    return hashlib.sha256(raw_body).hexdigest()


class WebhookLedgerService(BaseService):
    """Business logic for webhook ledger entries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.repository = WebhookEventRepository(db)

    def _bump_retry(
        self, existing: WebhookEvent, safe_headers: dict[str, Any] | None, now: datetime
    ) -> WebhookEvent:
        existing.retry_count = (existing.retry_count or 0) + 1
        existing.last_retry_at = now
        if safe_headers is not None:
            existing.headers = safe_headers
        self.repository.flush()
        return existing

    @BaseService.measure_operation("webhook_ledger.log_received")
    def log_received(
        self,
        *,
        source: str,
        event_type: str,
        payload: dict[str, Any],
        event_id: str,
        reference: str | None = None,
        headers: dict[str, Any] | None = None,
    ) -> WebhookEvent:
        """
        Log a received webhook before processing.

        Redeliveries with the same event id bump ``retry_count`` on the
        original row instead of adding a new one. Commits immediately so the
        delivery is on record even if processing fails afterwards.
        """
        safe_headers = self._sanitize_headers(headers) if headers else None
        now = _now_utc()
        with self.transaction():
            existing = self.repository.find_by_source_and_event_id(source, event_id)
            if existing is not None:
                return self._bump_retry(existing, safe_headers, now)
            try:
                return self.repository.create_in_savepoint(
                    source=source,
                    event_type=event_type or "unknown",
                    event_id=event_id,
                    reference=reference,
                    payload=payload,
                    headers=safe_headers,
                    status="received",
                    received_at=now,
                    retry_count=0,
                )
            except IntegrityError:
                # Race-safe fallback: DB uniqueness won in another worker.
                existing = self.repository.find_by_source_and_event_id(source, event_id)
                if existing is None:
                    raise
                return self._bump_retry(existing, safe_headers, now)

    @BaseService.measure_operation("webhook_ledger.mark_processed")
    def mark_processed(
        self,
        event: WebhookEvent,
        *,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
        duration_ms: int | None = None,
        status: str = "processed",
    ) -> WebhookEvent:
        """Mark webhook as successfully processed."""
        with self.transaction():
            event.status = status
            event.processed_at = _now_utc()
            event.processing_error = None
            event.related_entity_type = related_entity_type
            event.related_entity_id = related_entity_id
            event.processing_duration_ms = duration_ms
            self.repository.flush()
        return event

    @BaseService.measure_operation("webhook_ledger.mark_failed")
    def mark_failed(
        self,
        event: WebhookEvent,
        *,
        error: str,
        duration_ms: int | None = None,
        status: str = "failed",
    ) -> WebhookEvent:
        """Mark webhook as failed."""
        with self.transaction():
            event.status = status
            event.processing_error = error
            event.processed_at = _now_utc()
            event.processing_duration_ms = duration_ms
            self.repository.flush()
        return event

    def _sanitize_headers(self, headers: dict[str, Any]) -> dict[str, Any]:
        return {
            key: ("***" if key.lower() in _SENSITIVE_HEADERS else value)
            for key, value in headers.items()
        }

    @staticmethod
    def elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
