"""Minimal Chapa API client for checkout, verification and payouts."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
import json
import logging
from typing import Any, Dict, Literal, Optional, cast

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)

VerificationStatus = Literal["success", "pending", "failed"]


class GatewayError(RuntimeError):
    """Raised when Chapa explicitly rejects a request or returns something unusable."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_body = error_body

    @property
    def processor_message(self) -> str:
        """Best human-readable message from the processor body, for safe passthrough."""
        body = self.error_body
        if isinstance(body, dict):
            value = body.get("message")
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict):
                return json.dumps(value, sort_keys=True)
        if isinstance(body, str) and body:
            return body[:500]
        return self.message


class GatewayUnavailable(GatewayError):
    """
    Timeout, connection failure or non-2xx response.

    The outcome on the processor side is unknown; callers may retry.
    """


@dataclass(frozen=True)
class GatewayVerification:
    reference: str
    status: VerificationStatus
    raw_payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == "success"


def _classify_verification(payload: Dict[str, Any]) -> VerificationStatus:
    data = payload.get("data")
    data_status = data.get("status") if isinstance(data, dict) else None
    if payload.get("status") == "success" and data_status == "success":
        return "success"
    if data_status == "pending":
        return "pending"
    return "failed"


def _format_amount(amount: Decimal | int | str) -> str:
    return f"{Decimal(str(amount)):.2f}"


class ChapaClient:
    """
    Thin client for the Chapa REST API.

    Built once at application startup and shared; it holds no per-request
    state. It never retries internally.
    """

    def __init__(
        self,
        *,
        secret_key: str | SecretStr,
        base_url: str = "https://api.chapa.co/v1",
        currency: str = "ETB",
        timeout: float = 10.0,
        payout_timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = (
            secret_key.get_secret_value() if isinstance(secret_key, SecretStr) else secret_key
        )
        if not secret_value:
            raise ValueError("Chapa secret key must be provided")

        self._secret_key = secret_value
        self._base_url = base_url.rstrip("/")
        self._currency = currency
        self._timeout = timeout
        self._payout_timeout = payout_timeout
        self._transport = transport

    def initialize(
        self,
        *,
        amount: Decimal | int | str,
        email: str,
        full_name: str,
        reference: str,
        callback_url: str,
        return_url: str,
        title: str = "Course payment",
    ) -> str:
        """Create a hosted checkout session and return its URL."""

        body = {
            "amount": _format_amount(amount),
            "currency": self._currency,
            "email": email,
            "first_name": full_name,
            "tx_ref": reference,
            "callback_url": callback_url,
            "return_url": return_url,
            "customization": {"title": title[:16] or "Course payment"},
        }
        payload = self.request("POST", "/transaction/initialize", json_body=body)
        data = payload.get("data")
        checkout_url = data.get("checkout_url") if isinstance(data, dict) else None
        if payload.get("status") != "success" or not checkout_url:
            logger.warning(
                "Chapa rejected checkout initialization",
                extra={"evt": "chapa_initialize_rejected", "reference": reference},
            )
            raise GatewayError(
                "Chapa did not return a checkout URL",
                status_code=200,
                error_body=payload,
            )
        return cast(str, checkout_url)

    def verify(self, reference: str) -> GatewayVerification:
        """Ask Chapa for the current state of a payment reference."""

        if not reference:
            raise ValueError("reference must be provided")
        payload = self.request("GET", f"/transaction/verify/{reference}")
        return GatewayVerification(
            reference=reference,
            status=_classify_verification(payload),
            raw_payload=payload,
        )

    def transfer(
        self,
        *,
        account_name: str,
        account_number: str,
        bank_code: str,
        amount: Decimal | int | str,
        reference: str,
        narration: str = "Instructor withdrawal",
    ) -> Dict[str, Any]:
        """Send a payout to a bank account. Any non-success body raises ``GatewayError``."""

        body = {
            "account_name": account_name,
            "account_number": account_number,
            "bank_code": bank_code,
            "amount": _format_amount(amount),
            "currency": self._currency,
            "reference": reference,
            "narration": narration,
        }
        payload = self.request("POST", "/transfers", json_body=body, timeout=self._payout_timeout)
        if payload.get("status") != "success":
            raise GatewayError("Chapa rejected the transfer", status_code=200, error_body=payload)
        return payload

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw Chapa API request and return the parsed JSON payload."""

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=timeout or self._timeout,
            transport=self._transport,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {self._secret_key}",
            },
        ) as client:
            try:
                response = client.request(method, url, json=json_body)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                error_payload: Any | None
                try:
                    error_payload = exc.response.json()
                except json.JSONDecodeError:
                    error_payload = exc.response.text

                logger.error(
                    "Chapa API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise GatewayUnavailable(
                    f"Chapa API responded with status {status}",
                    status_code=status,
                    error_body=error_payload,
                ) from exc
            except httpx.TimeoutException as exc:
                logger.error("Chapa request timed out for %s %s", method, path)
                raise GatewayUnavailable("Timed out waiting for Chapa") from exc
            except httpx.RequestError as exc:
                logger.error("Chapa request failure for %s %s: %s", method, path, str(exc))
                raise GatewayUnavailable("Failed to reach Chapa API") from exc

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from Chapa for %s %s: %s", method, path, response.text)
            raise GatewayError(
                "Received malformed JSON from Chapa",
                status_code=response.status_code,
                error_body=response.text,
            ) from exc
        if not isinstance(payload, dict):
            raise GatewayError(
                "Unexpected Chapa response shape",
                status_code=response.status_code,
                error_body=payload,
            )
        return cast(Dict[str, Any], payload)
