# Payments module: PayPal REST integration for capturing guest orders and sending host payouts.
# The capture result is trusted only as reported by PayPal; the caller's claimed amount is
# compared against it, never substituted for it.
from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import AmountMismatchError, CaptureFailedError, CaptureIncompleteError, ConfigurationError
from .pricing import to_money

logger = logging.getLogger("harbor.payments")

# Environment configuration (blank credentials make every settlement fail fast with ConfigurationError)
PAYPAL_API_BASE = os.getenv("PAYPAL_API_BASE", "https://api-m.sandbox.paypal.com").strip()
PAYPAL_CLIENT_ID = os.getenv("PAYPAL_CLIENT_ID", "").strip()
PAYPAL_SECRET = os.getenv("PAYPAL_SECRET", "").strip()
PAYPAL_TIMEOUT_SECONDS = float(os.getenv("PAYPAL_TIMEOUT_SECONDS", "20"))

# Maximum tolerated difference between expected and captured totals
AMOUNT_TOLERANCE = Decimal("0.01")

# Refresh the OAuth token a minute before PayPal says it expires
_TOKEN_EXPIRY_MARGIN_SECONDS = 60


class ProcessorError(Exception):
    """A PayPal call failed: transport error or non-2xx response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        name: Optional[str] = None,
        details: Optional[list] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.name = name
        self.details = details or []


class ProcessorTimeout(ProcessorError):
    pass


class PaymentProcessor(Protocol):
    def ensure_configured(self) -> None: ...

    def capture_order(self, order_id: str) -> Dict[str, Any]: ...

    def create_payout(
        self,
        *,
        sender_batch_id: str,
        sender_item_id: str,
        receiver: str,
        amount: Decimal,
        currency: str,
        note: str,
    ) -> Dict[str, Any]: ...


def _describe_error(payload: Dict[str, Any], fallback: str) -> str:
    # PayPal errors look like {"name": ..., "message": ..., "details": [{"issue": ..., "description": ...}]}
    name = payload.get("name") or payload.get("error")
    message = payload.get("message") or payload.get("error_description") or fallback
    text = f"{name}: {message}" if name else message
    issues = [
        f"{d.get('issue')}: {d.get('description')}" if d.get("description") else str(d.get("issue"))
        for d in payload.get("details") or []
        if isinstance(d, dict) and d.get("issue")
    ]
    if issues:
        text = f"{text} ({'; '.join(issues)})"
    return text


class PayPalClient:
    """
    Thin synchronous client for the three PayPal endpoints checkout needs.

    - POST /v1/oauth2/token (client credentials, cached until shortly before expiry)
    - POST /v2/checkout/orders/{id}/capture
    - POST /v1/payments/payouts

    Methods return the parsed JSON body and raise ProcessorError / ProcessorTimeout;
    mapping to checkout errors happens in capture_payment and settlement.dispatch_payout.
    """

    def __init__(
        self,
        base_url: str = PAYPAL_API_BASE,
        client_id: str = PAYPAL_CLIENT_ID,
        secret: str = PAYPAL_SECRET,
        timeout: float = PAYPAL_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.secret = secret
        self.timeout = timeout
        self._transport = transport
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        # One client instance is shared by FastAPI's worker threads
        self._token_lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.secret)

    def ensure_configured(self) -> None:
        if not self.configured:
            logger.error("PayPal client id or secret missing; refusing to capture")
            raise ConfigurationError("PayPal is not configured on the server. Please contact support.")

    def _send(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport) as client:
                response = client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise ProcessorTimeout(f"PayPal request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise ProcessorError(f"PayPal request to {path} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error:
            raise ProcessorError(
                _describe_error(payload, f"HTTP {response.status_code} from PayPal"),
                status_code=response.status_code,
                name=payload.get("name"),
                details=payload.get("details"),
            )
        return payload

    def access_token(self) -> str:
        self.ensure_configured()
        with self._token_lock:
            now = time.monotonic()
            if self._token and now < self._token_expires_at:
                return self._token

            payload = self._send(
                "POST",
                "/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.secret),
                headers={"Accept": "application/json"},
            )
            token = payload.get("access_token")
            if not token:
                raise ProcessorError("PayPal token response missing access_token")
            expires_in = int(payload.get("expires_in") or 0)
            self._token = token
            self._token_expires_at = now + max(expires_in - _TOKEN_EXPIRY_MARGIN_SECONDS, 0)
            return token

    def _authorized(self, path: str, body: Dict[str, Any], extra_headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.access_token()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)
        return self._send("POST", path, json=body, headers=headers)

    def capture_order(self, order_id: str) -> Dict[str, Any]:
        # PayPal-Request-Id makes a retried capture of the same order idempotent
        return self._authorized(
            f"/v2/checkout/orders/{order_id}/capture",
            {},
            {"PayPal-Request-Id": f"capture-{order_id}"},
        )

    def create_payout(
        self,
        *,
        sender_batch_id: str,
        sender_item_id: str,
        receiver: str,
        amount: Decimal,
        currency: str,
        note: str,
    ) -> Dict[str, Any]:
        body = {
            "sender_batch_header": {
                "sender_batch_id": sender_batch_id,
                "email_subject": "You have received a payout from Harbor",
                "email_message": "Thanks for hosting with Harbor!",
            },
            "items": [
                {
                    "recipient_type": "EMAIL",
                    "amount": {"value": f"{to_money(amount):.2f}", "currency_code": currency},
                    "receiver": receiver,
                    "note": note,
                    "sender_item_id": sender_item_id,
                }
            ],
        }
        return self._authorized("/v1/payments/payouts", body)


_processor: Optional[PayPalClient] = None


def get_processor() -> PaymentProcessor:
    """FastAPI dependency returning the process-wide PayPal client; tests override it."""
    global _processor
    if _processor is None:
        _processor = PayPalClient()
    return _processor


def processor_status() -> Dict[str, Any]:
    return {
        "api_base": PAYPAL_API_BASE,
        "has_client_id": bool(PAYPAL_CLIENT_ID),
        "has_secret": bool(PAYPAL_SECRET),
    }


@dataclass(frozen=True)
class CaptureResult:
    order_id: str
    capture_id: str
    amount: Decimal
    currency: str
    payer_email: Optional[str]


def _first_capture(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    units = payload.get("purchase_units") or []
    if not units:
        return None
    captures = ((units[0] or {}).get("payments") or {}).get("captures") or []
    return captures[0] if captures else None


def capture_payment(
    processor: PaymentProcessor,
    order_id: str,
    expected_amount: Decimal,
    expected_currency: str,
) -> CaptureResult:
    """
    Capture an approved order and verify what PayPal actually captured.

    Raises:
    - CaptureFailedError: transport/processor failure (retryable on timeout)
    - CaptureIncompleteError: PayPal did not report the capture as COMPLETED
    - AmountMismatchError: captured amount or currency differs from the expectation
    """
    try:
        payload = processor.capture_order(order_id)
    except ProcessorTimeout as exc:
        logger.warning("Capture timed out (order=%s)", order_id)
        raise CaptureFailedError(
            "Timed out capturing the payment. Please try again.",
            retryable=True,
            order_id=order_id,
        ) from exc
    except ProcessorError as exc:
        logger.warning("Capture failed (order=%s): %s", order_id, exc)
        raise CaptureFailedError(str(exc), order_id=order_id) from exc

    capture = _first_capture(payload)
    capture_status = str((capture or {}).get("status") or "").upper()
    if not capture or capture_status != "COMPLETED" or not capture.get("id"):
        logger.warning("Capture incomplete (order=%s, status=%s)", order_id, capture_status or None)
        raise CaptureIncompleteError(order_id=order_id, capture_status=capture_status or None)

    amount_field = capture.get("amount") or {}
    try:
        captured = to_money(amount_field.get("value"))
    except (InvalidOperation, TypeError, ValueError):
        captured = None
    if captured is not None and not captured.is_finite():
        captured = None
    currency = str(amount_field.get("currency_code") or "").upper()

    expected = to_money(expected_amount)
    if (
        captured is None
        or currency != expected_currency.upper()
        or abs(captured - expected) > AMOUNT_TOLERANCE
    ):
        logger.error(
            "Captured amount mismatch (order=%s, capture=%s): captured=%s %s expected=%s %s",
            order_id,
            capture.get("id"),
            captured,
            currency or None,
            expected,
            expected_currency,
        )
        raise AmountMismatchError(
            order_id=order_id,
            expected_amount=expected,
            captured_amount=captured,
            captured_currency=currency or None,
        )

    payer_email = (payload.get("payer") or {}).get("email_address")
    return CaptureResult(
        order_id=order_id,
        capture_id=str(capture["id"]),
        amount=captured,
        currency=currency,
        payer_email=payer_email,
    )
