# PayPal client over a mocked transport, plus capture verification against the expected amount.
from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from harbor.errors import (
    AmountMismatchError,
    CaptureFailedError,
    CaptureIncompleteError,
    ConfigurationError,
)
from harbor.payments import PayPalClient, ProcessorError, ProcessorTimeout, capture_payment

from conftest import FakeProcessor


def _client(handler) -> PayPalClient:
    return PayPalClient(
        base_url="https://paypal.test",
        client_id="cid",
        secret="shh",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def _token_response() -> httpx.Response:
    return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})


def test_capture_exchanges_token_once_and_sends_idempotency_header():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path == "/v1/oauth2/token":
            assert request.headers["Authorization"].startswith("Basic ")
            return _token_response()
        assert request.headers["Authorization"] == "Bearer tok-1"
        return httpx.Response(201, json={"id": "ORDER-1", "status": "COMPLETED"})

    client = _client(handler)
    client.capture_order("ORDER-1")
    client.capture_order("ORDER-1")

    paths = [c.url.path for c in calls]
    assert paths == [
        "/v1/oauth2/token",
        "/v2/checkout/orders/ORDER-1/capture",
        "/v2/checkout/orders/ORDER-1/capture",
    ]
    assert calls[1].headers["PayPal-Request-Id"] == "capture-ORDER-1"


def test_payout_request_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            return _token_response()
        seen.update(json.loads(request.content))
        return httpx.Response(201, json={"batch_header": {"payout_batch_id": "B1", "batch_status": "PENDING"}})

    _client(handler).create_payout(
        sender_batch_id="payout_CAP-1",
        sender_item_id="payout_item_CAP-1",
        receiver="host@example.com",
        amount=Decimal("230.8"),
        currency="USD",
        note="memo",
    )
    assert seen["sender_batch_header"]["sender_batch_id"] == "payout_CAP-1"
    item = seen["items"][0]
    assert item["amount"] == {"value": "230.80", "currency_code": "USD"}
    assert item["receiver"] == "host@example.com"
    assert item["recipient_type"] == "EMAIL"


def test_error_response_becomes_processor_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            return _token_response()
        return httpx.Response(
            422,
            json={
                "name": "UNPROCESSABLE_ENTITY",
                "message": "The requested action could not be performed.",
                "details": [{"issue": "ORDER_NOT_APPROVED", "description": "Payer has not approved the order."}],
            },
        )

    with pytest.raises(ProcessorError) as excinfo:
        _client(handler).capture_order("ORDER-2")
    assert excinfo.value.status_code == 422
    assert excinfo.value.name == "UNPROCESSABLE_ENTITY"
    assert "ORDER_NOT_APPROVED" in str(excinfo.value)


def test_timeout_becomes_processor_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProcessorTimeout):
        _client(handler).capture_order("ORDER-3")


def test_missing_credentials_fail_fast():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    client = PayPalClient(base_url="https://paypal.test", client_id="", secret="", transport=httpx.MockTransport(handler))
    assert not client.configured
    with pytest.raises(ConfigurationError):
        client.ensure_configured()
    with pytest.raises(ConfigurationError):
        client.capture_order("ORDER-4")


def test_capture_payment_returns_processor_amount():
    fake = FakeProcessor()
    fake.capture_amount = "243.00"
    result = capture_payment(fake, "ORDER-5", Decimal("243.00"), "USD")
    assert result.capture_id == "CAP-ORDER-5"
    assert result.amount == Decimal("243.00")
    assert result.currency == "USD"
    assert result.payer_email == "guest@example.com"


def test_capture_within_tolerance_accepted():
    fake = FakeProcessor()
    fake.capture_amount = "243.01"
    assert capture_payment(fake, "ORDER-6", Decimal("243.00"), "usd").amount == Decimal("243.01")


@pytest.mark.parametrize(
    "amount,currency",
    [
        ("243.02", "USD"),
        ("200.00", "USD"),
        ("243.00", "EUR"),
        (None, "USD"),
        ("abc", "USD"),
        ("NaN", "USD"),
        ("Infinity", "USD"),
    ],
)
def test_capture_mismatch_rejected(amount, currency):
    fake = FakeProcessor()
    fake.capture_amount = amount
    fake.capture_currency = currency
    with pytest.raises(AmountMismatchError):
        capture_payment(fake, "ORDER-7", Decimal("243.00"), "USD")


def test_capture_not_completed_is_incomplete():
    fake = FakeProcessor()
    fake.capture_amount = "243.00"
    fake.capture_status = "PENDING"
    with pytest.raises(CaptureIncompleteError):
        capture_payment(fake, "ORDER-8", Decimal("243.00"), "USD")


def test_capture_timeout_is_retryable():
    fake = FakeProcessor()
    fake.capture_error = ProcessorTimeout("timed out")
    with pytest.raises(CaptureFailedError) as excinfo:
        capture_payment(fake, "ORDER-9", Decimal("10.00"), "USD")
    assert excinfo.value.retryable is True


def test_capture_rejection_is_not_retryable():
    fake = FakeProcessor()
    fake.capture_error = ProcessorError("UNPROCESSABLE_ENTITY: order not approved", status_code=422)
    with pytest.raises(CaptureFailedError) as excinfo:
        capture_payment(fake, "ORDER-10", Decimal("10.00"), "USD")
    assert excinfo.value.retryable is False
    assert not isinstance(excinfo.value, CaptureIncompleteError)
