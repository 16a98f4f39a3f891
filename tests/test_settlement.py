# Settlement split and payout dispatch: fee math, destination checks, and payout outcomes as data.
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from harbor import models
from harbor.errors import ConfigurationError
from harbor.payments import ProcessorError, ProcessorTimeout
from harbor.settlement import (
    build_payout_memo,
    dispatch_payout,
    resolve_payout_destination,
    split_settlement,
)
from harbor.statuses import PayoutStatus

from conftest import FakeProcessor


def _dispatch(processor, amount="230.85"):
    return dispatch_payout(
        processor,
        capture_id="CAP-1",
        destination="host@example.com",
        amount=Decimal(amount),
        currency="USD",
        memo="Payout for Harbor Loft",
    )


def test_split_five_percent():
    split = split_settlement(Decimal("243.00"), Decimal("5"))
    assert split.admin_fee == Decimal("12.15")
    assert split.host_payout == Decimal("230.85")
    assert split.admin_fee + split.host_payout == split.net_amount


@pytest.mark.parametrize("net", ["0.01", "0.10", "19.99", "333.33", "1000.05"])
def test_split_always_sums_to_net(net):
    split = split_settlement(Decimal(net), Decimal("5"))
    assert split.admin_fee + split.host_payout == Decimal(net)
    assert split.admin_fee >= 0
    assert split.host_payout >= 0


def test_fee_rounds_half_up():
    # 5% of 10.10 = 0.505
    assert split_settlement(Decimal("10.10"), Decimal("5")).admin_fee == Decimal("0.51")


def test_destination_normalized():
    host = models.User(id=7, email="h@example.com", role="host", payout_email="  Host@Example.COM ")
    assert resolve_payout_destination(host) == "host@example.com"


@pytest.mark.parametrize("payout_email", [None, "", "   "])
def test_missing_destination_is_configuration_error(payout_email):
    host = models.User(id=7, email="h@example.com", role="host", payout_email=payout_email)
    with pytest.raises(ConfigurationError):
        resolve_payout_destination(host)


def test_memo_names_listing_and_dates():
    memo = build_payout_memo("Harbor Loft", 3, 9, date(2030, 1, 10), date(2030, 1, 13))
    assert "Harbor Loft" in memo
    assert "2030-01-10" in memo and "2030-01-13" in memo


def test_successful_payout_is_sent():
    fake = FakeProcessor()
    outcome = _dispatch(fake)
    assert outcome.status is PayoutStatus.SENT
    assert outcome.batch_id == "BATCH-1"
    assert not outcome.failed
    sent = fake.payouts[0]
    assert sent["sender_batch_id"] == "payout_CAP-1"
    assert sent["sender_item_id"] == "payout_item_CAP-1"
    assert sent["receiver"] == "host@example.com"
    assert sent["amount"] == Decimal("230.85")


def test_batch_status_used_when_item_status_missing():
    fake = FakeProcessor()
    fake.payout_response = {"batch_header": {"payout_batch_id": "B2", "batch_status": "PENDING"}}
    assert _dispatch(fake).status is PayoutStatus.PENDING


def test_unclaimed_item_is_pending():
    fake = FakeProcessor()
    fake.payout_response = {"batch_header": {"payout_batch_id": "B3"}, "items": [{"transaction_status": "UNCLAIMED"}]}
    assert _dispatch(fake).status is PayoutStatus.PENDING


def test_failed_item_carries_processor_message():
    fake = FakeProcessor()
    fake.payout_response = {
        "batch_header": {"payout_batch_id": "B4", "batch_status": "SUCCESS"},
        "items": [{"transaction_status": "FAILED", "errors": {"name": "RECEIVER_UNREGISTERED", "message": "Receiver is unregistered"}}],
    }
    outcome = _dispatch(fake)
    assert outcome.failed
    assert outcome.error == "Receiver is unregistered"
    assert outcome.batch_id == "B4"


def test_rejected_payout_fails_without_raising():
    fake = FakeProcessor()
    fake.payout_error = ProcessorError("RECEIVER_INVALID: Receiver is invalid", status_code=422, name="RECEIVER_INVALID")
    outcome = _dispatch(fake)
    assert outcome.status is PayoutStatus.FAILED
    assert "Receiver is invalid" in outcome.error


def test_timeout_fails_without_raising():
    fake = FakeProcessor()
    fake.payout_error = ProcessorTimeout("PayPal request to /v1/payments/payouts timed out")
    outcome = _dispatch(fake)
    assert outcome.failed
    assert "timed out" in outcome.error


def test_unexpected_exception_fails_without_raising():
    fake = FakeProcessor()
    fake.payout_error = KeyError("items")
    assert _dispatch(fake).failed


def test_insufficient_funds_is_pending_with_warning():
    fake = FakeProcessor()
    fake.payout_error = ProcessorError(
        "INSUFFICIENT_FUNDS: Sender does not have sufficient funds",
        status_code=422,
        name="INSUFFICIENT_FUNDS",
    )
    outcome = _dispatch(fake)
    assert outcome.status is PayoutStatus.PENDING
    assert outcome.error is None
    assert "INSUFFICIENT_FUNDS" in outcome.warning


@pytest.mark.parametrize("amount", ["0", "-5.00"])
def test_non_positive_amount_never_reaches_processor(amount):
    fake = FakeProcessor()
    outcome = _dispatch(fake, amount=amount)
    assert outcome.failed
    assert fake.payouts == []
