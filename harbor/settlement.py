# Settlement: split a captured total into platform fee and host payout, then
# dispatch the payout best-effort. Payout problems come back as PayoutOutcome data;
# by the time we get here the guest's funds have moved and nothing may unwind that.
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from . import models
from .errors import ConfigurationError
from .payments import PaymentProcessor, ProcessorError, ProcessorTimeout
from .pricing import HUNDRED, ZERO, to_decimal, to_money
from .statuses import PayoutStatus, normalize_payout_status

logger = logging.getLogger("harbor.settlement")

# Platform commission as a percentage of the settled total
PLATFORM_FEE_PERCENT = to_decimal(os.getenv("PLATFORM_FEE_PERCENT", "5"))

PAYOUT_FAILED_WARNING = "Payment captured, but automatic payout to the host failed. Support has been notified."

_INSUFFICIENT_FUNDS = re.compile(r"INSUFFICIENT_FUNDS", re.IGNORECASE)


@dataclass(frozen=True)
class Split:
    net_amount: Decimal
    admin_fee: Decimal
    host_payout: Decimal


def split_settlement(net_amount: Decimal, fee_percent: Decimal = PLATFORM_FEE_PERCENT) -> Split:
    """admin_fee = round(net × fee%, 2); host_payout takes the remainder so the two always sum to net."""
    net = to_money(net_amount)
    if net < 0:
        raise ValueError("net_amount cannot be negative")
    admin_fee = to_money(net * to_decimal(fee_percent) / HUNDRED)
    return Split(net_amount=net, admin_fee=admin_fee, host_payout=net - admin_fee)


def resolve_payout_destination(host: Optional[models.User]) -> str:
    """Host's payout email, normalized. Checked before capture so we never take money we cannot forward."""
    destination = ((host.payout_email if host else None) or "").strip().lower()
    if not destination:
        logger.error("Host %s has no payout destination configured", getattr(host, "id", None))
        raise ConfigurationError(
            "Host has not configured a payout email yet. Please contact support.",
            host_id=getattr(host, "id", None),
        )
    return destination


def build_payout_memo(listing_title: str, listing_id: int, guest_id: int, check_in: date, check_out: date) -> str:
    title = listing_title or f"listing {listing_id}"
    return f"Payout for {title}, {check_in.isoformat()} to {check_out.isoformat()} (guest: {guest_id})"


@dataclass(frozen=True)
class PayoutOutcome:
    status: PayoutStatus
    batch_id: Optional[str] = None
    error: Optional[str] = None
    warning: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status is PayoutStatus.FAILED


def dispatch_payout(
    processor: PaymentProcessor,
    *,
    capture_id: str,
    destination: str,
    amount: Decimal,
    currency: str,
    memo: str,
) -> PayoutOutcome:
    """
    Send the host's share and report what happened. Never raises.

    - accepted with a final status  -> payout-sent
    - accepted, still in flight     -> payout-pending
    - INSUFFICIENT_FUNDS rejection  -> payout-pending with a warning (platform balance to be topped up)
    - anything else going wrong     -> payout-failed with the raw error text

    Batch ids derive from the capture id so a repeated dispatch for the same
    capture is de-duplicated by PayPal. No retries here.
    """
    if to_money(amount) <= ZERO:
        logger.error("Refusing payout of non-positive amount %s (capture=%s)", amount, capture_id)
        return PayoutOutcome(PayoutStatus.FAILED, error=f"Invalid payout amount: {amount}")

    try:
        payload = processor.create_payout(
            sender_batch_id=f"payout_{capture_id}",
            sender_item_id=f"payout_item_{capture_id}",
            receiver=destination,
            amount=to_money(amount),
            currency=currency,
            note=memo,
        )
    except ProcessorTimeout as exc:
        logger.error("Payout timed out after capture %s: %s", capture_id, exc)
        return PayoutOutcome(PayoutStatus.FAILED, error=str(exc) or "Payout request timed out")
    except ProcessorError as exc:
        message = str(exc) or "Unknown payout failure"
        if _INSUFFICIENT_FUNDS.search(message) or exc.name == "INSUFFICIENT_FUNDS":
            logger.warning("Payout deferred for capture %s, platform balance too low: %s", capture_id, message)
            return PayoutOutcome(PayoutStatus.PENDING, warning=message)
        logger.error("Payout rejected after capture %s: %s", capture_id, message)
        return PayoutOutcome(PayoutStatus.FAILED, error=message)
    except Exception as exc:
        # The capture already stands; anything unexpected is reported, never raised
        logger.exception("Unexpected payout error after capture %s", capture_id)
        return PayoutOutcome(PayoutStatus.FAILED, error=str(exc) or exc.__class__.__name__)

    header = payload.get("batch_header") or {}
    items = payload.get("items") or []
    item = items[0] if items else {}
    raw_status = item.get("transaction_status") or header.get("batch_status") or "SENT"
    status = normalize_payout_status(raw_status)
    batch_id = header.get("payout_batch_id")

    if status is PayoutStatus.FAILED:
        errors = item.get("errors") or {}
        message = errors.get("message") or errors.get("name") or f"Payout {raw_status}"
        logger.error("Payout %s reported %s after capture %s", batch_id, raw_status, capture_id)
        return PayoutOutcome(status, batch_id=batch_id, error=message)

    logger.info("Payout %s for capture %s is %s", batch_id, capture_id, status.value)
    return PayoutOutcome(status, batch_id=batch_id)
