# Checkout orchestration: price a stay, then settle a guest's approved order.
#
# Settlement is two-phase and not atomic: the PayPal capture and the host payout
# are independent external calls that cannot commit with our database. The rule
# that shapes everything below: nothing before capture may leave side effects,
# and nothing after a successful capture may discard it. Payout trouble becomes
# a warning on a confirmed booking, never a failed checkout.
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import ledger, models
from .availability import has_conflict, validate_range
from .errors import (
    AlreadyUsedError,
    AmountMismatchError,
    CheckoutBusyError,
    ConflictError,
    InvalidRangeError,
    InvalidRequestError,
    InvalidStayError,
    ListingNotFoundError,
    SettlementPersistenceError,
)
from .lifecycle import apply_coupon, consume_coupon, create_booking, issue_loyalty_coupon
from .locks import listing_checkout_lock
from .payments import AMOUNT_TOLERANCE, PaymentProcessor, capture_payment
from .pricing import Quote, count_nights, quote_stay, to_money
from .settlement import (
    PAYOUT_FAILED_WARNING,
    PayoutOutcome,
    Split,
    build_payout_memo,
    dispatch_payout,
    resolve_payout_destination,
    split_settlement,
)
from .statuses import ListingStatus

logger = logging.getLogger("harbor.checkout")


@dataclass(frozen=True)
class PreparedCheckout:
    listing: models.Listing
    check_in: date
    check_out: date
    guests: int
    quote: Quote


@dataclass
class SettlementResult:
    booking: models.Booking
    transaction: models.Transaction
    split: Split
    payout: PayoutOutcome
    loyalty_coupon: Optional[models.Coupon] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def payout_warning(self) -> Optional[str]:
        if self.payout.failed:
            return PAYOUT_FAILED_WARNING
        return self.payout.warning


def prepare_checkout(
    db: Session,
    listing_id: int,
    check_in: date,
    check_out: date,
    guests: int,
    coupon_percent: Optional[Decimal] = None,
    today: Optional[date] = None,
) -> PreparedCheckout:
    """
    Validate a requested stay and price it. Reads only; no external calls.

    Raises ListingNotFoundError, InvalidRangeError, InvalidStayError or ConflictError.
    """
    listing = db.get(models.Listing, listing_id)
    if listing is None or listing.status != ListingStatus.PUBLISHED:
        raise ListingNotFoundError()

    validate_range(check_in, check_out)
    if check_in < (today or date.today()):
        raise InvalidRangeError("check_in cannot be in the past")
    if guests < 1:
        raise InvalidStayError("At least one guest is required")
    if listing.max_guests and guests > listing.max_guests:
        raise InvalidStayError(f"This listing hosts at most {listing.max_guests} guests", max_guests=listing.max_guests)

    conflict = has_conflict(db, listing.id, check_in, check_out)
    if conflict is not None:
        raise ConflictError(conflict.type, conflict.date)

    quote = quote_stay(
        listing.price_per_night,
        count_nights(check_in, check_out),
        listing_discount_percent=listing.discount_percent,
        coupon_percent=coupon_percent,
    )
    return PreparedCheckout(listing, check_in, check_out, guests, quote)


def settle_payment(
    db: Session,
    processor: PaymentProcessor,
    *,
    guest_id: int,
    order_id: str,
    listing_id: int,
    host_id: int,
    check_in: date,
    check_out: date,
    guests: int,
    net_amount: Decimal,
    coupon_code: Optional[str] = None,
    today: Optional[date] = None,
) -> SettlementResult:
    """
    Capture an approved PayPal order and turn it into a paid booking.

    Before capture (no side effects on failure): coupon, availability, price,
    host payout destination and processor configuration are all checked, and the
    caller's net_amount must match our own quote.

    After capture: split, payout (failure tolerated), ledger entry, booking,
    coupon consumption, loyalty coupon. A store failure here raises
    SettlementPersistenceError but the capture itself is left in place.
    """
    with listing_checkout_lock(listing_id) as locked:
        if not locked:
            raise CheckoutBusyError()

        coupon = apply_coupon(db, coupon_code, guest_id) if coupon_code else None
        prepared = prepare_checkout(
            db,
            listing_id,
            check_in,
            check_out,
            guests,
            coupon_percent=coupon.discount_percent if coupon else None,
            today=today,
        )
        listing = prepared.listing
        if listing.host_id != host_id:
            raise InvalidRequestError("host_id does not match the listing's host")

        expected = prepared.quote.net_amount
        claimed = to_money(net_amount)
        if abs(claimed - expected) > AMOUNT_TOLERANCE:
            raise AmountMismatchError(
                "Requested amount does not match the quoted total",
                expected_amount=expected,
                requested_amount=claimed,
            )

        destination = resolve_payout_destination(db.get(models.User, host_id))
        processor.ensure_configured()

        capture = capture_payment(processor, order_id, expected, listing.currency)
        # Funds have moved. From here on nothing may raise past this function
        # without leaving a trace of the capture.
        logger.info(
            "Captured order %s (capture=%s, %s %s) for listing %s",
            order_id,
            capture.capture_id,
            capture.amount,
            capture.currency,
            listing.id,
        )

        split = split_settlement(expected)
        payout = dispatch_payout(
            processor,
            capture_id=capture.capture_id,
            destination=destination,
            amount=split.host_payout,
            currency=capture.currency,
            memo=build_payout_memo(listing.title, listing.id, guest_id, check_in, check_out),
        )
        if payout.failed:
            logger.error("Payout failed after capture %s: %s", capture.capture_id, payout.error)

        entry = models.Transaction(
            order_id=order_id,
            listing_id=listing.id,
            host_id=listing.host_id,
            guest_id=guest_id,
            gross_amount=expected,
            captured_amount=capture.amount,
            currency=capture.currency,
            admin_fee=split.admin_fee,
            host_payout=split.host_payout,
            capture_id=capture.capture_id,
            payout_destination=destination,
            payout_batch_id=payout.batch_id,
            status=payout.status,
            payout_error=payout.error,
            payout_warning=payout.warning,
        )
        # Plain locals only below: a rollback expires ORM instances, and reloading
        # them needs the database that just failed.
        capture_id = capture.capture_id
        try:
            transaction_id = ledger.record(db, entry)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.critical(
                "Capture %s (order %s) succeeded but the ledger entry could not be written",
                capture_id,
                order_id,
                exc_info=True,
            )
            raise SettlementPersistenceError(capture_id=capture_id, order_id=order_id) from exc

        try:
            booking = create_booking(
                db,
                listing=listing,
                guest_id=guest_id,
                check_in=check_in,
                check_out=check_out,
                number_of_guests=guests,
                quote=prepared.quote,
                split=split,
                transaction=entry,
                coupon_code=coupon.code if coupon else None,
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.critical(
                "Transaction %s recorded for capture %s but the booking could not be written",
                transaction_id,
                capture_id,
                exc_info=True,
            )
            raise SettlementPersistenceError(
                capture_id=capture_id,
                order_id=order_id,
                transaction_id=transaction_id,
            ) from exc

        result = SettlementResult(booking=booking, transaction=entry, split=split, payout=payout)
        if result.payout_warning:
            result.warnings.append(result.payout_warning)

        # Only now, with the booking committed, may the applied coupon be burnt
        if coupon is not None:
            try:
                consume_coupon(db, coupon.code, booking.id)
            except AlreadyUsedError:
                logger.error("Coupon %s was consumed concurrently; booking %s keeps its discount", coupon.code, booking.id)
                result.warnings.append("The applied coupon was already used by another booking.")
            except SQLAlchemyError:
                db.rollback()
                logger.error("Could not mark coupon %s used for booking %s", coupon.code, booking.id, exc_info=True)

        result.loyalty_coupon = issue_loyalty_coupon(db, guest_id)
        return result
