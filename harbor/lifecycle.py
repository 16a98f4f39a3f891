# Booking & coupon lifecycle: persist paid bookings, validate/consume coupons,
# and hand out loyalty coupons after a completed checkout.
from __future__ import annotations

import logging
import secrets
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import AlreadyUsedError, CouponNotFoundError, ExpiredError, NotOwnerError
from .pricing import Quote
from .settlement import Split
from .statuses import BookingStatus

logger = logging.getLogger("harbor.lifecycle")

LOYALTY_DISCOUNT_PERCENT = Decimal("10")
COUPON_EXPIRY_DAYS = 30
COUPON_CODE_LENGTH = 10
# No 0/O or 1/I so codes survive being read aloud or retyped
COUPON_CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
_CODE_ATTEMPTS = 5


def normalize_coupon_code(code: str) -> str:
    return (code or "").strip().upper()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def create_booking(
    db: Session,
    *,
    listing: models.Listing,
    guest_id: int,
    check_in: date,
    check_out: date,
    number_of_guests: int,
    quote: Quote,
    split: Split,
    transaction: models.Transaction,
    coupon_code: Optional[str] = None,
) -> models.Booking:
    """Persist a booking for a captured payment. Only ever called after the ledger entry exists."""
    booking = models.Booking(
        listing_id=listing.id,
        guest_id=guest_id,
        host_id=listing.host_id,
        check_in=check_in,
        check_out=check_out,
        number_of_guests=number_of_guests,
        gross_amount=quote.gross_amount,
        discount_amount=quote.discount_amount,
        net_amount=quote.net_amount,
        admin_fee=split.admin_fee,
        host_payout=split.host_payout,
        currency=transaction.currency,
        status=BookingStatus.PAID,
        coupon_code=normalize_coupon_code(coupon_code) if coupon_code else None,
        coupon_discount_percent=quote.coupon_percent,
        transaction_id=transaction.id,
        capture_id=transaction.capture_id,
        payment_reference=transaction.order_id,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("Created booking %s for listing %s (transaction %s)", booking.id, listing.id, transaction.id)
    return booking


def apply_coupon(db: Session, code: str, guest_id: int, now: Optional[datetime] = None) -> models.Coupon:
    """Validate a coupon for this guest and return it. Does not mark it used."""
    normalized = normalize_coupon_code(code)
    coupon = db.get(models.Coupon, normalized) if normalized else None
    if coupon is None:
        raise CouponNotFoundError(code=normalized or None)
    if coupon.owner_guest_id != guest_id:
        raise NotOwnerError(code=normalized)
    if coupon.is_used:
        raise AlreadyUsedError(code=normalized)
    now = now or datetime.now(timezone.utc)
    if _as_utc(coupon.expires_at) <= now:
        raise ExpiredError(code=normalized)
    return coupon


def consume_coupon(db: Session, code: str, booking_id: int, now: Optional[datetime] = None) -> None:
    """
    Mark a coupon used by a booking.

    Compare-and-set on is_used so two checkouts racing on one coupon cannot
    both consume it; the loser gets AlreadyUsedError.
    """
    normalized = normalize_coupon_code(code)
    rows = (
        db.query(models.Coupon)
        .filter(models.Coupon.code == normalized, models.Coupon.is_used == False)  # noqa: E712
        .update(
            {
                models.Coupon.is_used: True,
                models.Coupon.used_at: now or datetime.now(timezone.utc),
                models.Coupon.consumed_by_booking_id: booking_id,
            },
            synchronize_session=False,
        )
    )
    if rows == 0:
        db.rollback()
        raise AlreadyUsedError(code=normalized)
    db.commit()
    logger.info("Coupon %s consumed by booking %s", normalized, booking_id)


def generate_coupon_code(length: int = COUPON_CODE_LENGTH) -> str:
    return "".join(secrets.choice(COUPON_CHARSET) for _ in range(length))


def issue_loyalty_coupon(db: Session, guest_id: int, now: Optional[datetime] = None) -> Optional[models.Coupon]:
    """
    Reward a completed booking with a fresh coupon.

    Best-effort: a store failure is logged and None is returned; the booking it
    rewards is already committed and stays confirmed.
    """
    now = now or datetime.now(timezone.utc)
    try:
        code = generate_coupon_code()
        for _ in range(_CODE_ATTEMPTS - 1):
            if db.get(models.Coupon, code) is None:
                break
            code = generate_coupon_code()

        coupon = models.Coupon(
            code=code,
            owner_guest_id=guest_id,
            discount_percent=LOYALTY_DISCOUNT_PERCENT,
            is_used=False,
            created_at=now,
            expires_at=now + timedelta(days=COUPON_EXPIRY_DAYS),
        )
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Unable to issue loyalty coupon for guest %s", guest_id, exc_info=True)
        return None


def coupons_for_guest(db: Session, guest_id: int) -> List[models.Coupon]:
    return (
        db.query(models.Coupon)
        .filter(models.Coupon.owner_guest_id == guest_id)
        .order_by(models.Coupon.created_at.desc())
        .all()
    )


def bookings_for_user(db: Session, user: models.User, limit: int = 20, offset: int = 0) -> List[models.Booking]:
    """Guests see their own stays; hosts see stays on their listings."""
    q = db.query(models.Booking)
    if user.role == "host":
        q = q.filter(models.Booking.host_id == user.id)
    else:
        q = q.filter(models.Booking.guest_id == user.id)
    return (
        q.order_by(models.Booking.check_in.desc(), models.Booking.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
