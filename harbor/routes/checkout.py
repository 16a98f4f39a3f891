# Checkout endpoints: price a stay, check a coupon, settle an approved PayPal order.
# Service errors (HarborError) propagate to the handler in main.py; nothing here builds error bodies.
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..checkout import prepare_checkout, settle_payment
from ..lifecycle import apply_coupon
from ..payments import PaymentProcessor, get_processor
from ..rate_limit import rate_limit
from .auth import require_guest

router = APIRouter()


@router.post(
    "/checkout/prepare",
    response_model=schemas.PrepareCheckoutResponse,
    dependencies=[Depends(rate_limit("checkout"))],
)
def prepare(
    payload: schemas.PrepareCheckoutRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_guest),
) -> schemas.PrepareCheckoutResponse:
    coupon = apply_coupon(db, payload.coupon_code, user.id) if payload.coupon_code else None
    prepared = prepare_checkout(
        db,
        payload.listing_id,
        payload.check_in,
        payload.check_out,
        payload.guests,
        coupon_percent=coupon.discount_percent if coupon else None,
    )
    quote = prepared.quote
    return schemas.PrepareCheckoutResponse(
        listing_id=prepared.listing.id,
        host_id=prepared.listing.host_id,
        check_in=prepared.check_in,
        check_out=prepared.check_out,
        guests=prepared.guests,
        nights=quote.nights,
        nightly_rate=quote.nightly_rate,
        total_price=quote.gross_amount,
        coupon_percent=quote.coupon_percent,
        discount_amount=quote.discount_amount,
        net_amount=quote.net_amount,
        currency=prepared.listing.currency,
    )


@router.post(
    "/coupons/apply",
    response_model=schemas.CouponRead,
    dependencies=[Depends(rate_limit("coupon"))],
)
def apply(
    payload: schemas.ApplyCouponRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_guest),
) -> models.Coupon:
    return apply_coupon(db, payload.code, user.id)


@router.post(
    "/checkout/settle",
    response_model=schemas.SettlePaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("payment"))],
)
def settle(
    payload: schemas.SettlePaymentRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_guest),
    processor: PaymentProcessor = Depends(get_processor),
) -> schemas.SettlePaymentResponse:
    result = settle_payment(
        db,
        processor,
        guest_id=user.id,
        order_id=payload.order_id,
        listing_id=payload.listing_id,
        host_id=payload.host_id,
        check_in=payload.check_in,
        check_out=payload.check_out,
        guests=payload.guests,
        net_amount=payload.net_amount,
        coupon_code=payload.coupon_code,
    )
    booking = result.booking
    return schemas.SettlePaymentResponse(
        booking_id=booking.id,
        transaction_id=result.transaction.id,
        capture_id=booking.capture_id,
        net_amount=booking.net_amount,
        admin_fee=result.split.admin_fee,
        host_payout=result.split.host_payout,
        currency=booking.currency,
        payout_status=result.payout.status,
        payout_warning=result.payout_warning,
        payout_error=result.payout.error,
        warnings=result.warnings,
        loyalty_coupon=(
            schemas.CouponRead.model_validate(result.loyalty_coupon) if result.loyalty_coupon else None
        ),
        booking=schemas.BookingRead.model_validate(booking),
    )
