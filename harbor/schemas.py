# Pydantic models (request/response DTOs) used by the API layer.
# Money crosses the wire as decimal strings; business logic lives in the service modules.
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from .statuses import BookingStatus, PayoutStatus


def _normalize_code(v):
    # Coupon codes are case-insensitive on input
    if isinstance(v, str):
        v = v.strip().upper()
        return v or None
    return v


# Common stay fields shared by prepare/settle
class StayRequest(BaseModel):
    listing_id: int = Field(..., ge=1)
    check_in: date
    check_out: date
    guests: int = Field(1, ge=1)


# Request payload for pricing a stay before the guest approves payment
class PrepareCheckoutRequest(StayRequest):
    coupon_code: Optional[str] = Field(None, max_length=16)

    @field_validator("coupon_code", mode="before")
    @classmethod
    def normalize_coupon(cls, v):
        return _normalize_code(v)


# Itemized price for a stay; total_price is before the coupon, net_amount is what the guest pays
class PrepareCheckoutResponse(BaseModel):
    listing_id: int
    host_id: int
    check_in: date
    check_out: date
    guests: int
    nights: int
    nightly_rate: Decimal
    total_price: Decimal
    coupon_percent: Optional[Decimal] = None
    discount_amount: Decimal
    net_amount: Decimal
    currency: str


# Coupons
class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        return _normalize_code(v)


class CouponRead(BaseModel):
    code: str
    discount_percent: Decimal
    is_used: bool
    created_at: Optional[datetime] = None
    expires_at: datetime
    used_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Settlement
# Request payload sent after the guest approves the PayPal order client-side
class SettlePaymentRequest(StayRequest):
    order_id: str = Field(..., pattern=r"^[A-Za-z0-9-]{1,64}$")
    host_id: int = Field(..., ge=1)
    net_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    coupon_code: Optional[str] = Field(None, max_length=16)

    @field_validator("coupon_code", mode="before")
    @classmethod
    def normalize_coupon(cls, v):
        return _normalize_code(v)


# API response for a booking record
class BookingRead(BaseModel):
    id: int
    listing_id: int
    guest_id: int
    host_id: int
    check_in: date
    check_out: date
    number_of_guests: int
    gross_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    admin_fee: Decimal
    host_payout: Decimal
    currency: str = "USD"
    status: BookingStatus
    coupon_code: Optional[str] = None
    transaction_id: int
    capture_id: str
    payment_reference: str

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# API response for a ledger entry (host view)
class TransactionRead(BaseModel):
    id: int
    order_id: str
    listing_id: int
    guest_id: int
    gross_amount: Decimal
    captured_amount: Decimal
    currency: str
    admin_fee: Decimal
    host_payout: Decimal
    capture_id: str
    payout_batch_id: Optional[str] = None
    status: PayoutStatus
    payout_error: Optional[str] = None
    payout_warning: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# Returned after a settlement; payout problems ride along as warnings, not errors
class SettlePaymentResponse(BaseModel):
    booking_id: int
    transaction_id: int
    capture_id: str
    net_amount: Decimal
    admin_fee: Decimal
    host_payout: Decimal
    currency: str
    payout_status: PayoutStatus
    payout_warning: Optional[str] = None
    payout_error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    loyalty_coupon: Optional[CouponRead] = None
    booking: BookingRead


# Availability
class UnavailableDatesResponse(BaseModel):
    listing_id: int
    start: date
    end: date
    booked: List[date]
    blocked: List[date]
