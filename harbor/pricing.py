# Price & discount calculator. All money is Decimal, rounded half-up to cents.
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from .errors import InvalidStayError

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")


def to_decimal(value: Number) -> Decimal:
    # str() first so floats like 0.1 do not drag binary noise into the amount
    return value if isinstance(value, Decimal) else Decimal(str(value))


def to_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def count_nights(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days


def _percent(value: Optional[Number], label: str) -> Decimal:
    pct = to_decimal(value or 0)
    if pct < 0 or pct > HUNDRED:
        raise InvalidStayError(f"{label} must be between 0 and 100")
    return pct


@dataclass(frozen=True)
class Quote:
    nights: int
    nightly_rate: Decimal
    gross_amount: Decimal
    coupon_percent: Optional[Decimal]
    discount_amount: Decimal
    net_amount: Decimal


def quote_stay(
    base_price: Number,
    nights: int,
    listing_discount_percent: Optional[Number] = 0,
    coupon_percent: Optional[Number] = None,
) -> Quote:
    """
    Price a stay.

    nightly rate = base × (1 − listing discount / 100)
    gross        = round(nights × nightly rate, 2)
    discount     = round(gross × coupon / 100, 2) when a coupon applies, else 0
    net          = max(gross − discount, 0)
    """
    if nights < 1:
        raise InvalidStayError()

    base = to_decimal(base_price)
    if base < 0:
        raise InvalidStayError("Price per night cannot be negative")
    listing_pct = _percent(listing_discount_percent, "Listing discount")
    nightly_rate = base * (1 - listing_pct / HUNDRED)
    gross = to_money(nightly_rate * nights)

    if coupon_percent is None:
        return Quote(
            nights=nights,
            nightly_rate=to_money(nightly_rate),
            gross_amount=gross,
            coupon_percent=None,
            discount_amount=ZERO,
            net_amount=gross,
        )

    coupon_pct = _percent(coupon_percent, "Coupon discount")
    discount = to_money(gross * coupon_pct / HUNDRED)
    return Quote(
        nights=nights,
        nightly_rate=to_money(nightly_rate),
        gross_amount=gross,
        coupon_percent=coupon_pct,
        discount_amount=discount,
        net_amount=max(gross - discount, ZERO),
    )
