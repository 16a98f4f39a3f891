# Checkout error taxonomy.
# Services raise these; main.py renders them as {"detail": {"error": code, "message": ..., ...}}
# so callers never see processor-specific shapes.
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional


class HarborError(Exception):
    status_code = 400
    code = "error"
    category = "validation"
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        for key, value in self.context.items():
            if isinstance(value, (date, Decimal)):
                value = str(value)
            detail[key] = value
        return detail


# Validation: caller-correctable, raised before any external call

class InvalidRangeError(HarborError):
    code = "invalid_range"
    default_message = "check_out must be after check_in"


class InvalidStayError(HarborError):
    code = "invalid_stay"
    default_message = "Stay must be at least one night"


class InvalidRequestError(HarborError):
    code = "invalid_request"


class ConflictError(HarborError):
    status_code = 409
    code = "conflict"

    def __init__(self, conflict_type: str, conflict_date: date) -> None:
        reason = "booked by another guest" if conflict_type == "booked" else "blocked by the host"
        super().__init__(
            f"The date {conflict_date.isoformat()} is already {reason}",
            type=conflict_type,
            date=conflict_date,
        )
        self.conflict_type = conflict_type
        self.conflict_date = conflict_date


class NotFoundError(HarborError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ListingNotFoundError(NotFoundError):
    default_message = "Listing not found"


class CouponNotFoundError(NotFoundError):
    code = "coupon_not_found"
    default_message = "Coupon not found"


class NotOwnerError(HarborError):
    status_code = 403
    code = "coupon_not_owner"
    default_message = "This coupon does not belong to your account"


class AlreadyUsedError(HarborError):
    status_code = 409
    code = "coupon_already_used"
    default_message = "This coupon has already been used"


class ExpiredError(HarborError):
    status_code = 410
    code = "coupon_expired"
    default_message = "This coupon has expired"


# Configuration: fail fast before capture

class ConfigurationError(HarborError):
    status_code = 412
    code = "configuration_error"
    category = "configuration"
    default_message = "Payments are not configured"


# Capture: abort with no durable side effects; safe to retry with a fresh order

class CaptureFailedError(HarborError):
    status_code = 402
    code = "capture_failed"
    category = "capture"
    default_message = "Failed to capture the payment"

    def __init__(self, message: Optional[str] = None, *, retryable: bool = False, **context: Any) -> None:
        super().__init__(message, retryable=retryable, **context)
        self.retryable = retryable


class CaptureIncompleteError(CaptureFailedError):
    code = "capture_incomplete"
    default_message = "The payment processor did not complete the capture"


class AmountMismatchError(HarborError):
    status_code = 402
    code = "amount_mismatch"
    category = "capture"
    default_message = "Captured amount does not match the expected total. Payment aborted."


# Concurrency: another checkout holds the listing

class CheckoutBusyError(HarborError):
    status_code = 429
    code = "busy"
    category = "busy"
    default_message = "Another checkout for this listing is in progress"

    def __init__(self, message: Optional[str] = None, retry_after: int = 1) -> None:
        super().__init__(message, retry_after=retry_after)


# Persistence after funds moved: never reverses the capture, needs support follow-up

class SettlementPersistenceError(HarborError):
    status_code = 500
    code = "settlement_incomplete"
    category = "persistence"
    default_message = "Payment captured, but the reservation could not be saved. Support has been notified."
