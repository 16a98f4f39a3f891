# Pytest configuration for the checkout API tests.
# Forces a local SQLite DB, disables Redis, wires a JWT secret, and swaps PayPal for an in-memory fake.
import os
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient

# Test-time environment: local SQLite DB, Redis disabled, predictable JWT secret
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("HARBOR_JWT_SECRET", "test-secret")

import sys
# Ensure the repo root is on sys.path so 'harbor' resolves when running pytest from anywhere
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from harbor.main import app  # noqa: E402
from harbor.db import Base, SessionLocal, engine  # noqa: E402
from harbor import models  # noqa: E402
from harbor.payments import get_processor  # noqa: E402
from harbor.errors import ConfigurationError  # noqa: E402
from harbor.routes.auth import create_access_token  # noqa: E402
from harbor.statuses import BookingStatus, PayoutStatus  # noqa: E402


class FakeProcessor:
    """
    In-memory stand-in for PayPalClient.

    capture_order reports a COMPLETED capture of `capture_amount` (defaults to
    whatever the test sets); payouts answer `payout_response` or raise `payout_error`.
    """

    def __init__(self) -> None:
        self.configured = True
        self.capture_amount: Optional[str] = None
        self.capture_currency = "USD"
        self.capture_status = "COMPLETED"
        self.capture_error: Optional[Exception] = None
        self.payout_error: Optional[Exception] = None
        self.payout_response: Dict[str, Any] = {
            "batch_header": {"payout_batch_id": "BATCH-1", "batch_status": "PENDING"},
            "items": [{"transaction_status": "SUCCESS"}],
        }
        self.captures: List[str] = []
        self.payouts: List[Dict[str, Any]] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("PayPal is not configured on the server. Please contact support.")

    def capture_order(self, order_id: str) -> Dict[str, Any]:
        self.captures.append(order_id)
        if self.capture_error is not None:
            raise self.capture_error
        return {
            "id": order_id,
            "status": "COMPLETED",
            "payer": {"email_address": "guest@example.com"},
            "purchase_units": [
                {
                    "payments": {
                        "captures": [
                            {
                                "id": f"CAP-{order_id}",
                                "status": self.capture_status,
                                "amount": {"value": self.capture_amount, "currency_code": self.capture_currency},
                            }
                        ]
                    }
                }
            ],
        }

    def create_payout(self, **kwargs: Any) -> Dict[str, Any]:
        self.payouts.append(kwargs)
        if self.payout_error is not None:
            raise self.payout_error
        return self.payout_response


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_db() -> Iterator[None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_db() -> Iterator[None]:
    """Drop and recreate the schema before each test; simple isolation for a small suite."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db() -> Iterator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def processor() -> Iterator[FakeProcessor]:
    fake = FakeProcessor()
    app.dependency_overrides[get_processor] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_processor, None)


@pytest.fixture()
def client(processor: FakeProcessor) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


# Seed helpers: users, listings and bookings normally come from other services

def make_user(db, email: str, role: str = "guest", payout_email: Optional[str] = None) -> models.User:
    user = models.User(email=email, role=role, payout_email=payout_email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_listing(
    db,
    host: models.User,
    price: str = "100.00",
    discount_percent: str = "0",
    max_guests: Optional[int] = 4,
    status: str = "published",
    title: str = "Harbor Loft",
) -> models.Listing:
    listing = models.Listing(
        host_id=host.id,
        title=title,
        price_per_night=Decimal(price),
        discount_percent=Decimal(discount_percent),
        currency="USD",
        max_guests=max_guests,
        status=status,
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


def block_date(db, listing: models.Listing, day: date) -> None:
    db.add(models.BlockedDate(listing_id=listing.id, day=day))
    db.commit()


def make_booking(
    db,
    listing: models.Listing,
    guest: models.User,
    check_in: date,
    check_out: date,
    status: BookingStatus = BookingStatus.PAID,
) -> models.Booking:
    """Insert a paid booking together with the ledger entry it must reference."""
    order_id = f"SEED-{listing.id}-{check_in.isoformat()}"
    entry = models.Transaction(
        order_id=order_id,
        listing_id=listing.id,
        host_id=listing.host_id,
        guest_id=guest.id,
        gross_amount=Decimal("100.00"),
        captured_amount=Decimal("100.00"),
        currency="USD",
        admin_fee=Decimal("5.00"),
        host_payout=Decimal("95.00"),
        capture_id=f"CAP-{order_id}",
        payout_destination="host@example.com",
        status=PayoutStatus.SENT,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    booking = models.Booking(
        listing_id=listing.id,
        guest_id=guest.id,
        host_id=listing.host_id,
        check_in=check_in,
        check_out=check_out,
        number_of_guests=1,
        gross_amount=Decimal("100.00"),
        discount_amount=Decimal("0.00"),
        net_amount=Decimal("100.00"),
        admin_fee=Decimal("5.00"),
        host_payout=Decimal("95.00"),
        currency="USD",
        status=status,
        transaction_id=entry.id,
        capture_id=entry.capture_id,
        payment_reference=order_id,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def make_coupon(
    db,
    owner: models.User,
    code: str = "SAVE10ABCD",
    percent: str = "10",
    expires_in_days: int = 30,
    is_used: bool = False,
) -> models.Coupon:
    now = datetime.now(timezone.utc)
    coupon = models.Coupon(
        code=code,
        owner_guest_id=owner.id,
        discount_percent=Decimal(percent),
        is_used=is_used,
        created_at=now,
        expires_at=now + timedelta(days=expires_in_days),
    )
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


def auth_headers(user: models.User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user=user)}"}
