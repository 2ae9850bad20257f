"""Booking request value object and its fail-fast validation."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime

from stayprice.domain.errors import InvalidBookingRequest

MAX_STAY_NIGHTS = 365

_CURRENCY_CODE = re.compile(r"^[A-Za-z]{3}$")


@dataclass(frozen=True)
class BookingRequest:
    check_in: date
    check_out: date
    adult_count: int = 1
    child_count: int = 0
    promo_code: str | None = None
    user_id: str | None = None
    currency: str = "USD"

    @property
    def nights(self) -> int:
        return calculate_nights(self.check_in, self.check_out)


def calculate_nights(check_in: date | datetime, check_out: date | datetime) -> int:
    """Number of nights between check-in and check-out.

    Partial days (when datetimes are passed) count as a full night.
    """
    if isinstance(check_in, datetime) or isinstance(check_out, datetime):
        delta = _as_datetime(check_out) - _as_datetime(check_in)
        return math.ceil(delta.total_seconds() / 86400)
    return (check_out - check_in).days


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def validate_booking_request(request: BookingRequest) -> None:
    """Reject requests the engine cannot price.

    Raises:
        InvalidBookingRequest: With one of the reason codes
            ``invalid_dates``, ``stay_too_long``, ``invalid_adult_count``,
            ``invalid_child_count`` or ``unsupported_currency``.
    """
    nights = request.nights
    if nights <= 0:
        raise InvalidBookingRequest(
            "invalid_dates",
            {"check_in": str(request.check_in), "check_out": str(request.check_out)},
        )
    if nights > MAX_STAY_NIGHTS:
        raise InvalidBookingRequest("stay_too_long", {"nights": nights, "max_nights": MAX_STAY_NIGHTS})
    if request.adult_count < 1:
        raise InvalidBookingRequest("invalid_adult_count", {"adult_count": request.adult_count})
    if request.child_count < 0:
        raise InvalidBookingRequest("invalid_child_count", {"child_count": request.child_count})
    if not request.currency or not _CURRENCY_CODE.match(request.currency):
        raise InvalidBookingRequest("unsupported_currency", {"currency": request.currency})
