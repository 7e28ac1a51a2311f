"""
Price breakdown and cancellation policy.

Grand total = subtotal + booking fee + tax, each rounded half-up to paise.

Refund tiers, by hours left before the event at cancellation time:

    more than 72h  -> 90%
    more than 48h  -> 75%
    more than 24h  -> 50%
    otherwise      -> 0% (and cancellation is refused)
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ticketbay.core.clock import hours_until
from ticketbay.core.config import get_settings
from ticketbay.models.booking import Booking, BookingStatus

CENT = Decimal("0.01")

REFUND_TIERS = (
    (72, Decimal("0.90")),
    (48, Decimal("0.75")),
    (24, Decimal("0.50")),
)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    booking_fee: Decimal
    tax: Decimal
    total_amount: Decimal


def money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def price_breakdown(subtotal: Decimal) -> PriceBreakdown:
    settings = get_settings()
    subtotal = money(subtotal)
    booking_fee = money(subtotal * settings.BOOKING_FEE_RATE)
    tax = money(subtotal * settings.TAX_RATE)
    return PriceBreakdown(
        subtotal=subtotal,
        booking_fee=booking_fee,
        tax=tax,
        total_amount=money(subtotal + booking_fee + tax),
    )


def refund_fraction(hours_left: float) -> Decimal:
    for threshold, fraction in REFUND_TIERS:
        if hours_left > threshold:
            return fraction
    return Decimal("0")


def can_be_cancelled(booking: Booking, now: Optional[datetime] = None) -> bool:
    if booking.booking_status != BookingStatus.CONFIRMED.value:
        return False
    return hours_until(booking.event_date, now) > get_settings().CANCELLATION_CUTOFF_HOURS


def compute_refund(booking: Booking, now: Optional[datetime] = None) -> Decimal:
    if not can_be_cancelled(booking, now):
        return Decimal("0.00")
    fraction = refund_fraction(hours_until(booking.event_date, now))
    return money(Decimal(booking.total_amount) * fraction)
