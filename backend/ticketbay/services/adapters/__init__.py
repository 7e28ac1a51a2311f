"""
Registry of item adapters, one per booking type.
"""

from ticketbay.core.exceptions import BookingValidationError
from ticketbay.services.adapters.base import ItemAdapter, Quote, Selection
from ticketbay.services.adapters.capacity import (
    CapacityAdapter,
    EventAdapter,
    FlightAdapter,
    TourAdapter,
    TrainAdapter,
)
from ticketbay.services.adapters.seat import BusAdapter, MovieAdapter, SeatMapAdapter

ADAPTERS: dict[str, ItemAdapter] = {
    adapter.item_type: adapter
    for adapter in (
        MovieAdapter(),
        BusAdapter(),
        EventAdapter(),
        TourAdapter(),
        TrainAdapter(),
        FlightAdapter(),
    )
}


def get_adapter(booking_type: str) -> ItemAdapter:
    adapter = ADAPTERS.get(str(booking_type).lower())
    if adapter is None:
        raise BookingValidationError(f"Invalid booking type: {booking_type}")
    return adapter


__all__ = [
    "ADAPTERS",
    "get_adapter",
    "ItemAdapter",
    "Quote",
    "Selection",
    "SeatMapAdapter",
    "CapacityAdapter",
]
