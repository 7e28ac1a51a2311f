"""
Counted-capacity item types: the shopper asks for N tickets.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.exceptions import BookingValidationError, InsufficientCapacity
from ticketbay.models.catalog import CatalogItem, ItemType
from ticketbay.services import inventory_service
from ticketbay.services.adapters.base import ItemAdapter, Quote, Selection

MAX_TICKETS_PER_BOOKING = 10


class CapacityAdapter(ItemAdapter):
    async def resolve_availability(
        self,
        db: AsyncSession,
        item: CatalogItem,
        selection: Selection,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Quote:
        quantity = selection.quantity or 1
        if not 1 <= quantity <= MAX_TICKETS_PER_BOOKING:
            raise BookingValidationError(f"Quantity must be between 1 and {MAX_TICKETS_PER_BOOKING}")
        # Advisory only; reserve_capacity is the real guard.
        counter = await inventory_service.get_capacity(db, item.id)
        if counter.available_units < quantity:
            raise InsufficientCapacity(quantity, counter.available_units)
        return Quote(quantity=quantity, line_prices=[Decimal(item.unit_price)] * quantity)

    def compute_price(self, item: CatalogItem, quote: Quote) -> Decimal:
        return Decimal(item.unit_price) * quote.quantity

    async def reserve(self, db, item, quote, user_id, booking_ref, now=None) -> None:
        await inventory_service.reserve_capacity(db, item.id, quote.quantity)

    async def release(self, db, item_id, unit_refs, quantity, booking_ref) -> None:
        await inventory_service.release_capacity(db, item_id, quantity)

    async def reinstate(self, db, item_id, unit_refs, quantity, user_id, booking_ref) -> None:
        await inventory_service.reserve_capacity(db, item_id, quantity)


class EventAdapter(CapacityAdapter):
    item_type = ItemType.EVENT.value


class TourAdapter(CapacityAdapter):
    item_type = ItemType.TOUR.value


class TrainAdapter(CapacityAdapter):
    item_type = ItemType.TRAIN.value


class FlightAdapter(CapacityAdapter):
    item_type = ItemType.FLIGHT.value
