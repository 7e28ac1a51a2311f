"""
Seat-map item types: the shopper holds specific seats, then pays.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.exceptions import BookingValidationError, UnitNotFound
from ticketbay.models.catalog import CatalogItem, ItemType
from ticketbay.services import inventory_service
from ticketbay.services.adapters.base import ItemAdapter, Quote, Selection


class SeatMapAdapter(ItemAdapter):
    seat_based = True

    async def resolve_availability(
        self,
        db: AsyncSession,
        item: CatalogItem,
        selection: Selection,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Quote:
        if not selection.unit_numbers:
            raise BookingValidationError("Seats are required for this booking type")
        numbers = inventory_service.normalize_unit_numbers(selection.unit_numbers)
        units = await inventory_service.get_units(db, self.item_type, item.id, numbers)
        found = {unit.unit_number: unit for unit in units}
        missing = [n for n in numbers if n not in found]
        if missing:
            raise UnitNotFound(missing)
        # Hold ownership is enforced by commit_sale, not here.
        return Quote(
            quantity=len(numbers),
            unit_refs=numbers,
            line_prices=[Decimal(found[n].price) for n in numbers],
        )

    def compute_price(self, item: CatalogItem, quote: Quote) -> Decimal:
        return sum(quote.line_prices, Decimal("0"))

    async def reserve(self, db, item, quote, user_id, booking_ref, now=None) -> None:
        await inventory_service.commit_sale(
            db, self.item_type, item.id, quote.unit_refs, user_id, booking_ref, now=now
        )

    async def release(self, db, item_id, unit_refs, quantity, booking_ref) -> None:
        await inventory_service.release_sale(db, self.item_type, item_id, unit_refs, booking_ref=booking_ref)

    async def reinstate(self, db, item_id, unit_refs, quantity, user_id, booking_ref) -> None:
        await inventory_service.reinstate_sale(db, self.item_type, item_id, unit_refs, user_id, booking_ref)


class MovieAdapter(SeatMapAdapter):
    item_type = ItemType.MOVIE.value


class BusAdapter(SeatMapAdapter):
    item_type = ItemType.BUS.value
