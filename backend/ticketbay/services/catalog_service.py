"""
Catalog service: publishing sellable items and their inventory.

Seat-based items (movie, bus) get one InventoryUnit per seat, laid out the
way the venue is:

    cinema   rows A-J, ceil(N/10) seats per row, numbered "A1".."J12"
             rows A-B vip at 1.5x, C-D premium at 1.2x, the rest regular
    coach    4 seats per row, numbered 1..N, window at columns 1 and 4
    sleeper  2 berths per row, numbered 1..N

Capacity-based items (event, tour, train, flight) get one CapacityCounter.
"""

import math
import string
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.clock import as_utc, utcnow
from ticketbay.core.exceptions import BookingError, BookingValidationError, NotFound
from ticketbay.core.logging import get_logger
from ticketbay.models.booking import Booking
from ticketbay.models.catalog import CatalogItem, ItemType, SeatLayout
from ticketbay.models.inventory import CapacityCounter, InventoryUnit, UnitKind, UnitStatus
from ticketbay.schemas.catalog import CatalogItemCreate

logger = get_logger(__name__)

CINEMA_ROWS = list("ABCDEFGHIJ")
VIP_ROWS = {"A", "B"}
PREMIUM_ROWS = {"C", "D"}
VIP_MULTIPLIER = Decimal("1.5")
PREMIUM_MULTIPLIER = Decimal("1.2")
MAX_SEATS_PER_ITEM = 1000


def _row_label(index: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    label = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        label = string.ascii_uppercase[remainder] + label
    return label


def _round_price(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def cinema_layout(total_seats: int, base_price: Decimal) -> list[dict]:
    seats_per_row = math.ceil(total_seats / len(CINEMA_ROWS))
    seats = []
    for row in CINEMA_ROWS:
        for column in range(1, seats_per_row + 1):
            if len(seats) >= total_seats:
                return seats
            if row in VIP_ROWS:
                kind, price = UnitKind.VIP, _round_price(base_price * VIP_MULTIPLIER)
            elif row in PREMIUM_ROWS:
                kind, price = UnitKind.PREMIUM, _round_price(base_price * PREMIUM_MULTIPLIER)
            else:
                kind, price = UnitKind.REGULAR, base_price
            seats.append(
                {"unit_number": f"{row}{column}", "row": row, "column": column, "unit_kind": kind.value, "price": price}
            )
    return seats


def coach_layout(total_seats: int, base_price: Decimal, sleeper: bool = False) -> list[dict]:
    per_row = 2 if sleeper else 4
    seats = []
    for row in range(1, math.ceil(total_seats / per_row) + 1):
        for column in range(1, per_row + 1):
            number = (row - 1) * per_row + column
            if number > total_seats:
                break
            if sleeper:
                kind = UnitKind.SLEEPER
            else:
                kind = UnitKind.WINDOW if column in (1, per_row) else UnitKind.AISLE
            seats.append(
                {
                    "unit_number": str(number),
                    "row": _row_label(row),
                    "column": column,
                    "unit_kind": kind.value,
                    "price": base_price,
                }
            )
    return seats


def generate_layout(item_type: ItemType, layout: Optional[SeatLayout], total_seats: int, base_price: Decimal) -> list[dict]:
    if item_type == ItemType.MOVIE:
        return cinema_layout(total_seats, base_price)
    return coach_layout(total_seats, base_price, sleeper=layout == SeatLayout.SLEEPER)


def _default_layout(item_type: ItemType, layout: Optional[SeatLayout]) -> Optional[SeatLayout]:
    if item_type == ItemType.MOVIE:
        return SeatLayout.CINEMA
    if item_type == ItemType.BUS:
        return layout if layout in (SeatLayout.COACH, SeatLayout.SLEEPER) else SeatLayout.COACH
    return None


async def publish_item(db: AsyncSession, data: CatalogItemCreate) -> CatalogItem:
    """Create a catalog item together with its seats or capacity counter."""
    if as_utc(data.event_date) <= utcnow():
        raise BookingValidationError("Event date must be in the future")

    layout = _default_layout(data.item_type, data.layout)
    item = CatalogItem(
        item_type=data.item_type.value,
        title=data.title,
        venue=data.venue,
        event_date=data.event_date,
        unit_price=data.unit_price,
        total_units=data.total_units,
        layout=layout.value if layout else None,
        is_active=True,
    )
    db.add(item)
    await db.flush()

    if item.is_seat_based:
        if data.total_units > MAX_SEATS_PER_ITEM:
            raise BookingValidationError(f"Seat-based items support at most {MAX_SEATS_PER_ITEM} seats")
        seats = generate_layout(data.item_type, layout, data.total_units, Decimal(data.unit_price))
        db.add_all(
            InventoryUnit(
                item_type=item.item_type,
                item_id=item.id,
                status=UnitStatus.AVAILABLE.value,
                **seat,
            )
            for seat in seats
        )
    else:
        db.add(CapacityCounter(item_id=item.id, total_units=data.total_units, available_units=data.total_units))

    await db.flush()
    await db.refresh(item)
    logger.info("item_published", item_id=item.id, item_type=item.item_type, title=item.title, units=item.total_units)
    return item


async def get_item(db: AsyncSession, item_id: int, item_type: Optional[str] = None) -> CatalogItem:
    query = select(CatalogItem).where(CatalogItem.id == item_id)
    if item_type is not None:
        query = query.where(CatalogItem.item_type == item_type)
    result = await db.execute(query.execution_options(populate_existing=True))
    item = result.scalar_one_or_none()
    if not item:
        raise NotFound(f"Item {item_id} not found")
    return item


async def get_active_item(db: AsyncSession, item_id: int, item_type: str) -> CatalogItem:
    item = await get_item(db, item_id, item_type)
    if not item.is_active:
        raise NotFound(f"Item {item_id} not found")
    return item


async def available_counts(db: AsyncSession, items: list[CatalogItem]) -> dict[int, int]:
    """item_id -> currently sellable units (available seats or counter value)."""
    seat_ids = [item.id for item in items if item.is_seat_based]
    capacity_ids = [item.id for item in items if not item.is_seat_based]
    counts: dict[int, int] = {}
    if seat_ids:
        now = utcnow()
        free = case(
            (InventoryUnit.status == UnitStatus.AVAILABLE.value, 1),
            (
                (InventoryUnit.status == UnitStatus.HELD.value) & (InventoryUnit.held_until < now),
                1,
            ),
            else_=0,
        )
        result = await db.execute(
            select(InventoryUnit.item_id, func.sum(free))
            .where(InventoryUnit.item_id.in_(seat_ids))
            .group_by(InventoryUnit.item_id)
        )
        counts.update({item_id: int(total or 0) for item_id, total in result.all()})
    if capacity_ids:
        result = await db.execute(
            select(CapacityCounter.item_id, CapacityCounter.available_units).where(
                CapacityCounter.item_id.in_(capacity_ids)
            )
        )
        counts.update(dict(result.all()))
    return counts


async def list_items(
    db: AsyncSession,
    item_type: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[CatalogItem], int]:
    query = select(CatalogItem).where(CatalogItem.is_active.is_(True))
    if item_type:
        query = query.where(CatalogItem.item_type == item_type)
    if upcoming_only:
        query = query.where(CatalogItem.event_date >= utcnow())

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    result = await db.execute(
        query.order_by(CatalogItem.event_date.asc(), CatalogItem.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def resize_capacity(db: AsyncSession, item_id: int, total_units: int) -> CapacityCounter:
    """
    Change a counter's total. available_units moves by the same delta and is
    clamped to [0, total_units]; units already sold stay sold.
    """
    item = await get_item(db, item_id)
    if item.is_seat_based:
        raise BookingValidationError("Seat-based items cannot be resized")

    # Delta against the row's current total, not a value read earlier.
    new_available = CapacityCounter.available_units + (total_units - CapacityCounter.total_units)
    result = await db.execute(
        update(CapacityCounter)
        .where(CapacityCounter.item_id == item_id)
        .values(
            total_units=total_units,
            available_units=case(
                (new_available < 0, 0),
                (new_available > total_units, total_units),
                else_=new_available,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound(f"No capacity counter for item {item_id}")
    await db.execute(
        update(CatalogItem)
        .where(CatalogItem.id == item_id)
        .values(total_units=total_units)
        .execution_options(synchronize_session=False)
    )
    counter = (
        await db.execute(
            select(CapacityCounter)
            .where(CapacityCounter.item_id == item_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    logger.info(
        "capacity_resized",
        item_id=item_id,
        total_units=total_units,
        available_units=counter.available_units,
    )
    return counter


async def delete_item(db: AsyncSession, item_id: int) -> None:
    item = await get_item(db, item_id)
    bookings = (await db.execute(select(func.count(Booking.id)).where(Booking.item_id == item_id))).scalar()
    if bookings:
        raise BookingError("Cannot delete an item with existing bookings", status_code=409)

    await db.execute(delete(InventoryUnit).where(InventoryUnit.item_id == item_id))
    await db.execute(delete(CapacityCounter).where(CapacityCounter.item_id == item_id))
    await db.delete(item)
    await db.flush()
    logger.info("item_deleted", item_id=item_id, item_type=item.item_type)


def event_has_passed(item: CatalogItem, now: Optional[datetime] = None) -> bool:
    return as_utc(item.event_date) <= (now or utcnow())
