"""
Seat map, seat hold and capacity endpoints.

Seat maps and counters are always read from the database; they are never
cached.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.clock import as_utc, utcnow
from ticketbay.core.exceptions import BookingValidationError
from ticketbay.core.security import Principal, get_current_user_id, require_admin
from ticketbay.db.session import get_db
from ticketbay.models.catalog import ItemType
from ticketbay.models.inventory import UnitStatus
from ticketbay.schemas.inventory import (
    CapacityResponse,
    HoldRequest,
    HoldResponse,
    ReleaseRequest,
    ReleaseResponse,
    SeatMapResponse,
    SeatResponse,
    SweepResponse,
)
from ticketbay.services import inventory_service
from ticketbay.services.catalog_service import get_item

router = APIRouter(prefix="/inventory", tags=["Inventory"])


async def _seat_item(db: AsyncSession, item_type: ItemType, item_id: int):
    item = await get_item(db, item_id, item_type.value)
    if not item.is_seat_based:
        raise BookingValidationError(f"{item_type.value} items are sold by quantity, not by seat")
    return item


@router.get("/{item_type}/{item_id}/seats", response_model=SeatMapResponse)
async def seat_map_endpoint(
    item_type: ItemType,
    item_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Seat map with expired holds already returned to available."""
    await _seat_item(db, item_type, item_id)
    now = utcnow()
    units = await inventory_service.get_seat_map(db, item_type.value, item_id, now=now)

    seats = []
    for unit in units:
        mine = unit.status == UnitStatus.HELD.value and unit.held_by == user_id
        seats.append(
            SeatResponse(
                unit_number=unit.unit_number,
                row=unit.row,
                column=unit.column,
                unit_kind=unit.unit_kind,
                price=unit.price,
                status=unit.status,
                held_until=as_utc(unit.held_until) if mine else None,
                held_by_me=mine,
            )
        )
    rows = list(dict.fromkeys(unit.row for unit in units))
    return SeatMapResponse(
        item_type=item_type.value,
        item_id=item_id,
        seats=seats,
        rows=rows,
        total_seats=len(seats),
        available_seats=sum(1 for seat in seats if seat.status == UnitStatus.AVAILABLE.value),
    )


@router.post("/{item_type}/{item_id}/holds", response_model=HoldResponse)
async def hold_seats_endpoint(
    item_type: ItemType,
    item_id: int,
    body: HoldRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Hold seats for the caller, all or none.
    Returns 409 with the conflicting seat numbers when any seat is taken.
    """
    await _seat_item(db, item_type, item_id)
    result = await inventory_service.grant_hold(
        db, item_type.value, item_id, body.unit_numbers, user_id, ttl_seconds=body.ttl_seconds
    )
    await db.commit()
    return HoldResponse(held=result.held, until=result.until)


@router.delete("/{item_type}/{item_id}/holds", response_model=ReleaseResponse)
async def release_seats_endpoint(
    item_type: ItemType,
    item_id: int,
    body: ReleaseRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Release the caller's holds. Seats held by others are left untouched."""
    released = await inventory_service.release_hold(db, item_type.value, item_id, body.unit_numbers, user_id)
    await db.commit()
    return ReleaseResponse(released=released)


@router.get("/{item_type}/{item_id}/capacity", response_model=CapacityResponse)
async def capacity_endpoint(
    item_type: ItemType,
    item_id: int,
    db: AsyncSession = Depends(get_db),
):
    item = await get_item(db, item_id, item_type.value)
    if item.is_seat_based:
        raise BookingValidationError(f"{item_type.value} items are sold by seat; use the seat map")
    return await inventory_service.get_capacity(db, item_id)


@router.post("/holds/sweep", response_model=SweepResponse)
async def sweep_holds_endpoint(
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Return every expired hold to available now. Admin only."""
    swept = await inventory_service.sweep_expired_holds(db)
    await db.commit()
    return SweepResponse(swept=swept)
