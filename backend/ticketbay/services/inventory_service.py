"""
Inventory store and hold manager.

CONCURRENCY STRATEGY: Conditional UPDATE as compare-and-swap
=============================================================

Problem:
  Two shoppers click the same seat within milliseconds. Both read
  status='available', both write status='held'. Result: one of them later
  pays for a seat the other one owns.

Solution:
  Every transition is a single UPDATE whose WHERE clause *is* the
  precondition, e.g. for a hold:

    UPDATE inventory_units SET status='held', held_by=:u, held_until=:t
    WHERE item_type=:type AND item_id=:id AND unit_number IN (:units)
      AND (status='available'
           OR (status='held' AND (held_by=:u OR held_until < :now)))

  The database serializes conflicting writers on the row; the loser's WHERE
  no longer matches, so its affected-row count comes back short. A batch is
  all-or-nothing: if fewer rows matched than were requested, the whole
  transaction is rolled back and nothing is held.

  There is no application-level lock, so any number of API processes can
  run side by side.

  Capacity counters use the same idea:

    UPDATE capacity_counters SET available_units = available_units - :n
    WHERE item_id=:id AND available_units >= :n

  with a CHECK constraint (available_units >= 0) as the final safety net.

Hold expiry is lazy: sweep_expired_holds() runs before every seat-map read
and periodically from a background task, and an expired hold is treated as
free by grant_hold even before it is swept.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.clock import utcnow
from ticketbay.core.config import get_settings
from ticketbay.core.exceptions import (
    BookingValidationError,
    InsufficientCapacity,
    NotFound,
    UnitNotFound,
    UnitNotHeldByUser,
    UnitUnavailable,
)
from ticketbay.core.logging import get_logger
from ticketbay.core.metrics import holds_swept, record_capacity_reservation, record_hold_attempt
from ticketbay.models.inventory import CapacityCounter, InventoryUnit, UnitStatus

logger = get_logger(__name__)

MIN_HOLD_TTL_SECONDS = 60
MAX_HOLD_TTL_SECONDS = 900

_NO_SYNC = {"synchronize_session": False}


@dataclass
class HoldResult:
    held: list[str]
    until: datetime


def normalize_unit_numbers(unit_numbers: Iterable[str]) -> list[str]:
    """Strip, upper-case and de-duplicate while keeping request order."""
    seen: dict[str, None] = {}
    for raw in unit_numbers or []:
        number = str(raw).strip().upper()
        if number:
            seen.setdefault(number, None)
    if not seen:
        raise BookingValidationError("At least one seat must be selected")
    return list(seen)


def _unit_scope(item_type: str, item_id: int, numbers: Sequence[str]):
    return and_(
        InventoryUnit.item_type == item_type,
        InventoryUnit.item_id == item_id,
        InventoryUnit.unit_number.in_(numbers),
    )


async def _existing_numbers(db: AsyncSession, item_type: str, item_id: int, numbers: Sequence[str]) -> set[str]:
    result = await db.execute(
        select(InventoryUnit.unit_number).where(_unit_scope(item_type, item_id, numbers))
    )
    return set(result.scalars().all())


def _resolve_ttl(ttl_seconds: Optional[int]) -> int:
    if ttl_seconds is None:
        return get_settings().SEAT_HOLD_TTL_SECONDS
    if not MIN_HOLD_TTL_SECONDS <= ttl_seconds <= MAX_HOLD_TTL_SECONDS:
        raise BookingValidationError(
            f"Hold TTL must be between {MIN_HOLD_TTL_SECONDS} and {MAX_HOLD_TTL_SECONDS} seconds"
        )
    return ttl_seconds


async def grant_hold(
    db: AsyncSession,
    item_type: str,
    item_id: int,
    unit_numbers: Iterable[str],
    user_id: int,
    ttl_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> HoldResult:
    """
    Hold every requested seat for `user_id` until now + ttl, or none of them.

    Re-holding seats the caller already holds refreshes the TTL. On conflict
    the session is rolled back before UnitUnavailable is raised.
    """
    numbers = normalize_unit_numbers(unit_numbers)
    ttl = _resolve_ttl(ttl_seconds)
    now = now or utcnow()
    until = now + timedelta(seconds=ttl)

    existing = await _existing_numbers(db, item_type, item_id, numbers)
    missing = [n for n in numbers if n not in existing]
    if missing:
        record_hold_attempt("not_found")
        raise UnitNotFound(missing)

    result = await db.execute(
        update(InventoryUnit)
        .where(
            _unit_scope(item_type, item_id, numbers),
            or_(
                InventoryUnit.status == UnitStatus.AVAILABLE.value,
                and_(
                    InventoryUnit.status == UnitStatus.HELD.value,
                    or_(
                        InventoryUnit.held_by == user_id,
                        InventoryUnit.held_until < now,
                    ),
                ),
            ),
        )
        .values(status=UnitStatus.HELD.value, held_by=user_id, held_until=until)
        .execution_options(**_NO_SYNC)
    )

    if result.rowcount != len(numbers):
        won = await db.execute(
            select(InventoryUnit.unit_number).where(
                _unit_scope(item_type, item_id, numbers),
                InventoryUnit.held_by == user_id,
                InventoryUnit.held_until == until,
            )
        )
        conflicting = [n for n in numbers if n not in set(won.scalars().all())]
        await db.rollback()
        record_hold_attempt("unavailable")
        logger.info(
            "hold_rejected",
            item_type=item_type,
            item_id=item_id,
            user_id=user_id,
            conflicting=conflicting,
        )
        raise UnitUnavailable(conflicting or numbers)

    record_hold_attempt("granted")
    logger.info(
        "hold_granted",
        item_type=item_type,
        item_id=item_id,
        units=numbers,
        user_id=user_id,
        until=until.isoformat(),
    )
    return HoldResult(held=numbers, until=until)


async def release_hold(
    db: AsyncSession,
    item_type: str,
    item_id: int,
    unit_numbers: Iterable[str],
    user_id: int,
) -> int:
    """
    Return the caller's held seats to available.

    Seats held by someone else or already sold are left alone; a stale unlock
    request must never clobber another shopper's hold.
    """
    numbers = normalize_unit_numbers(unit_numbers)
    result = await db.execute(
        update(InventoryUnit)
        .where(
            _unit_scope(item_type, item_id, numbers),
            InventoryUnit.status == UnitStatus.HELD.value,
            InventoryUnit.held_by == user_id,
        )
        .values(status=UnitStatus.AVAILABLE.value, held_by=None, held_until=None)
        .execution_options(**_NO_SYNC)
    )
    logger.info(
        "hold_released",
        item_type=item_type,
        item_id=item_id,
        requested=len(numbers),
        released=result.rowcount,
        user_id=user_id,
    )
    return result.rowcount


async def sweep_expired_holds(
    db: AsyncSession,
    now: Optional[datetime] = None,
    item_type: Optional[str] = None,
    item_id: Optional[int] = None,
) -> int:
    """Return expired holds to available. Idempotent and safe to run concurrently."""
    now = now or utcnow()
    conditions = [
        InventoryUnit.status == UnitStatus.HELD.value,
        InventoryUnit.held_until < now,
    ]
    if item_type is not None:
        conditions.append(InventoryUnit.item_type == item_type)
    if item_id is not None:
        conditions.append(InventoryUnit.item_id == item_id)

    result = await db.execute(
        update(InventoryUnit)
        .where(*conditions)
        .values(status=UnitStatus.AVAILABLE.value, held_by=None, held_until=None)
        .execution_options(**_NO_SYNC)
    )
    swept = result.rowcount or 0
    if swept:
        holds_swept.inc(swept)
        logger.info("holds_swept", count=swept, item_type=item_type, item_id=item_id)
    return swept


async def commit_sale(
    db: AsyncSession,
    item_type: str,
    item_id: int,
    unit_numbers: Iterable[str],
    user_id: int,
    booking_ref: str,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    held -> sold for every seat, guarded on an unexpired hold by `user_id`.

    This is the last check before money moves. The caller owns the
    transaction and must roll back when UnitNotHeldByUser is raised.
    """
    numbers = normalize_unit_numbers(unit_numbers)
    now = now or utcnow()
    result = await db.execute(
        update(InventoryUnit)
        .where(
            _unit_scope(item_type, item_id, numbers),
            InventoryUnit.status == UnitStatus.HELD.value,
            InventoryUnit.held_by == user_id,
            InventoryUnit.held_until > now,
        )
        .values(
            status=UnitStatus.SOLD.value,
            sold_to=user_id,
            booking_ref=booking_ref,
            held_by=None,
            held_until=None,
        )
        .execution_options(**_NO_SYNC)
    )
    if result.rowcount != len(numbers):
        logger.warning(
            "sale_rejected_not_held",
            item_type=item_type,
            item_id=item_id,
            units=numbers,
            committed=result.rowcount,
            user_id=user_id,
        )
        raise UnitNotHeldByUser(numbers)

    logger.info("sale_committed", item_type=item_type, item_id=item_id, units=numbers, booking_ref=booking_ref)
    return numbers


async def release_sale(
    db: AsyncSession,
    item_type: str,
    item_id: int,
    unit_numbers: Iterable[str],
    booking_ref: Optional[str] = None,
) -> list[str]:
    """sold -> available. Seats that are not sold (to `booking_ref`, if given) are skipped."""
    numbers = normalize_unit_numbers(unit_numbers)
    conditions = [
        _unit_scope(item_type, item_id, numbers),
        InventoryUnit.status == UnitStatus.SOLD.value,
    ]
    if booking_ref is not None:
        conditions.append(InventoryUnit.booking_ref == booking_ref)

    result = await db.execute(
        update(InventoryUnit)
        .where(*conditions)
        .values(status=UnitStatus.AVAILABLE.value, sold_to=None, booking_ref=None)
        .returning(InventoryUnit.unit_number)
        .execution_options(**_NO_SYNC)
    )
    released = list(result.scalars().all())
    logger.info("sale_released", item_type=item_type, item_id=item_id, units=released, booking_ref=booking_ref)
    return released


async def reinstate_sale(
    db: AsyncSession,
    item_type: str,
    item_id: int,
    unit_numbers: Iterable[str],
    user_id: int,
    booking_ref: str,
) -> int:
    """available -> sold for a booking whose cancellation could not finish."""
    numbers = normalize_unit_numbers(unit_numbers)
    result = await db.execute(
        update(InventoryUnit)
        .where(
            _unit_scope(item_type, item_id, numbers),
            InventoryUnit.status == UnitStatus.AVAILABLE.value,
        )
        .values(status=UnitStatus.SOLD.value, sold_to=user_id, booking_ref=booking_ref)
        .execution_options(**_NO_SYNC)
    )
    if result.rowcount != len(numbers):
        logger.error(
            "sale_reinstate_partial",
            item_type=item_type,
            item_id=item_id,
            units=numbers,
            reinstated=result.rowcount,
            booking_ref=booking_ref,
        )
    return result.rowcount


async def get_units(
    db: AsyncSession,
    item_type: str,
    item_id: int,
    unit_numbers: Optional[Iterable[str]] = None,
) -> list[InventoryUnit]:
    query = select(InventoryUnit).where(
        InventoryUnit.item_type == item_type,
        InventoryUnit.item_id == item_id,
    )
    if unit_numbers is not None:
        query = query.where(InventoryUnit.unit_number.in_(normalize_unit_numbers(unit_numbers)))
    result = await db.execute(
        query.order_by(InventoryUnit.id).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_seat_map(
    db: AsyncSession,
    item_type: str,
    item_id: int,
    now: Optional[datetime] = None,
) -> list[InventoryUnit]:
    """Seat rows for a client; stale holds are swept first so they show as free."""
    await sweep_expired_holds(db, now=now, item_type=item_type, item_id=item_id)
    return await get_units(db, item_type, item_id)


async def get_capacity(db: AsyncSession, item_id: int) -> CapacityCounter:
    result = await db.execute(
        select(CapacityCounter)
        .where(CapacityCounter.item_id == item_id)
        .execution_options(populate_existing=True)
    )
    counter = result.scalar_one_or_none()
    if counter is None:
        raise NotFound(f"No capacity counter for item {item_id}")
    return counter


def _validate_quantity(quantity: int) -> None:
    if quantity is None or quantity <= 0:
        raise BookingValidationError("Quantity must be at least 1")


async def reserve_capacity(db: AsyncSession, item_id: int, quantity: int) -> int:
    """Atomically test-and-decrement; returns the remaining available units."""
    _validate_quantity(quantity)
    result = await db.execute(
        update(CapacityCounter)
        .where(
            CapacityCounter.item_id == item_id,
            CapacityCounter.available_units >= quantity,
        )
        .values(available_units=CapacityCounter.available_units - quantity)
        .returning(CapacityCounter.available_units)
        .execution_options(**_NO_SYNC)
    )
    remaining = result.scalar_one_or_none()
    if remaining is None:
        counter = await get_capacity(db, item_id)
        record_capacity_reservation(False)
        logger.info(
            "capacity_rejected",
            item_id=item_id,
            requested=quantity,
            available=counter.available_units,
        )
        raise InsufficientCapacity(quantity, counter.available_units)

    record_capacity_reservation(True)
    logger.info("capacity_reserved", item_id=item_id, quantity=quantity, remaining=remaining)
    return remaining


async def release_capacity(db: AsyncSession, item_id: int, quantity: int) -> int:
    """Atomically increment, clamped at total_units; returns the new available count."""
    _validate_quantity(quantity)
    result = await db.execute(
        update(CapacityCounter)
        .where(CapacityCounter.item_id == item_id)
        .values(
            available_units=case(
                (
                    CapacityCounter.available_units + quantity > CapacityCounter.total_units,
                    CapacityCounter.total_units,
                ),
                else_=CapacityCounter.available_units + quantity,
            )
        )
        .returning(CapacityCounter.available_units)
        .execution_options(**_NO_SYNC)
    )
    available = result.scalar_one_or_none()
    if available is None:
        raise NotFound(f"No capacity counter for item {item_id}")
    logger.info("capacity_released", item_id=item_id, quantity=quantity, available=available)
    return available
