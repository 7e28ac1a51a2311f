"""
Booking lifecycle: create, cancel, complete.

CONSISTENCY STRATEGY: Ordered steps, inventory before money
============================================================

Problem:
  A booking touches three things that must agree: inventory (seats or a
  capacity counter), the payer's wallet and the booking row. A crash or a
  business failure between any two writes must not leave a seat sold with
  no booking, or money taken with no seat.

Solution:
  Each operation is a fixed list of Steps run by the configured
  ConsistencyStrategy:

    create:  1. reserve inventory   (undo: release it)
             2. take payment        (undo: refund the debit)
             3. write the booking   (+ BookingConfirmed after commit)

    cancel:  1. claim the booking   confirmed -> cancelled, guarded UPDATE
                                    (undo: back to confirmed)
             2. release inventory   (undo: reinstate it)
             3. refund to wallet    (+ BookingCancelled after commit)

  With the atomic strategy all steps share one transaction. With the
  compensating strategy each step commits and completed steps are undone
  in reverse order when a later one fails. Inventory always moves before
  money because giving a seat back is cheaper than giving money back.

  Step 1 of cancel is a compare-and-swap on booking_status, so two
  concurrent cancels cannot both release inventory or both refund.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.clock import as_utc, utcnow
from ticketbay.core.config import get_settings
from ticketbay.core.exceptions import (
    AlreadyCancelled,
    BookingError,
    BookingValidationError,
    CancellationWindowClosed,
    InsufficientBalance,
    InvalidBookingState,
    NotFound,
    PaymentVerificationFailed,
)
from ticketbay.core.logging import get_logger
from ticketbay.core.metrics import booking_cancellations, record_booking_attempt
from ticketbay.core.references import BOOKING_PREFIX, generate_unique_reference
from ticketbay.models.booking import Booking, BookingStatus, PaymentMethod, PaymentStatus
from ticketbay.models.wallet import TransactionType
from ticketbay.services import inventory_service, wallet_service
from ticketbay.services.adapters import Selection, get_adapter
from ticketbay.services.catalog_service import event_has_passed, get_active_item
from ticketbay.services.interfaces import ConsistencyStrategy, Step
from ticketbay.services.notification_service import BookingCancelled, BookingConfirmed, emit_after_commit
from ticketbay.services.payment_gateway import PaymentAssertion, verify_payment
from ticketbay.services.pricing import can_be_cancelled, compute_refund, price_breakdown
from ticketbay.services.strategy_factory import get_strategy

logger = get_logger(__name__)

_NO_SYNC = {"synchronize_session": False}


@dataclass
class BookingRequest:
    booking_type: str
    item_id: int
    unit_numbers: list[str] = field(default_factory=list)
    quantity: Optional[int] = None
    class_type: Optional[str] = None
    special_requirements: Optional[str] = None
    payment_method: str = PaymentMethod.WALLET.value
    payment: Optional[PaymentAssertion] = None


@dataclass
class BookingStats:
    total_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    completed_bookings: int
    total_spent: Decimal
    total_refunded: Decimal
    by_type: dict


async def _booking_reference_exists(db: AsyncSession, reference: str) -> bool:
    result = await db.execute(select(Booking.id).where(Booking.booking_reference == reference))
    return result.first() is not None


def _payment_method(value: str) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        raise BookingValidationError(f"Invalid payment method: {value}")


async def create_booking(
    db: AsyncSession,
    user_id: int,
    request: BookingRequest,
    strategy: Optional[ConsistencyStrategy] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Book an item for `user_id` and pay for it.

    Seat-based types sell seats the user currently holds; capacity types
    decrement the item's counter. Wallet payments are debited; gateway
    payments must carry a valid signature. Either every effect lands
    (booking confirmed, inventory sold, payment taken) or none does.
    """
    strategy = strategy or get_strategy()
    now = now or utcnow()
    adapter = get_adapter(request.booking_type)
    method = _payment_method(request.payment_method)

    try:
        item = await get_active_item(db, request.item_id, adapter.item_type)
        if event_has_passed(item, now):
            raise BookingValidationError("This item has already taken place")

        selection = Selection(
            unit_numbers=request.unit_numbers,
            quantity=request.quantity,
            class_type=request.class_type,
        )
        quote = await adapter.resolve_availability(db, item, selection, user_id, now)
        prices = price_breakdown(adapter.compute_price(item, quote))

        if method != PaymentMethod.WALLET and request.payment is None:
            raise BookingValidationError("Payment details are required for gateway payments")

        booking_reference = await generate_unique_reference(
            BOOKING_PREFIX,
            lambda candidate: _booking_reference_exists(db, candidate),
            get_settings().REFERENCE_MAX_ATTEMPTS,
        )
    except BookingError as e:
        record_booking_attempt(e.code)
        raise

    # Plain values: compensations run after rollbacks, which expire ORM state.
    item_id, item_title = item.id, item.title
    venue, event_date = item.venue, item.event_date
    log = logger.bind(booking_reference=booking_reference, user_id=user_id, item_id=item_id)

    async def reserve():
        await adapter.reserve(db, item, quote, user_id, booking_reference, now=now)

    async def unreserve(_):
        await adapter.release(db, item_id, quote.unit_refs, quote.quantity, booking_reference)

    async def take_payment():
        if method == PaymentMethod.WALLET:
            return await wallet_service.debit(
                db,
                user_id,
                prices.total_amount,
                f"Payment for {item_title} booking",
                booking_ref=booking_reference,
            )
        if not verify_payment(request.payment):
            raise PaymentVerificationFailed()
        return None

    async def refund_payment(debited):
        if debited is not None:
            await wallet_service.credit(
                db,
                user_id,
                prices.total_amount,
                f"Reversal of failed booking {booking_reference}",
                tx_type=TransactionType.REFUND,
                booking_ref=booking_reference,
            )

    async def write_booking():
        booking = Booking(
            booking_reference=booking_reference,
            booking_type=adapter.item_type,
            item_id=item_id,
            item_title=item_title,
            venue_details=venue,
            event_date=event_date,
            quantity=quote.quantity,
            unit_refs=quote.unit_refs,
            class_type=request.class_type,
            special_requirements=request.special_requirements,
            subtotal=prices.subtotal,
            booking_fee=prices.booking_fee,
            tax=prices.tax,
            total_amount=prices.total_amount,
            payment_method=method.value,
            payment_status=PaymentStatus.COMPLETED.value,
            booking_status=BookingStatus.CONFIRMED.value,
            gateway_order_id=request.payment.order_id if request.payment else None,
            gateway_payment_id=request.payment.payment_id if request.payment else None,
            created_by=user_id,
        )
        db.add(booking)
        await db.flush()
        await db.refresh(booking)
        emit_after_commit(
            db,
            BookingConfirmed(user_id, booking_reference, item_title, quote.quantity, prices.total_amount),
        )
        return booking

    steps = [
        Step("reserve_inventory", reserve, unreserve),
        Step("take_payment", take_payment, refund_payment),
        Step("write_booking", write_booking),
    ]

    try:
        results = await strategy.execute(db, steps)
    except (InsufficientBalance, PaymentVerificationFailed) as e:
        record_booking_attempt(e.code)
        log.info("booking_payment_failed", code=e.code)
        if adapter.seat_based:
            # A failed checkout frees the seats it was paying for.
            await inventory_service.release_hold(db, adapter.item_type, item_id, quote.unit_refs, user_id)
            await db.commit()
        raise
    except BookingError as e:
        record_booking_attempt(e.code)
        log.info("booking_rejected", code=e.code)
        raise

    booking = results[-1]
    record_booking_attempt("confirmed")
    log.info(
        "booking_confirmed",
        booking_id=booking.id,
        booking_type=booking.booking_type,
        quantity=booking.quantity,
        total_amount=str(booking.total_amount),
        strategy=strategy.name,
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: int, user_id: int) -> Booking:
    """A booking owned by someone else is reported as not found."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id, Booking.created_by == user_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFound("Booking not found")
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    reason: Optional[str] = None,
    strategy: Optional[ConsistencyStrategy] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Cancel a confirmed booking at least CANCELLATION_CUTOFF_HOURS before the
    event, give the inventory back and refund the tiered amount to the
    wallet.
    """
    strategy = strategy or get_strategy()
    now = now or utcnow()

    booking = await get_booking(db, booking_id, user_id)
    if booking.booking_status == BookingStatus.CANCELLED.value:
        raise AlreadyCancelled()
    if not can_be_cancelled(booking, now):
        raise CancellationWindowClosed("Booking cannot be cancelled. Minimum 24 hours notice required.")

    refund_amount = compute_refund(booking, now)
    adapter = get_adapter(booking.booking_type)
    previous_payment_status = booking.payment_status
    unit_refs = list(booking.unit_refs or [])
    reference = booking.booking_reference
    item_id, quantity, item_title = booking.item_id, booking.quantity, booking.item_title

    async def claim():
        values = {
            "booking_status": BookingStatus.CANCELLED.value,
            "cancellation_date": now,
            "cancellation_reason": reason,
            "refund_amount": refund_amount,
        }
        if refund_amount > 0:
            values["payment_status"] = PaymentStatus.REFUNDED.value
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.booking_status == BookingStatus.CONFIRMED.value)
            .values(**values)
            .execution_options(**_NO_SYNC)
        )
        if result.rowcount == 0:
            raise AlreadyCancelled()

    async def unclaim(_):
        await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.booking_status == BookingStatus.CANCELLED.value)
            .values(
                booking_status=BookingStatus.CONFIRMED.value,
                cancellation_date=None,
                cancellation_reason=None,
                refund_amount=Decimal("0"),
                payment_status=previous_payment_status,
            )
            .execution_options(**_NO_SYNC)
        )

    async def release():
        await adapter.release(db, item_id, unit_refs, quantity, reference)

    async def reinstate(_):
        await adapter.reinstate(db, item_id, unit_refs, quantity, user_id, reference)

    async def refund():
        if refund_amount > 0:
            await wallet_service.credit(
                db,
                user_id,
                refund_amount,
                f"Refund for cancelled booking {reference}",
                tx_type=TransactionType.REFUND,
                booking_ref=reference,
            )
        emit_after_commit(db, BookingCancelled(user_id, reference, item_title, refund_amount))

    await strategy.execute(
        db,
        [
            Step("claim_cancellation", claim, unclaim),
            Step("release_inventory", release, reinstate),
            Step("refund_payment", refund),
        ],
    )

    booking_cancellations.labels(refunded="yes" if refund_amount > 0 else "no").inc()
    logger.info(
        "booking_cancelled",
        booking_id=booking_id,
        booking_reference=reference,
        user_id=user_id,
        refund_amount=str(refund_amount),
    )
    return await get_booking(db, booking_id, user_id)


async def complete_booking(db: AsyncSession, booking_id: int, now: Optional[datetime] = None) -> Booking:
    """Admin transition confirmed -> completed, allowed once the event has happened."""
    now = now or utcnow()
    result = await db.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFound("Booking not found")
    if booking.booking_status != BookingStatus.CONFIRMED.value:
        raise InvalidBookingState(f"Cannot complete a {booking.booking_status} booking")

    if as_utc(booking.event_date) > now:
        raise InvalidBookingState("Booking can only be completed after the event date")

    updated = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.booking_status == BookingStatus.CONFIRMED.value)
        .values(booking_status=BookingStatus.COMPLETED.value)
        .execution_options(**_NO_SYNC)
    )
    if updated.rowcount == 0:
        raise InvalidBookingState("Booking changed state concurrently")
    await db.refresh(booking)
    logger.info("booking_completed", booking_id=booking_id, booking_reference=booking.booking_reference)
    return booking


async def list_bookings(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
    booking_type: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Booking], int]:
    query = select(Booking).where(Booking.created_by == user_id)
    if status:
        query = query.where(Booking.booking_status == status)
    if booking_type:
        query = query.where(Booking.booking_type == booking_type)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Booking.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def booking_stats(db: AsyncSession, user_id: int) -> BookingStats:
    result = await db.execute(
        select(
            Booking.booking_type,
            Booking.booking_status,
            func.count(Booking.id),
            func.coalesce(func.sum(Booking.total_amount), 0),
            func.coalesce(func.sum(Booking.refund_amount), 0),
        )
        .where(Booking.created_by == user_id)
        .group_by(Booking.booking_type, Booking.booking_status)
    )
    by_status: dict[str, int] = {}
    by_type: dict[str, int] = {}
    spent = Decimal("0")
    refunded = Decimal("0")
    for booking_type, status, count, total, refund in result.all():
        by_status[status] = by_status.get(status, 0) + count
        by_type[booking_type] = by_type.get(booking_type, 0) + count
        spent += Decimal(str(total))
        refunded += Decimal(str(refund))
    return BookingStats(
        total_bookings=sum(by_status.values()),
        confirmed_bookings=by_status.get(BookingStatus.CONFIRMED.value, 0),
        cancelled_bookings=by_status.get(BookingStatus.CANCELLED.value, 0),
        completed_bookings=by_status.get(BookingStatus.COMPLETED.value, 0),
        total_spent=(spent - refunded).quantize(Decimal("0.01")),
        total_refunded=refunded.quantize(Decimal("0.01")),
        by_type=by_type,
    )


async def get_ticket(db: AsyncSession, booking_id: int, user_id: int) -> dict:
    booking = await get_booking(db, booking_id, user_id)
    if booking.booking_status != BookingStatus.CONFIRMED.value:
        raise InvalidBookingState("Tickets are only available for confirmed bookings")
    return {
        "booking_reference": booking.booking_reference,
        "item_title": booking.item_title,
        "venue": booking.venue_details,
        "event_date": booking.event_date,
        "seats": list(booking.unit_refs or []),
        "quantity": booking.quantity,
        "total_amount": booking.total_amount,
        "holder_id": booking.created_by,
    }
