"""
Post-commit domain events and the in-app notification worker.

Services call emit_after_commit(db, event) next to the write that produced
the event. The event is parked on the session and only handed to the
dispatcher when that session commits; a rollback discards it. The
dispatcher is a bounded in-memory queue drained by one background task that
stores Notification rows. A full queue or a failing write is logged and the
event dropped. Notifications never fail a booking.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import event, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session

from ticketbay.core.config import get_settings
from ticketbay.core.exceptions import NotFound
from ticketbay.core.logging import get_logger
from ticketbay.models.notification import Notification

logger = get_logger(__name__)

_PENDING_KEY = "pending_domain_events"


@dataclass(frozen=True)
class BookingConfirmed:
    user_id: int
    booking_reference: str
    item_title: str
    quantity: int
    total_amount: Decimal

    kind = "booking_confirmed"

    def render(self) -> tuple[str, str]:
        return (
            "Booking confirmed",
            f"Your booking {self.booking_reference} for {self.item_title} "
            f"({self.quantity} ticket(s), {self.total_amount}) is confirmed.",
        )


@dataclass(frozen=True)
class BookingCancelled:
    user_id: int
    booking_reference: str
    item_title: str
    refund_amount: Decimal

    kind = "booking_cancelled"

    def render(self) -> tuple[str, str]:
        if self.refund_amount > 0:
            tail = f"{self.refund_amount} has been refunded to your wallet."
        else:
            tail = "No refund applies."
        return (
            "Booking cancelled",
            f"Your booking {self.booking_reference} for {self.item_title} was cancelled. {tail}",
        )


@dataclass(frozen=True)
class WalletCredited:
    user_id: int
    amount: Decimal
    balance_after: Decimal
    transaction_type: str = "credit"
    booking_reference: Optional[str] = None

    kind = "wallet_credited"

    def render(self) -> tuple[str, str]:
        label = "Refund received" if self.transaction_type == "refund" else "Wallet credited"
        return label, f"{self.amount} added to your wallet. Balance: {self.balance_after}."


@dataclass(frozen=True)
class WalletDebited:
    user_id: int
    amount: Decimal
    balance_after: Decimal
    booking_reference: Optional[str] = None

    kind = "wallet_debited"

    def render(self) -> tuple[str, str]:
        return "Wallet debited", f"{self.amount} paid from your wallet. Balance: {self.balance_after}."


class NotificationDispatcher:
    def __init__(self, maxsize: Optional[int] = None):
        self._maxsize = maxsize if maxsize is not None else get_settings().NOTIFICATION_QUEUE_SIZE
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.dropped = 0

    @property
    def queue(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._maxsize)
        return self._queue

    def emit(self, domain_event) -> bool:
        try:
            self.queue.put_nowait(domain_event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "notification_dropped",
                kind=domain_event.kind,
                user_id=domain_event.user_id,
                dropped=self.dropped,
            )
            return False

    async def deliver(self, session_factory: async_sessionmaker, domain_event) -> None:
        title, message = domain_event.render()
        try:
            async with session_factory() as session:
                session.add(
                    Notification(
                        user_id=domain_event.user_id,
                        title=title,
                        message=message,
                        kind=domain_event.kind,
                        booking_reference=getattr(domain_event, "booking_reference", None),
                        is_read=False,
                    )
                )
                await session.commit()
        except Exception as e:
            logger.error(
                "notification_delivery_failed",
                kind=domain_event.kind,
                user_id=domain_event.user_id,
                error=str(e),
            )

    async def drain(self, session_factory: async_sessionmaker) -> int:
        """Deliver everything queued right now. Used at shutdown and in tests."""
        delivered = 0
        while True:
            try:
                domain_event = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return delivered
            await self.deliver(session_factory, domain_event)
            self.queue.task_done()
            delivered += 1

    async def _run(self, session_factory: async_sessionmaker) -> None:
        while True:
            domain_event = await self.queue.get()
            await self.deliver(session_factory, domain_event)
            self.queue.task_done()

    def start(self, session_factory: async_sessionmaker) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(session_factory))
            logger.info("notification_worker_started", queue_size=self._maxsize)

    async def stop(self, session_factory: Optional[async_sessionmaker] = None) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        if session_factory is not None:
            await self.drain(session_factory)
        logger.info("notification_worker_stopped")


dispatcher = NotificationDispatcher()


def emit_after_commit(db: AsyncSession, domain_event) -> None:
    db.sync_session.info.setdefault(_PENDING_KEY, []).append(domain_event)


@event.listens_for(Session, "after_commit")
def _dispatch_pending(session: Session) -> None:
    for domain_event in session.info.pop(_PENDING_KEY, []):
        dispatcher.emit(domain_event)


@event.listens_for(Session, "after_soft_rollback")
def _discard_pending(session: Session, previous_transaction) -> None:
    discarded = session.info.pop(_PENDING_KEY, [])
    if discarded:
        logger.info("domain_events_discarded", count=len(discarded))


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(
        query.order_by(Notification.id.desc()).limit(limit).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound("Notification not found")
    found = await db.execute(
        select(Notification)
        .where(Notification.id == notification_id)
        .execution_options(populate_existing=True)
    )
    return found.scalar_one()
