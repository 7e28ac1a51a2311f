"""
Item adapter interface.

The booking flow only talks to this interface; each booking type decides
how availability is checked, how the subtotal is priced and which inventory
primitive moves when a booking is made or undone.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.models.catalog import CatalogItem


@dataclass
class Selection:
    """What the shopper asked for: seat numbers, or a quantity."""

    unit_numbers: list[str] = field(default_factory=list)
    quantity: Optional[int] = None
    class_type: Optional[str] = None


@dataclass
class Quote:
    """A resolved selection: the units (if any), how many, and their line prices."""

    quantity: int
    unit_refs: list[str] = field(default_factory=list)
    line_prices: list[Decimal] = field(default_factory=list)


class ItemAdapter(ABC):
    item_type: str
    seat_based: bool = False

    @abstractmethod
    async def resolve_availability(
        self,
        db: AsyncSession,
        item: CatalogItem,
        selection: Selection,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Quote:
        """Validate the selection against current inventory and quote it."""
        pass

    @abstractmethod
    def compute_price(self, item: CatalogItem, quote: Quote) -> Decimal:
        """Subtotal before booking fee and tax."""
        pass

    @abstractmethod
    async def reserve(
        self,
        db: AsyncSession,
        item: CatalogItem,
        quote: Quote,
        user_id: int,
        booking_ref: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Move inventory to sold for `booking_ref`."""
        pass

    @abstractmethod
    async def release(
        self,
        db: AsyncSession,
        item_id: int,
        unit_refs: list[str],
        quantity: int,
        booking_ref: str,
    ) -> None:
        """Give inventory sold to `booking_ref` back."""
        pass

    @abstractmethod
    async def reinstate(
        self,
        db: AsyncSession,
        item_id: int,
        unit_refs: list[str],
        quantity: int,
        user_id: int,
        booking_ref: str,
    ) -> None:
        """Undo a release; only used to compensate a failed cancellation."""
        pass
