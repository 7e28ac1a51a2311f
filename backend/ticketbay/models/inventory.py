"""
Sellable inventory: per-seat units and aggregate capacity counters.

Key design decisions:
- (item_type, item_id, unit_number) is unique, so every state transition can
  be a single-row conditional UPDATE keyed by unit identity
- `held_by`/`held_until` describe a soft, time-boxed hold; `sold_to`/
  `booking_ref` describe a sale. A unit carries one or the other, never both
- CapacityCounter has DB CHECKs as the last line of defence against
  overselling: 0 <= available_units <= total_units
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from ticketbay.db.base import Base, TimestampMixin


class UnitStatus(str, enum.Enum):
    AVAILABLE = "available"
    HELD = "held"
    SOLD = "sold"
    BLOCKED = "blocked"
    UNAVAILABLE = "unavailable"


class UnitKind(str, enum.Enum):
    REGULAR = "regular"
    PREMIUM = "premium"
    VIP = "vip"
    SLEEPER = "sleeper"
    WINDOW = "window"
    AISLE = "aisle"


class InventoryUnit(Base, TimestampMixin):
    __tablename__ = "inventory_units"

    id = Column(Integer, primary_key=True)
    item_type = Column(String(20), nullable=False)
    item_id = Column(Integer, ForeignKey("catalog_items.id", ondelete="CASCADE"), nullable=False)
    unit_number = Column(String(20), nullable=False)
    row = Column(String(10), nullable=False)
    column = Column(Integer, nullable=False)
    unit_kind = Column(String(20), nullable=False, default=UnitKind.REGULAR.value)
    price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=UnitStatus.AVAILABLE.value)
    held_by = Column(Integer, nullable=True)
    held_until = Column(DateTime(timezone=True), nullable=True)
    sold_to = Column(Integer, nullable=True)
    booking_ref = Column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("item_type", "item_id", "unit_number", name="uq_inventory_unit"),
        CheckConstraint("price >= 0", name="check_unit_price_non_negative"),
        CheckConstraint(
            "status IN ('available', 'held', 'sold', 'blocked', 'unavailable')",
            name="check_unit_status",
        ),
        CheckConstraint(
            "status != 'held' OR (held_by IS NOT NULL AND held_until IS NOT NULL)",
            name="check_held_has_owner",
        ),
        CheckConstraint("status != 'sold' OR booking_ref IS NOT NULL", name="check_sold_has_booking"),
        Index("ix_inventory_units_item_status", "item_type", "item_id", "status"),
        Index("ix_inventory_units_held_until", "held_until"),
    )

    def __repr__(self) -> str:
        return f"<InventoryUnit({self.item_type}:{self.item_id}:{self.unit_number}, status={self.status})>"


class CapacityCounter(Base, TimestampMixin):
    __tablename__ = "capacity_counters"

    id = Column(Integer, primary_key=True)
    item_id = Column(
        Integer,
        ForeignKey("catalog_items.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    total_units = Column(Integer, nullable=False)
    available_units = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("available_units >= 0", name="check_available_units_non_negative"),
        CheckConstraint("total_units >= 0", name="check_total_units_non_negative"),
        CheckConstraint("available_units <= total_units", name="check_available_lte_total"),
    )

    def __repr__(self) -> str:
        return f"<CapacityCounter(item={self.item_id}, available={self.available_units}/{self.total_units})>"
