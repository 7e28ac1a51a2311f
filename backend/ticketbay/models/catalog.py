"""
Catalog item: the sellable thing a booking points at (a movie show, a bus
departure, an event...).

Key design decisions:
- One table for every booking type; `item_type` selects the ItemAdapter
- Seat-based types own InventoryUnit rows, capacity-based types own one
  CapacityCounter row
- `unit_price` is the base price; seat rows may carry their own price
"""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, Numeric, String

from ticketbay.db.base import Base, TimestampMixin


class ItemType(str, enum.Enum):
    MOVIE = "movie"
    BUS = "bus"
    TRAIN = "train"
    FLIGHT = "flight"
    EVENT = "event"
    TOUR = "tour"


class SeatLayout(str, enum.Enum):
    CINEMA = "cinema"
    COACH = "coach"
    SLEEPER = "sleeper"


SEAT_BASED_TYPES = frozenset({ItemType.MOVIE, ItemType.BUS})


class CatalogItem(Base, TimestampMixin):
    __tablename__ = "catalog_items"

    id = Column(Integer, primary_key=True, index=True)
    item_type = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    venue = Column(String(255), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_units = Column(Integer, nullable=False)
    layout = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="check_item_price_non_negative"),
        CheckConstraint("total_units > 0", name="check_item_units_positive"),
        CheckConstraint(
            "item_type IN ('movie', 'bus', 'train', 'flight', 'event', 'tour')",
            name="check_item_type",
        ),
        Index("ix_catalog_items_type_date", "item_type", "event_date"),
    )

    @property
    def is_seat_based(self) -> bool:
        return ItemType(self.item_type) in SEAT_BASED_TYPES

    def __repr__(self) -> str:
        return f"<CatalogItem(id={self.id}, type={self.item_type}, title={self.title})>"
