"""
Booking record.

Key design decisions:
- booking_reference is unique and generated before any inventory moves, so
  sold units can point back at the booking that owns them
- booking_status is only changed through conditional UPDATEs guarded on the
  current status; `cancelled` and `completed` are terminal
- Money is stored as decimal currency units (not minor units)
"""

import enum

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String

from ticketbay.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(str, enum.Enum):
    WALLET = "wallet"
    RAZORPAY = "razorpay"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_reference = Column(String(64), nullable=False, unique=True)
    booking_type = Column(String(20), nullable=False)
    item_id = Column(Integer, ForeignKey("catalog_items.id"), nullable=False)
    item_title = Column(String(255), nullable=False)
    venue_details = Column(String(255), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_refs = Column(JSON, nullable=False, default=list)
    class_type = Column(String(50), nullable=True)
    special_requirements = Column(String(500), nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    booking_fee = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)

    payment_method = Column(String(20), nullable=False, default=PaymentMethod.WALLET.value)
    payment_status = Column(String(30), nullable=False, default=PaymentStatus.PENDING.value)
    booking_status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    gateway_order_id = Column(String(100), nullable=True)
    gateway_payment_id = Column(String(100), nullable=True)

    refund_amount = Column(Numeric(12, 2), nullable=False, default=0)
    cancellation_reason = Column(String(500), nullable=True)
    cancellation_date = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(Integer, nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_booking_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint("refund_amount >= 0", name="check_booking_refund_non_negative"),
        CheckConstraint(
            "booking_status IN ('pending', 'confirmed', 'cancelled', 'completed', 'no_show')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded', 'partially_refunded')",
            name="check_payment_status",
        ),
        Index("ix_bookings_type_item", "booking_type", "item_id"),
        Index("ix_bookings_status", "payment_status", "booking_status"),
        Index("ix_bookings_event_date", "event_date"),
    )

    def __repr__(self) -> str:
        return f"<Booking(ref={self.booking_reference}, user={self.created_by}, status={self.booking_status})>"
