"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ticketbay.models.booking import PaymentMethod
from ticketbay.models.catalog import ItemType


class PaymentDetails(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=100)
    payment_id: str = Field(..., min_length=1, max_length=100)
    signature: str = Field(..., min_length=1, max_length=256)


class BookingCreate(BaseModel):
    booking_type: ItemType
    item_id: int
    unit_numbers: list[str] = Field(default_factory=list, max_length=10)
    quantity: Optional[int] = Field(None, gt=0, le=10)
    class_type: Optional[str] = Field(None, max_length=50)
    special_requirements: Optional[str] = Field(None, max_length=500)
    payment_method: PaymentMethod = PaymentMethod.WALLET
    payment: Optional[PaymentDetails] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(BaseModel):
    id: int
    booking_reference: str
    booking_type: str
    item_id: int
    item_title: str
    venue_details: Optional[str]
    event_date: datetime
    quantity: int
    unit_refs: list[str]
    class_type: Optional[str]
    subtotal: Decimal
    booking_fee: Decimal
    tax: Decimal
    total_amount: Decimal
    payment_method: str
    payment_status: str
    booking_status: str
    refund_amount: Decimal
    cancellation_reason: Optional[str]
    cancellation_date: Optional[datetime]
    created_by: int
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    booking_status: str
    refund_amount: Decimal


class BookingStatsResponse(BaseModel):
    total_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    completed_bookings: int
    total_spent: Decimal
    total_refunded: Decimal
    by_type: dict[str, int]


class TicketResponse(BaseModel):
    booking_reference: str
    item_title: str
    venue: Optional[str]
    event_date: datetime
    seats: list[str]
    quantity: int
    total_amount: Decimal
    holder_id: int
