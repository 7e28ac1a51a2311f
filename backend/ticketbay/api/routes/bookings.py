"""
Booking endpoints.

Creation and cancellation commit through the configured consistency
strategy; the endpoint only translates the request and invalidates the
catalog cache afterwards (availability counts changed).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.logging import get_logger
from ticketbay.core.security import Principal, get_current_user_id, require_admin
from ticketbay.db.session import get_db
from ticketbay.models.booking import BookingStatus
from ticketbay.models.catalog import ItemType
from ticketbay.schemas.booking import (
    BookingCancel,
    BookingCancelResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatsResponse,
    TicketResponse,
)
from ticketbay.services.booking_service import (
    BookingRequest,
    booking_stats,
    cancel_booking,
    complete_booking,
    create_booking,
    get_booking,
    get_ticket,
    list_bookings,
)
from ticketbay.services.cache_service import invalidate_catalog_cache
from ticketbay.services.payment_gateway import PaymentAssertion

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Book seats (movie, bus) the caller currently holds, or a quantity of a
    capacity item (event, tour, train, flight), and pay for it.
    """
    payment = None
    if booking_data.payment is not None:
        payment = PaymentAssertion(**booking_data.payment.model_dump())
    request = BookingRequest(
        booking_type=booking_data.booking_type.value,
        item_id=booking_data.item_id,
        unit_numbers=booking_data.unit_numbers,
        quantity=booking_data.quantity,
        class_type=booking_data.class_type,
        special_requirements=booking_data.special_requirements,
        payment_method=booking_data.payment_method.value,
        payment=payment,
    )
    booking = await create_booking(db, user_id, request)
    await invalidate_catalog_cache()
    return booking


@router.get("/", response_model=BookingListResponse)
async def list_bookings_endpoint(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    booking_type: Optional[ItemType] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's bookings, newest first."""
    bookings, total = await list_bookings(
        db,
        user_id,
        status=booking_status.value if booking_status else None,
        booking_type=booking_type.value if booking_type else None,
        page=page,
        page_size=page_size,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=BookingStatsResponse)
async def booking_stats_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    stats = await booking_stats(db, user_id)
    return BookingStatsResponse(**stats.__dict__)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_booking(db, booking_id, user_id)


@router.get("/{booking_id}/ticket", response_model=TicketResponse)
async def ticket_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return TicketResponse(**await get_ticket(db, booking_id, user_id))


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    body: Optional[BookingCancel] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking, release its inventory and refund by the notice-period tier."""
    booking = await cancel_booking(db, booking_id, user_id, reason=body.reason if body else None)
    await invalidate_catalog_cache()
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        booking_status=booking.booking_status,
        refund_amount=booking.refund_amount,
    )


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking_endpoint(
    booking_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Mark a past booking as completed. Admin only."""
    return await complete_booking(db, booking_id)
