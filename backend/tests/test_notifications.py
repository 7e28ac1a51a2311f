"""
Tests for post-commit domain events and in-app notifications.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from ticketbay.services import wallet_service
from ticketbay.services.notification_service import BookingConfirmed, NotificationDispatcher, WalletCredited

from conftest import OTHER_USER_ID, USER_ID, hold


def test_full_queue_drops_events():
    small = NotificationDispatcher(maxsize=1)
    event = WalletCredited(USER_ID, Decimal("10.00"), Decimal("10.00"))
    assert small.emit(event) is True
    assert small.emit(event) is False
    assert small.dropped == 1
    assert small.queue.qsize() == 1


def test_render():
    title, message = BookingConfirmed(USER_ID, "BK1", "Test Movie", 2, Decimal("440.00")).render()
    assert title == "Booking confirmed"
    assert "BK1" in message and "440.00" in message

    title, _ = WalletCredited(USER_ID, Decimal("5.00"), Decimal("5.00"), transaction_type="refund").render()
    assert title == "Refund received"


@pytest.mark.asyncio
async def test_events_wait_for_commit(db_session, dispatcher):
    await wallet_service.credit(db_session, USER_ID, Decimal("10.00"), "Top-up")
    assert dispatcher.queue.qsize() == 0

    await db_session.commit()
    assert dispatcher.queue.qsize() == 1


@pytest.mark.asyncio
async def test_rollback_discards_events(db_session, dispatcher):
    await wallet_service.credit(db_session, USER_ID, Decimal("10.00"), "Top-up")
    await db_session.rollback()
    await db_session.commit()
    assert dispatcher.queue.qsize() == 0


@pytest.mark.asyncio
async def test_drain_stores_notifications(session_factory, dispatcher, fund_wallet):
    await fund_wallet(USER_ID, "25.00")
    assert await dispatcher.drain(session_factory) == 1
    assert dispatcher.queue.qsize() == 0


@pytest.mark.asyncio
async def test_booking_notifications_api(client: AsyncClient, auth_headers, other_headers, movie, fund_wallet, session_factory, dispatcher):
    await fund_wallet(USER_ID, "1000.00")
    await hold(client, auth_headers, movie, ["E1"])
    booking = await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "movie", "item_id": movie.id, "unit_numbers": ["E1"]},
        headers=auth_headers,
    )
    assert booking.status_code == 201
    await dispatcher.drain(session_factory)

    response = await client.get("/api/v1/notifications/", headers=auth_headers)
    assert response.status_code == 200
    notifications = response.json()
    kinds = {n["kind"] for n in notifications}
    assert kinds == {"wallet_credited", "wallet_debited", "booking_confirmed"}
    confirmed = next(n for n in notifications if n["kind"] == "booking_confirmed")
    assert confirmed["booking_reference"] == booking.json()["booking_reference"]
    assert confirmed["is_read"] is False

    assert (await client.get("/api/v1/notifications/", headers=other_headers)).json() == []
    stolen = await client.post(f"/api/v1/notifications/{confirmed['id']}/read", headers=other_headers)
    assert stolen.status_code == 404

    marked = await client.post(f"/api/v1/notifications/{confirmed['id']}/read", headers=auth_headers)
    assert marked.status_code == 200
    assert marked.json()["is_read"] is True

    unread = await client.get("/api/v1/notifications/", params={"unread_only": True}, headers=auth_headers)
    assert len(unread.json()) == 2


@pytest.mark.asyncio
async def test_failed_booking_sends_nothing(client: AsyncClient, auth_headers, movie, session_factory, dispatcher, strategy):
    await hold(client, auth_headers, movie, ["E1"])
    response = await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "movie", "item_id": movie.id, "unit_numbers": ["E1"]},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert await dispatcher.drain(session_factory) == 0
