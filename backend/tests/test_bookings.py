"""
Tests for booking endpoints: seat checkout, capacity checkout, gateway
payments, cancellation and the failure paths that must leave nothing behind.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from ticketbay.models.catalog import ItemType
from ticketbay.services.payment_gateway import sign

from conftest import hold, seat_statuses, wallet_balance, USER_ID


async def _book_seats(client: AsyncClient, headers, item, seats, **extra):
    return await client.post(
        "/api/v1/bookings/",
        json={"booking_type": item.item_type, "item_id": item.id, "unit_numbers": seats, **extra},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_book_held_seats(client: AsyncClient, auth_headers, movie, fund_wallet, strategy):
    """Hold two regular seats, pay from the wallet: 400 + 5% fee + 5% tax."""
    await fund_wallet(USER_ID, "1000.00")
    assert (await hold(client, auth_headers, movie, ["E1", "E2"])).status_code == 200

    response = await _book_seats(client, auth_headers, movie, ["E1", "E2"])
    assert response.status_code == 201
    data = response.json()
    assert data["booking_status"] == "confirmed"
    assert data["payment_status"] == "completed"
    assert data["unit_refs"] == ["E1", "E2"]
    assert data["quantity"] == 2
    assert Decimal(str(data["subtotal"])) == Decimal("400.00")
    assert Decimal(str(data["booking_fee"])) == Decimal("20.00")
    assert Decimal(str(data["tax"])) == Decimal("20.00")
    assert Decimal(str(data["total_amount"])) == Decimal("440.00")
    assert data["booking_reference"].startswith("BK")

    assert await wallet_balance(client, auth_headers) == Decimal("560.00")
    statuses = await seat_statuses(client, auth_headers, movie)
    assert statuses["E1"] == statuses["E2"] == "sold"


@pytest.mark.asyncio
async def test_book_vip_and_premium_prices(client: AsyncClient, auth_headers, movie, fund_wallet):
    await fund_wallet(USER_ID, "1000.00")
    await hold(client, auth_headers, movie, ["A1", "C1"])

    response = await _book_seats(client, auth_headers, movie, ["A1", "C1"])
    assert response.status_code == 201
    assert Decimal(str(response.json()["subtotal"])) == Decimal("540.00")


@pytest.mark.asyncio
async def test_insufficient_balance_frees_seats(client: AsyncClient, auth_headers, movie, fund_wallet, strategy):
    """A failed wallet debit leaves the wallet untouched and the seats available."""
    await fund_wallet(USER_ID, "100.00")
    await hold(client, auth_headers, movie, ["E1", "E2"])

    response = await _book_seats(client, auth_headers, movie, ["E1", "E2"])
    assert response.status_code == 400
    assert response.json()["code"] == "insufficient_balance"

    assert await wallet_balance(client, auth_headers) == Decimal("100.00")
    statuses = await seat_statuses(client, auth_headers, movie)
    assert statuses["E1"] == statuses["E2"] == "available"

    bookings = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert bookings.json()["total"] == 0


@pytest.mark.asyncio
async def test_book_without_hold(client: AsyncClient, auth_headers, movie, fund_wallet, strategy):
    """Paying for seats you do not hold is rejected before any money moves."""
    await fund_wallet(USER_ID, "1000.00")

    response = await _book_seats(client, auth_headers, movie, ["E1", "E2"])
    assert response.status_code == 409
    assert response.json()["code"] == "seats_not_held"
    assert await wallet_balance(client, auth_headers) == Decimal("1000.00")


@pytest.mark.asyncio
async def test_book_seats_held_by_someone_else(client: AsyncClient, auth_headers, other_headers, movie, fund_wallet):
    await fund_wallet(USER_ID, "1000.00")
    await hold(client, other_headers, movie, ["E1"])

    response = await _book_seats(client, auth_headers, movie, ["E1"])
    assert response.status_code == 409

    statuses = await seat_statuses(client, other_headers, movie)
    assert statuses["E1"] == "held"


@pytest.mark.asyncio
async def test_book_unknown_seat(client: AsyncClient, auth_headers, movie):
    response = await _book_seats(client, auth_headers, movie, ["Z9"])
    assert response.status_code == 404
    assert response.json()["unit_numbers"] == ["Z9"]


@pytest.mark.asyncio
async def test_seat_booking_requires_seats(client: AsyncClient, auth_headers, movie):
    response = await _book_seats(client, auth_headers, movie, [])
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_book_unauthenticated(client: AsyncClient, movie):
    """Unauthenticated booking returns 401."""
    response = await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "movie", "item_id": movie.id, "unit_numbers": ["E1"]},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_capacity_item(client: AsyncClient, auth_headers, concert, fund_wallet, strategy):
    """Two concert tickets at 500: 1000 + 50 + 50."""
    await fund_wallet(USER_ID, "2000.00")

    response = await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "event", "item_id": concert.id, "quantity": 2},
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["quantity"] == 2
    assert data["unit_refs"] == []
    assert Decimal(str(data["total_amount"])) == Decimal("1100.00")

    capacity = await client.get(f"/api/v1/inventory/event/{concert.id}/capacity")
    assert capacity.json()["available_units"] == 3
    assert await wallet_balance(client, auth_headers) == Decimal("900.00")


@pytest.mark.asyncio
async def test_book_more_than_available(client: AsyncClient, auth_headers, concert, fund_wallet):
    await fund_wallet(USER_ID, "10000.00")

    response = await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "event", "item_id": concert.id, "quantity": 6},
        headers=auth_headers,
    )
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "insufficient_capacity"
    assert body["requested"] == 6
    assert body["available"] == 5


@pytest.mark.asyncio
async def test_capacity_payment_failure_restores_counter(client: AsyncClient, auth_headers, concert, strategy):
    response = await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "event", "item_id": concert.id, "quantity": 2},
        headers=auth_headers,
    )
    assert response.status_code == 400

    capacity = await client.get(f"/api/v1/inventory/event/{concert.id}/capacity")
    assert capacity.json()["available_units"] == 5


@pytest.mark.asyncio
async def test_wrong_booking_type_for_item(client: AsyncClient, auth_headers, concert):
    response = await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "tour", "item_id": concert.id, "quantity": 1},
        headers=auth_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_gateway_payment(client: AsyncClient, auth_headers, movie, strategy):
    """A correctly signed gateway payment books without touching the wallet."""
    await hold(client, auth_headers, movie, ["F1"])
    payment = {
        "order_id": "order_1001",
        "payment_id": "pay_1001",
        "signature": sign("order_1001", "pay_1001", "test_gateway_secret"),
    }

    response = await _book_seats(client, auth_headers, movie, ["F1"], payment_method="upi", payment=payment)
    assert response.status_code == 201
    assert response.json()["payment_method"] == "upi"
    assert await wallet_balance(client, auth_headers) == Decimal("0.00")


@pytest.mark.asyncio
async def test_gateway_payment_bad_signature(client: AsyncClient, auth_headers, movie, strategy):
    await hold(client, auth_headers, movie, ["F1"])
    payment = {"order_id": "order_1001", "payment_id": "pay_1001", "signature": "0" * 64}

    response = await _book_seats(client, auth_headers, movie, ["F1"], payment_method="card", payment=payment)
    assert response.status_code == 400
    assert response.json()["code"] == "payment_verification_failed"

    statuses = await seat_statuses(client, auth_headers, movie)
    assert statuses["F1"] == "available"


@pytest.mark.asyncio
async def test_gateway_payment_requires_details(client: AsyncClient, auth_headers, movie):
    await hold(client, auth_headers, movie, ["F1"])
    response = await _book_seats(client, auth_headers, movie, ["F1"], payment_method="upi")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cancel_booking_refunds_by_tier(client: AsyncClient, auth_headers, movie, fund_wallet, strategy):
    """Ten days out the refund is 90% of the total, and the seats go back on sale."""
    await fund_wallet(USER_ID, "1000.00")
    await hold(client, auth_headers, movie, ["E1", "E2"])
    booking = (await _book_seats(client, auth_headers, movie, ["E1", "E2"])).json()

    response = await client.post(
        f"/api/v1/bookings/{booking['id']}/cancel",
        json={"reason": "Plans changed"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["booking_status"] == "cancelled"
    assert Decimal(str(data["refund_amount"])) == Decimal("396.00")

    assert await wallet_balance(client, auth_headers) == Decimal("956.00")
    statuses = await seat_statuses(client, auth_headers, movie)
    assert statuses["E1"] == statuses["E2"] == "available"

    detail = await client.get(f"/api/v1/bookings/{booking['id']}", headers=auth_headers)
    assert detail.json()["payment_status"] == "refunded"
    assert detail.json()["cancellation_reason"] == "Plans changed"

    again = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert again.status_code == 400
    assert again.json()["code"] == "already_cancelled"
    assert await wallet_balance(client, auth_headers) == Decimal("956.00")


@pytest.mark.asyncio
async def test_cancel_capacity_booking_restores_counter(client: AsyncClient, auth_headers, concert, fund_wallet, strategy):
    await fund_wallet(USER_ID, "2000.00")
    booking = (
        await client.post(
            "/api/v1/bookings/",
            json={"booking_type": "event", "item_id": concert.id, "quantity": 2},
            headers=auth_headers,
        )
    ).json()

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 200

    capacity = await client.get(f"/api/v1/inventory/event/{concert.id}/capacity")
    assert capacity.json()["available_units"] == 5


@pytest.mark.asyncio
async def test_cancel_inside_cutoff(client: AsyncClient, auth_headers, make_item, fund_wallet):
    """Less than 24 hours before the show the booking stays confirmed."""
    soon = await make_item(ItemType.MOVIE, hours_ahead=10, title="Late Show")
    await fund_wallet(USER_ID, "1000.00")
    await hold(client, auth_headers, soon, ["E1"])
    booking = (await _book_seats(client, auth_headers, soon, ["E1"])).json()

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "cancellation_window_closed"
    assert "24 hours" in body["detail"]

    detail = await client.get(f"/api/v1/bookings/{booking['id']}", headers=auth_headers)
    assert detail.json()["booking_status"] == "confirmed"


@pytest.mark.asyncio
async def test_other_users_booking_is_hidden(client: AsyncClient, auth_headers, other_headers, concert, fund_wallet):
    await fund_wallet(USER_ID, "1000.00")
    booking = (
        await client.post(
            "/api/v1/bookings/",
            json={"booking_type": "event", "item_id": concert.id, "quantity": 1},
            headers=auth_headers,
        )
    ).json()

    assert (await client.get(f"/api/v1/bookings/{booking['id']}", headers=other_headers)).status_code == 404
    cancel = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=other_headers)
    assert cancel.status_code == 404


@pytest.mark.asyncio
async def test_list_stats_and_ticket(client: AsyncClient, auth_headers, movie, concert, fund_wallet):
    await fund_wallet(USER_ID, "5000.00")
    await hold(client, auth_headers, movie, ["E1", "E2"])
    seat_booking = (await _book_seats(client, auth_headers, movie, ["E1", "E2"])).json()
    await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "event", "item_id": concert.id, "quantity": 1},
        headers=auth_headers,
    )

    listing = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert listing.json()["total"] == 2

    movies_only = await client.get("/api/v1/bookings/", params={"booking_type": "movie"}, headers=auth_headers)
    assert [b["id"] for b in movies_only.json()["bookings"]] == [seat_booking["id"]]

    stats = (await client.get("/api/v1/bookings/stats", headers=auth_headers)).json()
    assert stats["total_bookings"] == 2
    assert stats["confirmed_bookings"] == 2
    assert stats["by_type"] == {"movie": 1, "event": 1}
    assert Decimal(str(stats["total_spent"])) == Decimal("990.00")

    ticket = await client.get(f"/api/v1/bookings/{seat_booking['id']}/ticket", headers=auth_headers)
    assert ticket.status_code == 200
    assert ticket.json()["seats"] == ["E1", "E2"]
    assert ticket.json()["holder_id"] == USER_ID

    await client.post(f"/api/v1/bookings/{seat_booking['id']}/cancel", headers=auth_headers)
    cancelled = await client.get("/api/v1/bookings/", params={"status": "cancelled"}, headers=auth_headers)
    assert cancelled.json()["total"] == 1
    ticket = await client.get(f"/api/v1/bookings/{seat_booking['id']}/ticket", headers=auth_headers)
    assert ticket.status_code == 409


@pytest.mark.asyncio
async def test_complete_requires_admin_and_past_event(client: AsyncClient, auth_headers, admin_headers, concert, fund_wallet):
    await fund_wallet(USER_ID, "1000.00")
    booking = (
        await client.post(
            "/api/v1/bookings/",
            json={"booking_type": "event", "item_id": concert.id, "quantity": 1},
            headers=auth_headers,
        )
    ).json()

    assert (await client.post(f"/api/v1/bookings/{booking['id']}/complete", headers=auth_headers)).status_code == 403
    response = await client.post(f"/api/v1/bookings/{booking['id']}/complete", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_booking_state"
