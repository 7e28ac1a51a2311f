"""
Tests for catalog publishing, seat layouts and capacity administration.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from ticketbay.core.clock import utcnow
from ticketbay.models.catalog import ItemType, SeatLayout
from ticketbay.services.catalog_service import cinema_layout, coach_layout

from conftest import USER_ID


def _item_payload(**overrides):
    payload = {
        "item_type": "event",
        "title": "Rock Night",
        "venue": "Arena",
        "event_date": (utcnow() + timedelta(days=7)).isoformat(),
        "unit_price": "500.00",
        "total_units": 100,
    }
    payload.update(overrides)
    return payload


def test_cinema_layout():
    seats = cinema_layout(25, Decimal("200"))
    assert len(seats) == 25
    # ceil(25 / 10) = 3 seats per row
    assert [s["unit_number"] for s in seats[:4]] == ["A1", "A2", "A3", "B1"]
    assert seats[0]["unit_kind"] == "vip" and seats[0]["price"] == Decimal("300")
    premium = next(s for s in seats if s["row"] == "C")
    assert premium["unit_kind"] == "premium" and premium["price"] == Decimal("240")
    assert seats[-1]["unit_number"] == "I1"
    assert seats[-1]["unit_kind"] == "regular"


def test_cinema_premium_price_rounds_half_up():
    [vip] = cinema_layout(1, Decimal("125"))
    assert vip["price"] == Decimal("188")


def test_coach_layout():
    seats = coach_layout(10, Decimal("800"))
    assert [s["unit_number"] for s in seats] == [str(n) for n in range(1, 11)]
    assert [s["unit_kind"] for s in seats[:4]] == ["window", "aisle", "aisle", "window"]
    assert seats[4]["row"] == "B"
    assert seats[-1]["row"] == "C"


def test_sleeper_layout():
    seats = coach_layout(5, Decimal("1200"), sleeper=True)
    assert {s["unit_kind"] for s in seats} == {"sleeper"}
    assert [s["row"] for s in seats] == ["A", "A", "B", "B", "C"]


@pytest.mark.asyncio
async def test_publish_requires_admin(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/catalog/", json=_item_payload(), headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_publish_and_get(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/catalog/", json=_item_payload(), headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["item_type"] == "event"
    assert data["available_units"] == 100

    detail = await client.get(f"/api/v1/catalog/{data['id']}")
    assert detail.status_code == 200
    assert detail.json()["title"] == "Rock Night"


@pytest.mark.asyncio
async def test_publish_bus_generates_seats(client: AsyncClient, admin_headers, auth_headers):
    response = await client.post(
        "/api/v1/catalog/",
        json=_item_payload(item_type="bus", title="Night Coach", total_units=8, layout="sleeper"),
        headers=admin_headers,
    )
    assert response.status_code == 201
    item = response.json()
    assert item["layout"] == "sleeper"

    seat_map = await client.get(f"/api/v1/inventory/bus/{item['id']}/seats", headers=auth_headers)
    assert seat_map.json()["total_seats"] == 8
    assert seat_map.json()["rows"] == ["A", "B", "C", "D"]


@pytest.mark.asyncio
async def test_publish_in_the_past(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/v1/catalog/",
        json=_item_payload(event_date=(utcnow() - timedelta(hours=1)).isoformat()),
        headers=admin_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_items_with_availability(client: AsyncClient, auth_headers, movie, concert):
    await client.post(
        f"/api/v1/inventory/movie/{movie.id}/holds",
        json={"unit_numbers": ["E1", "E2"]},
        headers=auth_headers,
    )

    response = await client.get("/api/v1/catalog/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["cached"] is False
    available = {item["id"]: item["available_units"] for item in data["items"]}
    assert available == {movie.id: 18, concert.id: 5}

    movies = await client.get("/api/v1/catalog/", params={"item_type": "movie"})
    assert [item["id"] for item in movies.json()["items"]] == [movie.id]


@pytest.mark.asyncio
async def test_resize_capacity(client: AsyncClient, admin_headers, auth_headers, concert, fund_wallet):
    await fund_wallet(USER_ID, "5000.00")
    await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "event", "item_id": concert.id, "quantity": 3},
        headers=auth_headers,
    )

    grown = await client.patch(
        f"/api/v1/catalog/{concert.id}/capacity", json={"total_units": 10}, headers=admin_headers
    )
    assert grown.status_code == 200
    assert grown.json() == {"item_id": concert.id, "total_units": 10, "available_units": 7}

    # Shrinking below what is sold clamps availability at zero
    shrunk = await client.patch(
        f"/api/v1/catalog/{concert.id}/capacity", json={"total_units": 2}, headers=admin_headers
    )
    assert shrunk.json()["available_units"] == 0


@pytest.mark.asyncio
async def test_resize_seat_item_rejected(client: AsyncClient, admin_headers, movie):
    response = await client.patch(
        f"/api/v1/catalog/{movie.id}/capacity", json={"total_units": 50}, headers=admin_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_item(client: AsyncClient, admin_headers, make_item):
    item = await make_item(ItemType.TOUR, total_units=10)
    response = await client.delete(f"/api/v1/catalog/{item.id}", headers=admin_headers)
    assert response.status_code == 204
    assert (await client.get(f"/api/v1/catalog/{item.id}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_booked_item_rejected(client: AsyncClient, admin_headers, auth_headers, concert, fund_wallet):
    await fund_wallet(USER_ID, "1000.00")
    await client.post(
        "/api/v1/bookings/",
        json={"booking_type": "event", "item_id": concert.id, "quantity": 1},
        headers=auth_headers,
    )
    response = await client.delete(f"/api/v1/catalog/{concert.id}", headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_bus_defaults_to_coach(make_item):
    bus = await make_item(ItemType.BUS, total_units=12, layout=SeatLayout.CINEMA)
    assert bus.layout == "coach"
