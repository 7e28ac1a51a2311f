"""
Locust Load Test Suite

Tokens are minted locally with the same SECRET_KEY the API verifies with,
and wallets are funded through signed gateway top-ups, so run this with the
API's environment (SECRET_KEY, PAYMENT_GATEWAY_SECRET or mock mode).

Run scenarios:
  locust -f locustfile.py --tags holds      # Many users, same seats
  locust -f locustfile.py --tags capacity   # Many users, 10 tickets
  locust -f locustfile.py --tags throughput # Test cache
  locust -f locustfile.py --tags edge       # Test bad input
  locust -f locustfile.py                   # All tests
"""

import itertools
import random
from datetime import datetime, timedelta, timezone

from locust import HttpUser, between, events, tag, task

from ticketbay.core.config import get_settings
from ticketbay.core.security import create_access_token
from ticketbay.services.payment_gateway import MOCK_SIGNATURE, is_mock_mode, sign

# Shared state
ITEM_IDS = []
HOT_MOVIE_ID = None
HOT_EVENT_ID = None
HOT_SEATS = ["E1", "E2", "E3", "E4", "E5"]

_user_ids = itertools.count(100000)
ADMIN_HEADERS = {"Authorization": f"Bearer {create_access_token({'sub': '1', 'role': 'admin'})}"}


def new_user_headers():
    user_id = next(_user_ids)
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


def future(days):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def fund(client, headers, amount="5000.00"):
    """Create a gateway order and confirm it with a valid signature."""
    order = client.post("/api/v1/wallet/orders", json={"amount": amount}, headers=headers, name="/api/v1/wallet/orders")
    if order.status_code != 201:
        return
    order_id = order.json()["id"]
    payment_id = f"pay_{random.getrandbits(48):x}"
    if is_mock_mode():
        signature = MOCK_SIGNATURE
    else:
        signature = sign(order_id, payment_id, get_settings().PAYMENT_GATEWAY_SECRET)
    client.post(
        "/api/v1/wallet/topups",
        json={"order_id": order_id, "payment_id": payment_id, "signature": signature, "amount": amount},
        headers=headers,
        name="/api/v1/wallet/topups",
    )


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: hot items are published by the first user that starts")
    print("=" * 60)


def publish_hot_items(client):
    global HOT_MOVIE_ID, HOT_EVENT_ID
    if HOT_MOVIE_ID is None:
        resp = client.post(
            "/api/v1/catalog/",
            json={
                "item_type": "movie",
                "title": "Hold Contention Show",
                "venue": "Screen 1",
                "event_date": future(30),
                "unit_price": "200.00",
                "total_units": 50,
            },
            headers=ADMIN_HEADERS,
        )
        if resp.status_code == 201:
            HOT_MOVIE_ID = resp.json()["id"]
            print(f"\nCreated movie {HOT_MOVIE_ID} with 50 seats\n")
    if HOT_EVENT_ID is None:
        resp = client.post(
            "/api/v1/catalog/",
            json={
                "item_type": "event",
                "title": "Capacity Test Event",
                "venue": "Arena",
                "event_date": future(30),
                "unit_price": "100.00",
                "total_units": 10,
            },
            headers=ADMIN_HEADERS,
        )
        if resp.status_code == 201:
            HOT_EVENT_ID = resp.json()["id"]
            print(f"\nCreated event {HOT_EVENT_ID} with 10 tickets\n")


class HoldContentionUser(HttpUser):
    """
    TEST 1: Hold contention - every user wants the same five seats

    Run: locust -f locustfile.py --tags holds -u 100 -r 50 --run-time 30s

    After test, verify each seat was sold at most once:
      SELECT unit_number, COUNT(*) FROM bookings, json_each(unit_refs) GROUP BY 1;
    """

    wait_time = between(0, 0.1)

    def on_start(self):
        publish_hot_items(self.client)
        self.headers = new_user_headers()
        fund(self.client, self.headers)

    @tag("holds")
    @task
    def hold_and_book(self):
        if not HOT_MOVIE_ID:
            return
        seats = random.sample(HOT_SEATS, 2)
        with self.client.post(
            f"/api/v1/inventory/movie/{HOT_MOVIE_ID}/holds",
            json={"unit_numbers": seats},
            headers=self.headers,
            catch_response=True,
            name="/api/v1/inventory/movie/{id}/holds",
        ) as resp:
            if resp.status_code in (200, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
            if resp.status_code != 200:
                return

        with self.client.post(
            "/api/v1/bookings/",
            json={"booking_type": "movie", "item_id": HOT_MOVIE_ID, "unit_numbers": seats},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 400, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class CapacityUser(HttpUser):
    """
    TEST 2: Capacity exhaustion - 100 users, 10 tickets

    Run: locust -f locustfile.py --tags capacity -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT SUM(quantity) FROM bookings WHERE item_id = X AND booking_status = 'confirmed';
    Should be <= 10, and capacity_counters.available_units should never be negative.
    """

    wait_time = between(0, 0.1)

    def on_start(self):
        publish_hot_items(self.client)
        self.headers = new_user_headers()
        fund(self.client, self.headers)

    @tag("capacity")
    @task
    def book_limited_tickets(self):
        if not HOT_EVENT_ID:
            return
        with self.client.post(
            "/api/v1/bookings/",
            json={"booking_type": "event", "item_id": HOT_EVENT_ID, "quantity": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=False, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """

    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_catalog_cached(self):
        page = random.randint(1, 5)
        self.client.get(f"/api/v1/catalog/?page={page}&page_size=20", name="/api/v1/catalog/ [cached]")

    @tag("throughput", "read")
    @task(3)
    def get_item_detail(self):
        if ITEM_IDS:
            self.client.get(f"/api/v1/catalog/{random.choice(ITEM_IDS)}", name="/api/v1/catalog/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """

    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = new_user_headers()

    def expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_item_id(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"booking_type": "event", "item_id": 999999, "quantity": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [404])

    @tag("edge")
    @task
    def zero_quantity(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"booking_type": "event", "item_id": 1, "quantity": 0},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [422])

    @tag("edge")
    @task
    def huge_quantity(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"booking_type": "event", "item_id": 1, "quantity": 999999},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [409, 422])

    @tag("edge")
    @task
    def unknown_seat(self):
        if not HOT_MOVIE_ID:
            return
        with self.client.post(
            f"/api/v1/inventory/movie/{HOT_MOVIE_ID}/holds",
            json={"unit_numbers": ["Z999"]},
            headers=self.headers,
            catch_response=True,
            name="/api/v1/inventory/movie/{id}/holds",
        ) as resp:
            self.expect(resp, [404])

    @tag("edge")
    @task
    def forged_top_up(self):
        with self.client.post(
            "/api/v1/wallet/topups",
            json={"order_id": "order_x", "payment_id": "pay_x", "signature": "forged", "amount": "10.00"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self.expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"booking_type": "event", "item_id": 1, "quantity": 1},
            catch_response=True,
        ) as resp:
            self.expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 5: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing
      - Some holds and bookings
      - Occasional cancellations
    """

    wait_time = between(1, 3)

    def on_start(self):
        self.headers = new_user_headers()
        self.bookings = []
        fund(self.client, self.headers)

    @task(50)
    def browse_catalog(self):
        resp = self.client.get("/api/v1/catalog/?page=1&page_size=20")
        if resp.status_code == 200:
            for item in resp.json().get("items", []):
                if item["id"] not in ITEM_IDS:
                    ITEM_IDS.append(item["id"])

    @task(20)
    def view_item(self):
        if ITEM_IDS:
            self.client.get(f"/api/v1/catalog/{random.choice(ITEM_IDS)}", name="/api/v1/catalog/{id}")

    @task(10)
    def book_tickets(self):
        if HOT_EVENT_ID:
            resp = self.client.post(
                "/api/v1/bookings/",
                json={"booking_type": "event", "item_id": HOT_EVENT_ID, "quantity": random.randint(1, 3)},
                headers=self.headers,
            )
            if resp.status_code == 201:
                self.bookings.append(resp.json()["id"])

    @task(2)
    def cancel_booking(self):
        if self.bookings:
            booking_id = self.bookings.pop()
            self.client.post(
                f"/api/v1/bookings/{booking_id}/cancel",
                headers=self.headers,
                name="/api/v1/bookings/{id}/cancel",
            )

    @task(5)
    def check_wallet(self):
        self.client.get("/api/v1/wallet/", headers=self.headers)
