"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Inventory metrics
hold_attempts = Counter(
    "ticketbay_hold_attempts_total",
    "Seat hold attempts",
    ["result"],  # granted, unavailable, not_found
)

holds_swept = Counter(
    "ticketbay_holds_swept_total",
    "Expired seat holds returned to available",
)

capacity_reservations = Counter(
    "ticketbay_capacity_reservations_total",
    "Capacity counter reservations",
    ["result"],  # reserved, insufficient
)

# Booking metrics
booking_attempts = Counter(
    "ticketbay_booking_attempts_total",
    "Total booking attempts",
    ["outcome"],  # confirmed, or the error code that stopped it
)

booking_cancellations = Counter(
    "ticketbay_booking_cancellations_total",
    "Cancelled bookings",
    ["refunded"],  # yes, no
)

compensations = Counter(
    "ticketbay_compensations_total",
    "Compensating actions executed after a failed step",
    ["step", "result"],  # result: ok, failed
)

# Wallet metrics
wallet_operations = Counter(
    "ticketbay_wallet_operations_total",
    "Wallet ledger operations",
    ["type", "result"],  # type: credit/debit/refund, result: ok/rejected
)

duplicate_payments = Counter(
    "ticketbay_duplicate_payments_total",
    "Top-up confirmations rejected as duplicates",
)

# HTTP
request_latency = Histogram(
    "ticketbay_request_latency_seconds",
    "Request latency",
    ["method"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


def record_hold_attempt(result: str):
    hold_attempts.labels(result=result).inc()


def record_capacity_reservation(reserved: bool):
    capacity_reservations.labels(result="reserved" if reserved else "insufficient").inc()


def record_booking_attempt(outcome: str):
    """Record booking attempt. Outcome: confirmed, or an error code"""
    booking_attempts.labels(outcome=outcome).inc()


def record_wallet_operation(tx_type: str, ok: bool):
    wallet_operations.labels(type=tx_type, result="ok" if ok else "rejected").inc()


def record_compensation(step: str, ok: bool):
    compensations.labels(step=step, result="ok" if ok else "failed").inc()
