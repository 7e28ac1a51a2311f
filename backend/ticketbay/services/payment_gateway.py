"""
Payment confirmation gateway.

The checkout client pays the gateway directly and comes back with
(order_id, payment_id, signature). We accept the payment only if

    signature == hex(HMAC-SHA256(secret, f"{order_id}|{payment_id}"))

compared in constant time. Verification never raises; a bad or malformed
assertion is simply False and the caller turns that into
PaymentVerificationFailed.
"""

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ticketbay.core.config import get_settings
from ticketbay.core.logging import get_logger

logger = get_logger(__name__)

MOCK_SIGNATURE = "mock_signature"


@dataclass(frozen=True)
class PaymentAssertion:
    order_id: str
    payment_id: str
    signature: str


def sign(order_id: str, payment_id: str, secret: str) -> str:
    payload = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    if not (order_id and payment_id and signature and secret):
        return False
    try:
        expected = sign(order_id, payment_id, secret)
        return hmac.compare_digest(expected, signature)
    except (TypeError, ValueError):
        return False


def is_mock_mode() -> bool:
    """
    Mock payments are accepted outside production when asked for, or when no
    secret is configured. Production never runs in mock mode: without a
    secret every assertion fails verification.
    """
    settings = get_settings()
    if settings.ENVIRONMENT == "production":
        return False
    return settings.PAYMENT_GATEWAY_MOCK or not settings.PAYMENT_GATEWAY_SECRET


def verify_payment(assertion: Optional[PaymentAssertion]) -> bool:
    """Check a client-supplied payment assertion against the configured secret."""
    if assertion is None:
        return False
    if is_mock_mode():
        ok = assertion.signature == MOCK_SIGNATURE and assertion.order_id.startswith("order_mock_")
    else:
        ok = verify_signature(
            assertion.order_id,
            assertion.payment_id,
            assertion.signature,
            get_settings().PAYMENT_GATEWAY_SECRET,
        )
    if not ok:
        logger.warning("payment_signature_rejected", order_id=assertion.order_id, payment_id=assertion.payment_id)
    return ok


def create_order(amount: Decimal, receipt: str, currency: Optional[str] = None) -> dict:
    """
    Create a gateway order for the checkout client.

    Amounts are sent in minor units. Order creation is simulated: the id
    format mirrors the gateway's and the client pays against it.
    """
    settings = get_settings()
    millis = int(time.time() * 1000)
    prefix = "order_mock_" if is_mock_mode() else "order_"
    order = {
        "id": f"{prefix}{millis}{secrets.token_hex(3)}",
        "amount": int((Decimal(amount) * 100).to_integral_value()),
        "currency": currency or settings.WALLET_CURRENCY,
        "receipt": receipt,
        "status": "created",
        "key_id": settings.PAYMENT_GATEWAY_KEY_ID or None,
    }
    logger.info("payment_order_created", order_id=order["id"], amount=order["amount"], receipt=receipt)
    return order
