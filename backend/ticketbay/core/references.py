"""
Human-facing unique references: booking_reference (BK...) and wallet
transaction reference_id (WT...).

Format: <prefix><epoch milliseconds><9 random base36 chars>. Candidates are
checked against the store and retried a bounded number of times; when every
attempt collides, a uuid4-based composite is returned, which cannot collide.
The store's unique constraint stays the final guard either way.
"""

import secrets
import string
import time
import uuid
from typing import Awaitable, Callable

from ticketbay.core.logging import get_logger

logger = get_logger(__name__)

BOOKING_PREFIX = "BK"
WALLET_TX_PREFIX = "WT"

_ALPHABET = string.digits + string.ascii_uppercase


def make_reference(prefix: str, random_length: int = 9) -> str:
    timestamp = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(random_length))
    return f"{prefix}{timestamp}{suffix}"


def fallback_reference(prefix: str) -> str:
    return f"{prefix}{int(time.time() * 1000)}{uuid.uuid4().hex.upper()}"


async def generate_unique_reference(
    prefix: str,
    exists: Callable[[str], Awaitable[bool]],
    max_attempts: int = 5,
) -> str:
    """Return a reference that `exists` reports as unused."""
    for attempt in range(1, max_attempts + 1):
        candidate = make_reference(prefix)
        if not await exists(candidate):
            return candidate
        logger.warning("reference_collision", prefix=prefix, attempt=attempt)

    reference = fallback_reference(prefix)
    logger.warning("reference_fallback", prefix=prefix, attempts=max_attempts, reference=reference)
    return reference
