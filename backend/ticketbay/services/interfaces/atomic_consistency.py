"""
Atomic strategy - all steps share one database transaction.
"""

from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.exceptions import BookingError, StorageError
from ticketbay.core.logging import get_logger
from ticketbay.services.interfaces.consistency import ConsistencyStrategy, Step

logger = get_logger(__name__)


class AtomicMultiDocument(ConsistencyStrategy):
    """
    Run every step on the same session and commit once at the end.
    Any failure rolls the whole unit back, so compensations are never needed.

    Use when:
    - The store supports multi-table transactions (PostgreSQL, SQLite)
    - Row locks held for the whole booking are acceptable
    """

    name = "atomic"

    async def execute(self, db: AsyncSession, steps: Sequence[Step]) -> list:
        results = []
        current = None
        try:
            for step in steps:
                current = step.name
                results.append(await step.action())
            current = "commit"
            await db.commit()
        except BookingError as e:
            await db.rollback()
            logger.info("unit_rolled_back", step=current, code=e.code)
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("unit_storage_failure", step=current, error=str(e))
            raise StorageError() from e
        return results
