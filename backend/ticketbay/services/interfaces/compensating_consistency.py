"""
Ordered compensating strategy - commit per step, undo on failure.
"""

from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.exceptions import BookingError, StorageError
from ticketbay.core.logging import get_logger
from ticketbay.core.metrics import record_compensation
from ticketbay.services.interfaces.consistency import ConsistencyStrategy, Step

logger = get_logger(__name__)


class OrderedCompensating(ConsistencyStrategy):
    """
    Commit each step as soon as it succeeds. When a step fails, roll back
    that step's uncommitted writes, then run the compensations of the steps
    already committed, newest first, each in its own commit.

    Steps must be ordered so the cheapest-to-undo mutation comes first:
    inventory before money.

    A compensation that itself fails is logged at error level and counted;
    the remaining compensations still run and the original error is raised.
    """

    name = "compensating"

    async def execute(self, db: AsyncSession, steps: Sequence[Step]) -> list:
        completed: list[tuple[Step, Any]] = []
        for step in steps:
            try:
                result = await step.action()
                await db.commit()
            except BookingError as e:
                await db.rollback()
                logger.info("step_failed", step=step.name, code=e.code)
                await self._compensate(db, completed)
                raise
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("step_storage_failure", step=step.name, error=str(e))
                await self._compensate(db, completed)
                raise StorageError() from e
            completed.append((step, result))
        return [result for _, result in completed]

    async def _compensate(self, db: AsyncSession, completed: list[tuple[Step, Any]]) -> None:
        for step, result in reversed(completed):
            if step.compensate is None:
                continue
            try:
                await step.compensate(result)
                await db.commit()
                record_compensation(step.name, ok=True)
                logger.info("compensation_applied", step=step.name)
            except (BookingError, SQLAlchemyError) as e:
                await db.rollback()
                record_compensation(step.name, ok=False)
                logger.error("compensation_failed", step=step.name, error=str(e))
