"""
Cross-entity consistency strategy interface.
Lets the booking flow run the same ordered steps either inside one database
transaction or as individually committed steps with compensations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class Step:
    """
    One unit of a multi-entity operation.

    `action` performs the write and returns a value that is handed to
    `compensate` if a later step fails. Steps with no compensation (pure
    checks, the final write) leave `compensate` as None.
    """

    name: str
    action: Callable[[], Awaitable[Any]]
    compensate: Optional[Callable[[Any], Awaitable[Any]]] = None


class ConsistencyStrategy(ABC):
    """
    Interface for multi-entity consistency strategies.

    Implementations:
    - AtomicMultiDocument: every step in one transaction, one commit
    - OrderedCompensating: commit per step, undo completed steps in reverse
      order when a later step fails
    """

    name: str = "base"

    @abstractmethod
    async def execute(self, db: AsyncSession, steps: Sequence[Step]) -> list:
        """
        Run `steps` in order and return their results.

        Raises the first step's BookingError unchanged, or StorageError for
        unexpected store failures. Either way no partial effect survives.
        """
        pass
