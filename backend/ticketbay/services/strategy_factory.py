"""
Consistency strategy factory.
Configures how multi-entity booking operations keep their writes consistent.
"""

from typing import Optional

from ticketbay.core.config import get_settings
from ticketbay.core.logging import get_logger
from ticketbay.services.interfaces import AtomicMultiDocument, ConsistencyStrategy, OrderedCompensating

logger = get_logger(__name__)

_STRATEGIES = {
    AtomicMultiDocument.name: AtomicMultiDocument,
    OrderedCompensating.name: OrderedCompensating,
}


def get_consistency_strategy(name: Optional[str] = None) -> ConsistencyStrategy:
    """
    Build a strategy by name.

    - atomic: one transaction per booking operation
    - compensating: per-step commits with reverse-order compensation

    Defaults to CONSISTENCY_STRATEGY.
    """
    name = name or get_settings().CONSISTENCY_STRATEGY
    try:
        return _STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown consistency strategy: {name}")


# Singleton instance, chosen once at process start
_strategy: Optional[ConsistencyStrategy] = None


def get_strategy() -> ConsistencyStrategy:
    """Get consistency strategy singleton."""
    global _strategy
    if _strategy is None:
        _strategy = get_consistency_strategy()
        logger.info("consistency_strategy_selected", strategy=_strategy.name)
    return _strategy
