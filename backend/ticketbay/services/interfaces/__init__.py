"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .atomic_consistency import AtomicMultiDocument
from .compensating_consistency import OrderedCompensating
from .consistency import ConsistencyStrategy, Step

__all__ = ['ConsistencyStrategy', 'Step', 'AtomicMultiDocument', 'OrderedCompensating']
