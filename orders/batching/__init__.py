"""
Batch counter subpackage for the Orders domain.

Public API:
- BatchCounterStore (get_counters / increment_counters)
- FirestoreCounterBackend, InMemoryCounterBackend
- assign_batches / BatchAssignment
- BatchCounterPolicy
"""

from .counters import BatchCounterStore, CounterBackendError, FirestoreCounterBackend, InMemoryCounterBackend
from .engine import BatchAssignment, assign_batches
from .policy import BatchCounterPolicy, default_policy

__all__ = [
    "BatchCounterStore",
    "CounterBackendError",
    "FirestoreCounterBackend",
    "InMemoryCounterBackend",
    "BatchAssignment",
    "assign_batches",
    "BatchCounterPolicy",
    "default_policy",
]
