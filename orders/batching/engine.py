"""
Purpose: The batch assignment step (single entry point).
What it does:

- counts BOOKED orders per location in the ledger
- increments each location's counter once through BatchCounterStore
- stamps the resulting value (or None) on every record of that location

Rule: Counter values that were written are authoritative. Nothing here rolls
a counter back, even if a later stage fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Mapping, Optional

from ..ledger import OrderLedger
from ..models import DeliveryType
from .counters import BatchCounterStore


@dataclass(frozen=True)
class BatchAssignment:
    """
    Output of the batch step for one run.
    """
    prior_counters: Dict[str, Optional[int]]
    final_counters: Dict[str, Optional[int]]
    success_counts: Dict[str, int]
    records_stamped: int

    def batch_for(self, location: str) -> Optional[int]:
        return self.final_counters.get(location)


async def assign_batches(
    ledger: OrderLedger,
    *,
    store: BatchCounterStore,
    delivery_date: date,
    delivery_type: DeliveryType,
    prior_counters: Mapping[str, Optional[int]],
) -> BatchAssignment:
    """
    Parameters
    ----------
    ledger:
        The run's ledger after the logistics stage (every record terminal).
    store:
        Counter store used for the increment.
    prior_counters:
        Values read by get_counters at run start; None marks an unreadable counter.
    """
    success_counts = ledger.success_counts_by_location()

    final_counters = await store.increment_counters(
        success_counts,
        delivery_date,
        delivery_type,
        dict(prior_counters),
    )

    stamped = ledger.stamp_batches(final_counters)

    return BatchAssignment(
        prior_counters=dict(prior_counters),
        final_counters=final_counters,
        success_counts=success_counts,
        records_stamped=stamped,
    )
