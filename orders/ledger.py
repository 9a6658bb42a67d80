"""
Purpose: The per-run order tracking ledger.
What it does:
- Owns every OrderTrackingRecord for one run, keyed by order id, in seed order
- Seeds from eligible-order rows (idempotent per id)
- Provides the partitions stages work on:
   - booked() / not_booked()
   - by location, success counts per location
- Stamps batch numbers onto every record of a location

Rule: Ledger owns the collection, dispatch.state_machines owns record transitions.
Only the orchestrator's RunContext holds a ledger; nothing keeps it after the run.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from .models import DeliveryType, EligibleOrder, LogisticsStatus, OrderTrackingRecord


@dataclass
class LedgerStats:
    total: int
    pending: int
    booked: int
    booking_failed: int
    skipped: int


@dataclass
class OrderLedger:
    """
    In-memory collection of tracking records for a single run.
    """
    _records: Dict[int, OrderTrackingRecord] = field(default_factory=dict)
    _ids: List[int] = field(default_factory=list)  # seed order

    # --- Public API ---

    def add(self, record: OrderTrackingRecord) -> bool:
        """
        Add a record. Returns False when the id is already present.
        """
        if record.id in self._records:
            #idempotency : the source can repeat an order across joined rows
            return False
        self._records[record.id] = record
        self._ids.append(record.id)
        return True

    def seed(self, orders: Iterable[EligibleOrder], delivery_type: DeliveryType) -> int:
        added = 0
        for order in orders:
            if self.add(OrderTrackingRecord.new(order, delivery_type)):
                added += 1
        return added

    def get(self, order_id: int) -> Optional[OrderTrackingRecord]:
        return self._records.get(order_id)

    def by_order_number(self, order_number: str) -> Optional[OrderTrackingRecord]:
        for record in self:
            if record.order_number == order_number:
                return record
        return None

    def records(self) -> List[OrderTrackingRecord]:
        return [self._records[order_id] for order_id in self._ids]

    def booked(self) -> List[OrderTrackingRecord]:
        return [record for record in self if record.is_booked]

    def not_booked(self) -> List[OrderTrackingRecord]:
        return [record for record in self if not record.is_booked]

    def pending(self) -> List[OrderTrackingRecord]:
        return [record for record in self if record.logistics_status is LogisticsStatus.PENDING]

    def for_location(self, location: str) -> List[OrderTrackingRecord]:
        return [record for record in self if record.location == location]

    def locations(self) -> List[str]:
        seen: List[str] = []
        for record in self:
            if record.location not in seen:
                seen.append(record.location)
        return seen

    def booked_by_location(self) -> Dict[str, List[OrderTrackingRecord]]:
        grouped: Dict[str, List[OrderTrackingRecord]] = {}
        for record in self.booked():
            grouped.setdefault(record.location, []).append(record)
        return grouped

    def success_counts_by_location(self) -> Dict[str, int]:
        return dict(Counter(record.location for record in self.booked()))

    def stamp_batches(self, batches: Dict[str, Optional[int]]) -> int:
        """
        Write each location's batch value onto every record of that location,
        whatever its logistics status. Locations missing from batches get None.
        Returns the number of records that received a non-null batch.
        """
        stamped = 0
        for record in self:
            record.batch = batches.get(record.location)
            if record.batch is not None:
                stamped += 1
        return stamped

    def stats(self) -> LedgerStats:
        counts = Counter(record.logistics_status for record in self)
        return LedgerStats(
            total=len(self._ids),
            pending=counts[LogisticsStatus.PENDING],
            booked=counts[LogisticsStatus.BOOKED],
            booking_failed=counts[LogisticsStatus.BOOKING_FAILED],
            skipped=counts[LogisticsStatus.SKIPPED],
        )

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[OrderTrackingRecord]:
        return iter(self.records())
