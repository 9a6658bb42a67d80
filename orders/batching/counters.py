"""
Purpose: Batch counter store adapter.
What it does:
- get_counters(): read (or lazily create at 0) the counter of each location
- increment_counters(): write prior + 1 for locations that booked at least one order

Both operations are explicit and independent; the caller carries the prior
values from the first into the second. A failed read or write yields None for
that location and never raises, so dependents can skip batch assignment.

Backends:
- FirestoreCounterBackend: google-cloud-firestore AsyncClient
- InMemoryCounterBackend: dict-backed, for tests and dry runs

There is no cross-run locking: two overlapping runs on the same key can both
read N and both write N + 1.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set

from google.cloud import firestore

from ..models import DeliveryType
from .policy import BatchCounterPolicy, default_policy

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CounterBackendError(Exception):
    """Raised by a backend when a document cannot be read or written."""
    pass


class InMemoryCounterBackend:
    """
    Document store kept in a dict. Failure injection per key for tests.
    """

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self.documents: Dict[str, Dict[str, Any]] = dict(documents or {})
        self.fail_reads: Set[str] = set()
        self.fail_writes: Set[str] = set()
        self.creates = 0
        self.writes = 0

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        if key in self.fail_reads:
            raise CounterBackendError(f"read failed for {key}")
        doc = self.documents.get(key)
        return dict(doc) if doc is not None else None

    async def create(self, key: str, document: Mapping[str, Any]) -> None:
        if key in self.fail_writes:
            raise CounterBackendError(f"create failed for {key}")
        self.documents[key] = dict(document)
        self.creates += 1

    async def update(self, key: str, fields: Mapping[str, Any]) -> None:
        if key in self.fail_writes:
            raise CounterBackendError(f"write failed for {key}")
        self.documents.setdefault(key, {}).update(fields)
        self.writes += 1


class FirestoreCounterBackend:
    """
    Counter documents in a Firestore collection, one document per key.
    """

    def __init__(self, collection: str = "batch_counters", project: Optional[str] = None, client=None):
        self.collection = collection
        self.project = project or None
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = firestore.AsyncClient(project=self.project)
        return self._client

    def _doc(self, key: str):
        return self.client.collection(self.collection).document(key)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        snapshot = await self._doc(key).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    async def create(self, key: str, document: Mapping[str, Any]) -> None:
        await self._doc(key).set(dict(document))

    async def update(self, key: str, fields: Mapping[str, Any]) -> None:
        await self._doc(key).set(dict(fields), merge=True)


class BatchCounterStore:
    """
    Two-phase batch counter access over a document backend.
    """

    def __init__(self, backend, policy: Optional[BatchCounterPolicy] = None, clock: Optional[Clock] = None):
        self.backend = backend
        self.policy = policy or default_policy()
        self.clock = clock or _utcnow

    async def _read_or_create(self, key: str) -> int:
        document = await asyncio.wait_for(self.backend.get(key), timeout=self.policy.read_timeout_sec)
        if document is None:
            now = self.clock()
            await asyncio.wait_for(
                self.backend.create(key, {"batch": 0, "created_at": now, "updated_at": now}),
                timeout=self.policy.write_timeout_sec,
            )
            logger.info(f"Created batch counter {key} at 0")
            return 0
        return int(document.get("batch", 0))

    async def get_counters(
        self,
        locations: Iterable[str],
        delivery_date: date,
        delivery_type: DeliveryType,
    ) -> Dict[str, Optional[int]]:
        """
        Current counter per location. Missing keys are created at 0; read failures give None.
        """
        counters: Dict[str, Optional[int]] = {}
        for location in locations:
            key = self.policy.key(location, delivery_date, delivery_type)
            try:
                counters[location] = await self._read_or_create(key)
            except Exception as e:
                logger.error(f"Batch counter read failed for {key}: {e}")
                counters[location] = None
        return counters

    async def increment_counters(
        self,
        success_counts: Mapping[str, int],
        delivery_date: date,
        delivery_type: DeliveryType,
        prior_counters: Mapping[str, Optional[int]],
    ) -> Dict[str, Optional[int]]:
        """
        New counter per location.

        - prior None: stays None, nothing written
        - no successes this run: prior value, nothing written
        - otherwise: exactly one write of prior + 1; a failed write gives None

        Locations that have successes but no prior entry are treated as prior None.
        """
        final: Dict[str, Optional[int]] = {}
        locations = list(prior_counters) + [loc for loc in success_counts if loc not in prior_counters]

        for location in locations:
            prior = prior_counters.get(location)
            count = int(success_counts.get(location, 0))

            if prior is None:
                final[location] = None
                continue

            if count <= 0:
                final[location] = prior
                continue

            key = self.policy.key(location, delivery_date, delivery_type)
            new_value = prior + self.policy.increment
            try:
                await asyncio.wait_for(
                    self.backend.update(
                        key,
                        {"batch": new_value, "updated_at": self.clock(), "last_order_count": count},
                    ),
                    timeout=self.policy.write_timeout_sec,
                )
            except Exception as e:
                logger.error(f"Batch counter write failed for {key}: {e}")
                final[location] = None
                continue

            logger.info(f"Batch counter {key}: {prior} -> {new_value} ({count} orders)")
            final[location] = new_value

        return final
