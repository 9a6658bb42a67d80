"""
Purpose: Central configuration for batch counters (single source of truth).
What it does:

Stores the tunables of the batch counter partitioning:

COLLECTION = "batch_counters"

KEY = "{location}_{date}_{delivery-type}"

LOCATIONS = the five fulfilment locations

Rule: No logic here beyond key formatting and validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Tuple

from config.locations import LOCATIONS
from ..models import DeliveryType


@dataclass(frozen=True)
class BatchCounterPolicy:
    """
    Central configuration for the batch counter store.

    Notes:
    - one counter document per (location, delivery date, delivery type)
    - a run increments a key at most once, by exactly `increment`
    """

    # --- Storage ---
    collection: str = "batch_counters"

    # --- Partitioning ---
    # Locations whose counters are resolved at the start of every run.
    locations: Tuple[str, ...] = LOCATIONS

    # --- Increment rule ---
    increment: int = 1

    # --- Timeouts (seconds) per backend call ---
    read_timeout_sec: float = 10.0
    write_timeout_sec: float = 10.0

    def key(self, location: str, delivery_date: date, delivery_type: DeliveryType) -> str:
        return f"{location}_{delivery_date.isoformat()}_{delivery_type.value}"

    def validate(self) -> None:
        """
        Basic sanity checks. Call once at startup.
        """
        if not self.collection:
            raise ValueError("collection must be set")

        if not self.locations:
            raise ValueError("locations must not be empty")

        if self.increment != 1:
            raise ValueError("increment must be 1")

        if self.read_timeout_sec <= 0 or self.write_timeout_sec <= 0:
            raise ValueError("timeouts must be > 0")


def default_policy() -> BatchCounterPolicy:
    """
    Convenience factory for the default policy.
    """
    p = BatchCounterPolicy()
    p.validate()
    return p
