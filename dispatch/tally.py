"""
Purpose: Product tally per location for booked orders, and its submission to the tally endpoint.
What it does:
- Flattens line items of BOOKED records into a (location, product) frame
- Counts each tally row / field per location
- Optionally posts {location, delivery_date, batch, isSameDay, <tables>} per location

Rule: The calculation always runs. Submission only when the stage flag allows it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from carriers.documents import DocumentApiError, DocumentClient
from config.tally_rules import DEFAULT_TALLY_RULES, TallyTable
from orders.models import DeliveryType, OrderTrackingRecord

logger = logging.getLogger(__name__)


def products_frame(records: List[OrderTrackingRecord]) -> pd.DataFrame:
    rows = [
        {"location": record.location, "product": product}
        for record in records
        if record.is_booked and record.location
        for product in record.line_items
    ]
    return pd.DataFrame(rows, columns=["location", "product"])


def count_matching(products: pd.Series, search_texts: Sequence[str]) -> int:
    lowered = products.str.lower()
    mask = pd.Series(False, index=products.index)
    for text in search_texts:
        mask |= lowered.str.contains(text.lower(), regex=False)
    return int(mask.sum())


def calculate_tallies(products: pd.Series, rules: Sequence[TallyTable] = DEFAULT_TALLY_RULES) -> Dict[str, Dict[str, Any]]:
    tallies: Dict[str, Dict[str, Any]] = {}
    for table in rules:
        counts: Dict[str, Any] = {}
        for row in table.rows:
            if row.is_complex:
                counts[row.label] = {f.field_name: count_matching(products, f.search_texts) for f in row.fields}
            else:
                counts[row.label] = count_matching(products, row.search_texts)
        tallies[table.name] = counts
    return tallies


@dataclass
class TallyOutcome:
    calculations: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    locations: List[Dict[str, Any]] = field(default_factory=list)
    api_success: int = 0
    api_failed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "locationsProcessed": self.locations,
            "apiCalls": {"success": self.api_success, "failed": self.api_failed},
            "errors": self.errors,
            "calculations": self.calculations,
        }


class ProductTally:
    def __init__(
        self,
        documents: Optional[DocumentClient] = None,
        url: str = "",
        rules: Sequence[TallyTable] = DEFAULT_TALLY_RULES,
    ):
        self.documents = documents
        self.url = url
        self.rules = rules

    def payload(
        self,
        location: str,
        delivery_date: date,
        delivery_type: DeliveryType,
        batch: Optional[int],
        tallies: Dict[str, Dict[str, Any]],
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "location": location,
            "delivery_date": delivery_date.isoformat(),
            "batch": batch,
            "isSameDay": delivery_type.value,
        }
        body.update(tallies)
        return body

    async def calculate_and_submit(
        self,
        records: List[OrderTrackingRecord],
        delivery_date: date,
        delivery_type: DeliveryType,
        batches: Dict[str, Optional[int]],
        submit: bool,
    ) -> TallyOutcome:
        outcome = TallyOutcome()
        frame = products_frame(records)
        logger.info(f"Product tally over {len(frame)} line items, submission {'on' if submit else 'off'}")

        for location, group in frame.groupby("location", sort=False):
            batch = batches.get(location)
            tallies = calculate_tallies(group["product"], self.rules)
            outcome.calculations[location] = {"batch": batch, "tallies": tallies}

            if not submit:
                outcome.locations.append({"location": location, "success": True, "skipped": True})
                continue
            if self.documents is None or batch is None:
                error = "No batch number assigned" if batch is None else "Tally endpoint not configured"
                outcome.api_failed += 1
                outcome.errors.append({"location": location, "error": error})
                outcome.locations.append({"location": location, "success": False, "error": error})
                continue

            try:
                await self.documents.post_json(
                    self.url, self.payload(location, delivery_date, delivery_type, batch, tallies)
                )
            except DocumentApiError as e:
                outcome.api_failed += 1
                outcome.errors.append({"location": location, "error": str(e)})
                outcome.locations.append({"location": location, "success": False, "error": str(e)})
                continue
            outcome.api_success += 1
            outcome.locations.append({"location": location, "success": True})
        return outcome
