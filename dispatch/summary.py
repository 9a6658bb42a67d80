"""
Purpose: Batch summary rows for the audit sheet.
What it does:
- One row per (store, delivery date, location, delivery type, batch)
- count_success_orders, booked order numbers and not-booked order numbers per group

Rule: Read-only over the ledger. Records without a batch are grouped under batch "".
"""

from __future__ import annotations

from typing import Any, Dict, List

import pandas as pd

from orders.models import OrderTrackingRecord

GROUP_COLUMNS = ["store", "delivery_date", "city", "same_day", "batch"]


def records_frame(records: List[OrderTrackingRecord]) -> pd.DataFrame:
    rows = [
        {
            "store": record.store.value,
            "delivery_date": record.delivery_date.isoformat(),
            "city": record.location,
            "same_day": record.delivery_type.value,
            # groupby drops None keys
            "batch": "" if record.batch is None else record.batch,
            "order_number": record.order_number,
            "booked": record.is_booked,
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=GROUP_COLUMNS + ["order_number", "booked"])


def _joined(numbers: pd.Series) -> str:
    return ", ".join(str(number) for number in numbers)


def batch_summary_rows(records: List[OrderTrackingRecord]) -> List[Dict[str, Any]]:
    frame = records_frame(records)
    if frame.empty:
        return []

    rows: List[Dict[str, Any]] = []
    for keys, group in frame.groupby(GROUP_COLUMNS, sort=False):
        booked = group[group["booked"]]
        failed = group[~group["booked"]]
        row = dict(zip(GROUP_COLUMNS, keys))
        row["batch"] = None if row["batch"] == "" else int(row["batch"])
        row["count_success_orders"] = int(len(booked))
        row["orders"] = _joined(booked["order_number"])
        row["failed_orders"] = _joined(failed["order_number"])
        rows.append(row)
    return rows
