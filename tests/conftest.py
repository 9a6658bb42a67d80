import pytest
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from carriers.base import BookingRequest, BookingResult
from orders.batching.counters import BatchCounterStore, InMemoryCounterBackend
from orders.models import (
    DeliveryType,
    EligibleOrder,
    GiftDetails,
    OrderTrackingRecord,
    ShippingAddress,
    Store,
)
from orders.source import OrderSelection, SourceUnavailable

DELIVERY_DATE = date(2025, 6, 3)  # Tuesday

# 08:00 in Melbourne / Sydney on the delivery date, ahead of every default cutoff
MORNING_UTC = datetime(2025, 6, 2, 22, 0, tzinfo=timezone.utc)
# 17:00 in Melbourne / Sydney, past every default cutoff
EVENING_UTC = datetime(2025, 6, 3, 7, 0, tzinfo=timezone.utc)


def make_order(
    order_id: int,
    location: str = "Sydney",
    store: Store = Store.LVLY,
    line_items: Optional[List[str]] = None,
    card_message: str = "",
    delivery_date: date = DELIVERY_DATE,
) -> EligibleOrder:
    return EligibleOrder(
        id=order_id,
        order_number=f"#{order_id}",
        location=location,
        store=store,
        delivery_date=delivery_date,
        line_items=line_items if line_items is not None else ["Classic Roses Bouquet"],
        shipping=ShippingAddress(
            name=f"Recipient {order_id}",
            address1=f"{order_id} George St",
            suburb="Surry Hills",
            state="New South Wales",
            postcode="2010",
            phone="0400000000",
            email=f"r{order_id}@example.com",
        ),
        gift=GiftDetails(card_message=card_message, sender_name="Sam" if card_message else ""),
    )


def make_record(order_id: int, delivery_type: DeliveryType = DeliveryType.SAME_DAY, **kwargs) -> OrderTrackingRecord:
    return OrderTrackingRecord.new(make_order(order_id, **kwargs), delivery_type)


class FakeSource:
    def __init__(self, orders: Optional[List[EligibleOrder]] = None, fail: bool = False):
        self.orders = orders or []
        self.fail = fail
        self.selections: List[OrderSelection] = []

    async def fetch(self, selection: OrderSelection) -> List[EligibleOrder]:
        self.selections.append(selection)
        if self.fail:
            raise SourceUnavailable("connection refused")
        return list(self.orders)


class FakeCarrier:
    """
    Books every order except those listed in failing (by order number).
    """

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.requests: List[BookingRequest] = []

    async def book_order(self, request: BookingRequest) -> BookingResult:
        self.requests.append(request)
        if request.order_number in self.failing:
            return BookingResult.failed("400: address not serviceable", status_code=400)
        reference = f"REF-{request.order_number.lstrip('#')}"
        return BookingResult(
            success=True,
            carrier_reference=reference,
            status_code=200,
            response={"number": reference, "label": {"barcode": f"BC{reference}"}},
        )


class FakeAssetStore:
    def __init__(self):
        self.calls: List[Dict[str, Optional[int]]] = []
        self.uploads = []

    async def pre_create_folders(self, delivery_date: str, batches: Dict[str, Optional[int]]):
        # no batch checks here; callers only pass batched locations
        self.calls.append(dict(batches))
        return {
            location: {"success": True, "folder_id": f"folder-{location}-{batch}"}
            for location, batch in batches.items()
        }

    async def upload(self, delivery_date, location, batch, filename, content, mime_type):
        self.uploads.append((delivery_date, location, batch, filename, mime_type))
        return f"file-{filename}"


class FakeStatusWriter:
    def __init__(self, fail_status: Optional[str] = None):
        self.fail_status = fail_status
        self.calls: List[tuple] = []

    async def bulk_update(self, order_ids, status: str) -> int:
        from integrations.status_writer import StatusWriteError

        self.calls.append((list(order_ids), status))
        if status == self.fail_status:
            raise StatusWriteError("deadlock")
        return len(order_ids)


class FakeNotifier:
    def __init__(self):
        self.notified: List[OrderTrackingRecord] = []

    async def notify_hold_orders(self, records):
        self.notified.extend(records)
        results = [
            {
                "order_number": record.order_number,
                "order_id": record.id,
                "location": record.location,
                "store": record.store.value,
                "success": True,
                "error": None,
            }
            for record in records
        ]
        return {"totalSent": len(results), "totalFailed": 0, "byStore": {}, "results": results}


class FakeAuditSink:
    def __init__(self):
        self.orders: List[OrderTrackingRecord] = []
        self.batches: List[dict] = []

    async def append_orders(self, records):
        self.orders.extend(records)
        return {"success": True, "rowsWritten": len(records)}

    async def append_batches(self, rows):
        self.batches.extend(rows)
        return {"success": True, "rowsWritten": len(rows)}


@pytest.fixture
def counter_backend():
    return InMemoryCounterBackend()


@pytest.fixture
def counter_store(counter_backend):
    return BatchCounterStore(counter_backend)
