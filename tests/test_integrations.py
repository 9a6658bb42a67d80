import pytest
from datetime import datetime, timezone

from config.settings import ConfigurationError
from dispatch.state_machines.order_state import mark_booked, mark_booking_failed
from integrations.drive import DriveAssetStore
from integrations.mailer import SmtpNotifier, hold_subject
from integrations.sheets import ORDER_COLUMNS, SheetsAuditSink, cell, order_sheet_row
from orders.models import DeliveryType, ReconciliationStatus, Store

from tests.conftest import make_record


# ----------------------------
# Google API fakes
# ----------------------------

class MockRequest:
    def __init__(self, result=None, error=None):
        self.result = result or {}
        self.error = error

    def execute(self):
        if self.error:
            raise self.error
        return self.result


class MockSheetsService:
    def __init__(self, error=None):
        self.appends = []
        self.error = error

    def spreadsheets(self):
        return self

    def values(self):
        return self

    def append(self, spreadsheetId, range, valueInputOption, body):
        self.appends.append((range, valueInputOption, body["values"]))
        rows = len(body["values"])
        return MockRequest({"updates": {"updatedRows": rows, "updatedRange": f"{range[:-4]}!A2:P{rows + 1}"}}, self.error)


class MockDriveService:
    """
    files().list/create/update over an in-memory folder tree.
    """

    def __init__(self, fail_names=()):
        self.items = {}  # id -> (name, parent)
        self.fail_names = set(fail_names)
        self.created = []

    def files(self):
        return self

    def list(self, q, **kwargs):
        matches = [
            {"id": item_id, "name": name}
            for item_id, (name, parent) in self.items.items()
            if f"'{parent}' in parents" in q and f"name = '{name}'" in q
        ]
        return MockRequest({"files": matches})

    def create(self, body, **kwargs):
        if body["name"] in self.fail_names:
            return MockRequest(error=RuntimeError(f"quota exceeded for {body['name']}"))
        item_id = f"id{len(self.items) + 1}"
        self.items[item_id] = (body["name"], body["parents"][0])
        self.created.append(body["name"])
        return MockRequest({"id": item_id})

    def update(self, fileId, **kwargs):
        return MockRequest({"id": fileId})


FIXED_CLOCK = lambda: datetime(2025, 6, 3, 1, 0, tzinfo=timezone.utc)


# ----------------------------
# Sheets
# ----------------------------

def test_cell_formatting():
    assert cell(True) == "TRUE"
    assert cell(False) == "FALSE"
    assert cell(None) == ""
    assert cell(6) == "6"


def test_order_row_fills_lane_carrier_columns():
    same_day = make_record(1)
    mark_booked(same_day)
    same_day.reconciliation_status = ReconciliationStatus.PROCESSED
    next_day = make_record(2, DeliveryType.NEXT_DAY)
    mark_booking_failed(next_day, "Invalid postcode")

    row = order_sheet_row(same_day)
    assert row["gopeople_status"] is True
    assert row["auspost_status"] is None
    assert row["updateProcessingStatus"] == "Processed"

    row = order_sheet_row(next_day)
    assert row["is_same_day"] == "0"
    assert row["auspost_status"] is False
    assert row["auspost_error"] == "Invalid postcode"


@pytest.mark.asyncio
async def test_append_orders_and_batches():
    service = MockSheetsService()
    sink = SheetsAuditSink("sheet-id", service=service, clock=FIXED_CLOCK)
    record = make_record(1)
    mark_booked(record)

    orders = await sink.append_orders([record])
    batches = await sink.append_batches([{"store": "LVLY", "city": "Sydney", "batch": 2, "count_success_orders": 1}])

    assert orders["success"] and orders["rowsWritten"] == 1
    assert batches["sheetName"] == "Batches"
    range_, option, values = service.appends[0]
    assert range_ == "Orders!A:A"
    assert option == "USER_ENTERED"
    assert len(values[0]) == len(ORDER_COLUMNS)
    assert values[0][-1] == "2025-06-03T01:00:00+00:00"


@pytest.mark.asyncio
async def test_append_failure_is_returned():
    sink = SheetsAuditSink("sheet-id", service=MockSheetsService(error=RuntimeError("403 forbidden")))

    result = await sink.append_orders([make_record(1)])

    assert not result["success"]
    assert result["error"] == "403 forbidden"


@pytest.mark.asyncio
async def test_empty_append_writes_nothing():
    service = MockSheetsService()
    sink = SheetsAuditSink("sheet-id", service=service)

    assert (await sink.append_batches([]))["rowsWritten"] == 0
    assert service.appends == []


def test_sheets_requires_configuration():
    with pytest.raises(ConfigurationError):
        SheetsAuditSink("")


# ----------------------------
# Drive
# ----------------------------

@pytest.mark.asyncio
async def test_pre_create_folders():
    service = MockDriveService(fail_names={"Perth"})
    store = DriveAssetStore("root", service=service)

    results = await store.pre_create_folders("2025-06-03", {"Sydney": 4, "Melbourne": None, "Perth": 1})

    assert results["Sydney"]["success"]
    assert results["Melbourne"]["skipped"]
    assert not results["Perth"]["success"]
    assert "quota exceeded" in results["Perth"]["error"]
    assert service.created == ["2025-06-03", "Sydney", "batch_4"]


@pytest.mark.asyncio
async def test_folders_are_reused():
    service = MockDriveService()
    store = DriveAssetStore("root", service=service)

    first = await store.ensure_batch_folder("2025-06-03", "Sydney", 4)
    second = await store.ensure_batch_folder("2025-06-03", "Sydney", 4)

    assert first == second
    assert service.created.count("batch_4") == 1


# ----------------------------
# Mailer
# ----------------------------

@pytest.mark.asyncio
async def test_hold_emails_go_to_store_team():
    sent = []

    def send(sender, to, message):
        if "#3" in message:
            raise OSError("mailbox unavailable")
        sent.append((sender, to))

    notifier = SmtpNotifier(
        host="",
        sender="ops@example.com",
        recipients={"LVLY": ["lvly@example.com"], "BL": ["bl@example.com"]},
        pacing_sec=0,
        send=send,
    )
    records = [make_record(1), make_record(2, store=Store.BL), make_record(3)]
    for record in records:
        mark_booking_failed(record, "rejected")

    outcome = await notifier.notify_hold_orders(records)

    assert outcome["totalSent"] == 2
    assert outcome["totalFailed"] == 1
    assert outcome["byStore"] == {"LVLY": 1, "BL": 1, "Unknown": 0}
    assert sent == [("ops@example.com", ["lvly@example.com"]), ("ops@example.com", ["bl@example.com"])]
    assert outcome["results"][2]["error"] == "mailbox unavailable"


@pytest.mark.asyncio
async def test_store_without_recipients_is_a_failed_result():
    notifier = SmtpNotifier(host="smtp.test", recipients={"LVLY": ["lvly@example.com"]}, pacing_sec=0, send=lambda *a: None)
    record = make_record(1, store=Store.BL)
    mark_booking_failed(record, "rejected")

    outcome = await notifier.notify_hold_orders([record])

    assert outcome["totalFailed"] == 1
    assert "No recipients configured for store BL" in outcome["results"][0]["error"]


def test_hold_subject():
    record = make_record(7, location="Perth")
    assert hold_subject(record) == "[LVLY] Order #7 on Hold (Perth, 2025-06-03)"
