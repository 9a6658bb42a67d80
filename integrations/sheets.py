"""
Purpose: Audit rows appended to Google Sheets.
What it does:
- append_orders(): one row per tracking record on the Orders sheet
- append_batches(): one row per batch summary group on the Batches sheet
- values go in USER_ENTERED, booleans as TRUE/FALSE, None as ""

Rule: A failed append is reported in the returned dict, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from google.oauth2 import service_account
from googleapiclient.discovery import build

from config.settings import ConfigurationError
from orders.models import OrderTrackingRecord

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

ORDER_COLUMNS = [
    "store",
    "order_number",
    "delivery_date",
    "location",
    "is_same_day",
    "batch",
    "gopeople_status",
    "gopeople_error",
    "auspost_status",
    "auspost_error",
    "personalized_status",
    "packing_slip_status",
    "message_cards_status",
    "updateProcessingStatus",
    "order_products",
    "timestamp",
]

BATCH_COLUMNS = [
    "store",
    "delivery_date",
    "city",
    "same_day",
    "batch",
    "count_success_orders",
    "orders",
    "failed_orders",
    "timestamp",
]


def build_sheets_service(credentials_file: str):
    creds = service_account.Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


def cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def order_sheet_row(record: OrderTrackingRecord) -> Dict[str, Any]:
    """
    Orders sheet view of one record. Carrier columns are filled for the carrier of the record's lane.
    """
    same_day = record.delivery_type.is_same_day
    booked = record.is_booked
    error = None if booked else record.failure_reason
    return {
        "store": record.store.value,
        "order_number": record.order_number,
        "delivery_date": record.delivery_date.isoformat(),
        "location": record.location,
        "is_same_day": "1" if same_day else "0",
        "batch": record.batch,
        "gopeople_status": booked if same_day else None,
        "gopeople_error": error if same_day else None,
        "auspost_status": None if same_day else booked,
        "auspost_error": None if same_day else error,
        "personalized_status": record.personalization_status,
        "packing_slip_status": record.packing_slip_status,
        "message_cards_status": record.message_card_status,
        "updateProcessingStatus": record.reconciliation_status.value if record.reconciliation_status else None,
        "order_products": ", ".join(record.line_items),
    }


def to_values(rows: List[Dict[str, Any]], columns: List[str], timestamp: str) -> List[List[str]]:
    return [
        [timestamp if column == "timestamp" else cell(row.get(column)) for column in columns]
        for row in rows
    ]


class SheetsAuditSink:
    def __init__(
        self,
        spreadsheet_id: str,
        credentials_file: str = "",
        orders_sheet: str = "Orders",
        batches_sheet: str = "Batches",
        service=None,
        timeout: float = 60.0,
        clock=None,
    ):
        if not spreadsheet_id:
            raise ConfigurationError("SPREADSHEET_ID is not set")
        if service is None and not credentials_file:
            raise ConfigurationError("GOOGLE_CREDENTIALS_FILE is not set")
        self.spreadsheet_id = spreadsheet_id
        self.credentials_file = credentials_file
        self.orders_sheet = orders_sheet
        self.batches_sheet = batches_sheet
        self.timeout = timeout
        self._service = service
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings) -> SheetsAuditSink:
        return cls(
            settings.spreadsheet_id,
            settings.google_credentials_file,
            orders_sheet=settings.orders_sheet_name,
            batches_sheet=settings.batches_sheet_name,
        )

    @property
    def service(self):
        if self._service is None:
            self._service = build_sheets_service(self.credentials_file)
        return self._service

    def _append(self, sheet: str, values: List[List[str]]) -> Dict[str, Any]:
        response = (
            self.service.spreadsheets()
            .values()
            .append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{sheet}!A:A",
                valueInputOption="USER_ENTERED",
                body={"values": values},
            )
            .execute()
        )
        return response.get("updates") or {}

    async def _write(self, sheet: str, rows: List[Dict[str, Any]], columns: List[str]) -> Dict[str, Any]:
        if not rows:
            return {"success": True, "rowsWritten": 0, "sheetName": sheet, "message": "No rows to write"}
        values = to_values(rows, columns, self._clock().isoformat())
        try:
            updates = await asyncio.wait_for(asyncio.to_thread(self._append, sheet, values), timeout=self.timeout)
        except Exception as e:
            logger.error(f"Appending {len(values)} rows to {sheet} failed: {e}")
            return {"success": False, "rowsWritten": 0, "sheetName": sheet, "error": str(e) or e.__class__.__name__}
        written = updates.get("updatedRows", len(values))
        logger.info(f"Wrote {written} rows to {updates.get('updatedRange', sheet)}")
        return {
            "success": True,
            "rowsWritten": written,
            "updatedRange": updates.get("updatedRange"),
            "sheetName": sheet,
        }

    async def append_orders(self, records: List[OrderTrackingRecord]) -> Dict[str, Any]:
        return await self._write(self.orders_sheet, [order_sheet_row(record) for record in records], ORDER_COLUMNS)

    async def append_batches(self, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await self._write(self.batches_sheet, rows, BATCH_COLUMNS)
