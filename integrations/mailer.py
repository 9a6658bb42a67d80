"""
Purpose: Email notification for orders left on Hold.
What it does:
- One plain-text email per Hold order, sent to that order's store team (LVLY / BL)
- notify_hold_orders(): sends them one by one with a small delay and returns
  {totalSent, totalFailed, byStore, results}

Rule: smtplib blocks; sends run in asyncio.to_thread. A failed send is a result entry, not an exception.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Callable, Dict, List, Optional

from config.settings import ConfigurationError
from orders.models import OrderTrackingRecord

logger = logging.getLogger(__name__)


def hold_subject(record: OrderTrackingRecord) -> str:
    return f"[{record.store.value}] Order {record.order_number} on Hold ({record.location}, {record.delivery_date.isoformat()})"


def hold_body(record: OrderTrackingRecord) -> str:
    lines = [
        f"Order {record.order_number} could not be booked and has been set to Hold.",
        "",
        f"Store: {record.store.value}",
        f"Location: {record.location}",
        f"Delivery date: {record.delivery_date.isoformat()} ({record.delivery_type.value})",
        f"Batch: {record.batch if record.batch is not None else '-'}",
        f"Reason: {record.failure_reason or 'unknown'}",
        f"Recipient: {record.shipping.name}, {record.shipping.address1} {record.shipping.suburb} {record.shipping.postcode}",
        f"Products: {', '.join(record.line_items) or '-'}",
        "",
        "Please book this order manually or reschedule it.",
    ]
    return "\n".join(lines)


class SmtpNotifier:
    def __init__(
        self,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        sender: str = "",
        recipients: Optional[Dict[str, List[str]]] = None,
        timeout: float = 30.0,
        pacing_sec: float = 0.1,
        send: Optional[Callable[[str, List[str], str], None]] = None,
    ):
        if send is None and not host:
            raise ConfigurationError("SMTP_HOST is not set")
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.recipients = recipients or {}
        self.timeout = timeout
        self.pacing_sec = pacing_sec
        self._send = send or self._smtp_send

    @classmethod
    def from_settings(cls, settings, pacing_sec: float = 0.1) -> SmtpNotifier:
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.smtp_from,
            recipients=settings.recipients,
            pacing_sec=pacing_sec,
        )

    def recipients_for(self, store: str) -> List[str]:
        return [address for address in self.recipients.get(store, []) if address]

    def _smtp_send(self, sender: str, to: List[str], message: str) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            if self.user:
                server.login(self.user, self.password)
            server.sendmail(sender, to, message)

    def compose(self, record: OrderTrackingRecord, to: List[str]) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = ", ".join(to)
        msg["Subject"] = hold_subject(record)
        msg.attach(MIMEText(hold_body(record), _subtype="plain", _charset="utf-8"))
        return msg

    async def notify(self, record: OrderTrackingRecord) -> Dict[str, Any]:
        store = record.store.value
        to = self.recipients_for(store)
        if not to:
            return {"success": False, "error": f"No recipients configured for store {store}"}
        msg = self.compose(record, to)
        try:
            await asyncio.to_thread(self._send, self.sender, to, msg.as_string())
        except Exception as e:
            logger.error(f"Hold email for order {record.order_number} failed: {e}")
            return {"success": False, "error": str(e) or e.__class__.__name__}
        logger.info(f"Hold email sent for order {record.order_number} to {store} team")
        return {"success": True, "recipients": {"to": to, "store": store}}

    async def notify_hold_orders(self, records: List[OrderTrackingRecord]) -> Dict[str, Any]:
        results: List[Dict[str, Any]] = []
        by_store = {"LVLY": 0, "BL": 0, "Unknown": 0}
        sent = failed = 0

        for index, record in enumerate(records):
            outcome = await self.notify(record)
            results.append({
                "order_number": record.order_number,
                "order_id": record.id,
                "location": record.location,
                "store": record.store.value,
                "success": outcome["success"],
                "error": outcome.get("error"),
            })
            if outcome["success"]:
                sent += 1
                store = record.store.value if record.store.value in by_store else "Unknown"
                by_store[store] += 1
            else:
                failed += 1
            if index < len(records) - 1 and self.pacing_sec:
                await asyncio.sleep(self.pacing_sec)

        logger.info(f"Hold emails: {sent} sent, {failed} failed (LVLY={by_store['LVLY']}, BL={by_store['BL']})")
        return {"totalSent": sent, "totalFailed": failed, "byStore": by_store, "results": results}
