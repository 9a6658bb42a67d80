from typing import List, Optional

from orders.models import LogisticsStatus, OrderTrackingRecord, ReconciliationStatus


class OrderStateException(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


def _require_pending(record: OrderTrackingRecord, target: LogisticsStatus) -> None:
    if record.logistics_status is not LogisticsStatus.PENDING:
        raise OrderStateException(
            f"Cannot transition order {record.order_number} to {target.value} from {record.logistics_status.value}"
        )


def mark_booked(
    record: OrderTrackingRecord,
    *,
    carrier_reference: Optional[str] = None,
    scheduled_pickup: Optional[str] = None,
    response: Optional[dict] = None,
) -> OrderTrackingRecord:
    """
    Called when the carrier accepted the booking. Only BOOKED orders move on to content stages.
    """
    _require_pending(record, LogisticsStatus.BOOKED)
    record.logistics_status = LogisticsStatus.BOOKED
    record.carrier_reference = carrier_reference
    record.scheduled_pickup = scheduled_pickup
    record.carrier_response = response
    record.logistics_error = None
    return record


def mark_booking_failed(record: OrderTrackingRecord, error: str, *, scheduled_pickup: Optional[str] = None) -> OrderTrackingRecord:
    _require_pending(record, LogisticsStatus.BOOKING_FAILED)
    record.logistics_status = LogisticsStatus.BOOKING_FAILED
    record.logistics_error = error
    record.scheduled_pickup = scheduled_pickup
    return record


def mark_skipped(record: OrderTrackingRecord, reason: str) -> OrderTrackingRecord:
    """
    Not attempted this run (stage flag off, past cutoff, no rules). Not an error.
    """
    _require_pending(record, LogisticsStatus.SKIPPED)
    record.logistics_status = LogisticsStatus.SKIPPED
    record.skip_reason = reason
    return record


def skip_all_pending(records: List[OrderTrackingRecord], reason: str) -> List[OrderTrackingRecord]:
    """
    Emergency fallback when the logistics stage dies part way: whatever was not
    attempted yet is closed out so every record ends terminal.
    """
    skipped = []
    for record in records:
        if record.logistics_status is LogisticsStatus.PENDING:
            skipped.append(mark_skipped(record, reason))
    return skipped


def mark_reconciled(record: OrderTrackingRecord, status: ReconciliationStatus) -> OrderTrackingRecord:
    if not record.is_terminal:
        raise OrderStateException(f"Order {record.order_number} is still PENDING and cannot be reconciled")
    record.reconciliation_status = status
    return record
