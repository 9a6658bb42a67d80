from .order_state import (
    OrderStateException,
    mark_booked,
    mark_booking_failed,
    mark_reconciled,
    mark_skipped,
    skip_all_pending,
)

__all__ = [
    "OrderStateException",
    "mark_booked",
    "mark_booking_failed",
    "mark_reconciled",
    "mark_skipped",
    "skip_all_pending",
]
