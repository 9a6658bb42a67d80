from .cutoff import (
    CutoffCheck,
    PickupDecision,
    check_next_day_cutoff,
    format_pickup_datetime,
    resolve_pickup_slot,
)
from .timezones import format_hhmm, local_now, utc_offset

__all__ = ["CutoffCheck",
           "PickupDecision",
           "check_next_day_cutoff",
           "format_pickup_datetime",
           "resolve_pickup_slot",
           "format_hhmm",
           "local_now",
           "utc_offset"]
