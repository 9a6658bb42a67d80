"""
Purpose: Carrier-eligibility decisions from cutoff rules.
What it does:
- resolve_pickup_slot(): same-day lane, picks the pickup slot an order can still make
- check_next_day_cutoff(): next-day lane, single cutoff per weekday with an enabled switch
- format_pickup_datetime(): carrier pickup timestamp "YYYY-MM-DD HH:MM:00+HHMM"

Rule: Deterministic given (location, delivery_date, now_local).
"No slot" is a normal outcome returned as a PickupDecision, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from config.cutoffs import (
    NEXT_DAY_RULES,
    SAME_DAY_RULES,
    WEEKDAYS,
    NextDayRules,
    PickupSlot,
    SameDayRules,
)
from .timezones import format_hhmm, utc_offset

NO_RULES = "no pickup rules"
PAST_CUTOFF = "past cutoff"
LANE_DISABLED = "delivery not enabled"


@dataclass(frozen=True)
class PickupDecision:
    """
    Outcome of slot resolution. slot is None when the order cannot be booked this run.
    """
    slot: Optional[PickupSlot] = None
    reason: Optional[str] = None

    @property
    def has_slot(self) -> bool:
        return self.slot is not None

    @property
    def pickup_time(self) -> Optional[str]:
        return self.slot.pickup if self.slot else None

    @staticmethod
    def no_slot(reason: str) -> PickupDecision:
        return PickupDecision(slot=None, reason=reason)


@dataclass(frozen=True)
class CutoffCheck:
    allowed: bool
    reason: Optional[str] = None


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def resolve_pickup_slot(
    location: str,
    delivery_date: date,
    now_local: datetime,
    rules: Optional[SameDayRules] = None,
) -> PickupDecision:
    """
    Pick the pickup slot for a same-day order.

    Parameters
    ----------
    location:
        Fulfilment location name (key of the rule table).
    delivery_date:
        The order's delivery date; its weekday selects the slot list.
    now_local:
        Current wall-clock time in the location's timezone.
    rules:
        Optional override of the static rule table (tests, alternate schedules).

    Future dates always get the first slot. For today, the first slot whose
    cutoff is strictly later than now wins; if none, the order is left out
    of this run.
    """
    rules = SAME_DAY_RULES if rules is None else rules
    slots = rules.get(location, {}).get(weekday_name(delivery_date))
    if not slots:
        return PickupDecision.no_slot(NO_RULES)

    if delivery_date != now_local.date():
        return PickupDecision(slot=slots[0])

    current = format_hhmm(now_local)
    for slot in slots:
        # zero-padded HH:MM compares correctly as strings
        if slot.cutoff > current:
            return PickupDecision(slot=slot)

    return PickupDecision.no_slot(PAST_CUTOFF)


def check_next_day_cutoff(
    location: str,
    delivery_date: date,
    now_local: datetime,
    rules: Optional[NextDayRules] = None,
) -> CutoffCheck:
    rules = NEXT_DAY_RULES if rules is None else rules
    rule = rules.get(location, {}).get(weekday_name(delivery_date))
    if rule is None:
        return CutoffCheck(False, NO_RULES)

    if not rule.enabled:
        return CutoffCheck(False, LANE_DISABLED)

    if delivery_date == now_local.date() and format_hhmm(now_local) >= rule.cutoff_time:
        return CutoffCheck(False, PAST_CUTOFF)

    return CutoffCheck(True)


def format_pickup_datetime(delivery_date: date, pickup: str, location: str) -> str:
    return f"{delivery_date.isoformat()} {pickup}:00{utc_offset(location, delivery_date)}"
