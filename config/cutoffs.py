"""
Purpose: Static cutoff rules for both delivery lanes.
What it does:
- SAME_DAY_RULES: (location, weekday) -> ordered pickup slots, each with a booking cutoff
- NEXT_DAY_RULES: (location, weekday) -> single cutoff with an enabled switch

Rule: No logic here. Slots are evaluated in list order by scheduling.cutoff.
Times are zero-padded "HH:MM" local to the location.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .locations import LOCATIONS

WEEKDAYS: Tuple[str, ...] = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)


@dataclass(frozen=True)
class PickupSlot:
    pickup: str  # courier collection time
    cutoff: str  # last local time an order can still be booked into this slot


@dataclass(frozen=True)
class NextDayCutoff:
    cutoff_time: str
    enabled: bool = True


# location -> weekday -> slots
SameDayRules = Dict[str, Dict[str, List[PickupSlot]]]
NextDayRules = Dict[str, Dict[str, NextDayCutoff]]

_WEEKDAY_SLOTS = [
    PickupSlot(pickup="11:30", cutoff="11:00"),
    PickupSlot(pickup="14:30", cutoff="14:00"),
    PickupSlot(pickup="16:30", cutoff="16:00"),
]

_WEEKEND_SLOTS = [
    PickupSlot(pickup="13:30", cutoff="13:00"),
    PickupSlot(pickup="16:30", cutoff="16:00"),
]


def _same_day_week() -> Dict[str, List[PickupSlot]]:
    week = {day: list(_WEEKDAY_SLOTS) for day in WEEKDAYS[:5]}
    week.update({day: list(_WEEKEND_SLOTS) for day in WEEKDAYS[5:]})
    return week


def _next_day_week() -> Dict[str, NextDayCutoff]:
    week = {day: NextDayCutoff("16:00") for day in WEEKDAYS[:5]}
    week.update({day: NextDayCutoff("13:00") for day in WEEKDAYS[5:]})
    return week


SAME_DAY_RULES: SameDayRules = {location: _same_day_week() for location in LOCATIONS}

NEXT_DAY_RULES: NextDayRules = {location: _next_day_week() for location in LOCATIONS}
