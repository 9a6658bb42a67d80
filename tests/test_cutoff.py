import pytest
from datetime import date, datetime, timezone

from config.cutoffs import NextDayCutoff, PickupSlot
from scheduling.cutoff import (
    LANE_DISABLED,
    NO_RULES,
    PAST_CUTOFF,
    check_next_day_cutoff,
    format_pickup_datetime,
    resolve_pickup_slot,
)
from scheduling.timezones import format_hhmm, local_now, utc_offset

TUESDAY = date(2025, 6, 3)


@pytest.fixture
def melbourne_rules():
    # Two slots on a Tuesday, evaluated in list order
    return {
        "Melbourne": {
            "Tuesday": [
                PickupSlot(pickup="10:00", cutoff="09:00"),
                PickupSlot(pickup="14:00", cutoff="13:00"),
            ]
        }
    }


def at(day: date, hhmm: str) -> datetime:
    hour, minute = hhmm.split(":")
    return datetime(day.year, day.month, day.day, int(hour), int(minute))


def test_first_slot_with_later_cutoff_wins(melbourne_rules):
    """
    09:30 is past the first cutoff (09:00) but before the second (13:00),
    so the order goes out on the 14:00 pickup.
    """
    decision = resolve_pickup_slot("Melbourne", TUESDAY, at(TUESDAY, "09:30"), melbourne_rules)

    assert decision.has_slot
    assert decision.pickup_time == "14:00"


def test_no_slot_after_last_cutoff(melbourne_rules):
    decision = resolve_pickup_slot("Melbourne", TUESDAY, at(TUESDAY, "13:30"), melbourne_rules)

    assert not decision.has_slot
    assert decision.pickup_time is None
    assert decision.reason == PAST_CUTOFF


def test_cutoff_is_exclusive(melbourne_rules):
    # exactly at the cutoff the slot is gone
    decision = resolve_pickup_slot("Melbourne", TUESDAY, at(TUESDAY, "09:00"), melbourne_rules)
    assert decision.pickup_time == "14:00"


def test_future_date_takes_first_slot(melbourne_rules):
    """
    A delivery date that is not today ignores the wall clock.
    """
    monday_evening = at(date(2025, 6, 2), "23:59")
    decision = resolve_pickup_slot("Melbourne", TUESDAY, monday_evening, melbourne_rules)

    assert decision.pickup_time == "10:00"


def test_missing_rules_give_no_slot(melbourne_rules):
    wednesday = date(2025, 6, 4)
    decision = resolve_pickup_slot("Melbourne", wednesday, at(wednesday, "08:00"), melbourne_rules)
    assert decision.reason == NO_RULES

    decision = resolve_pickup_slot("Hobart", TUESDAY, at(TUESDAY, "08:00"), melbourne_rules)
    assert decision.reason == NO_RULES


def test_default_rules_cover_every_location():
    from config.locations import LOCATIONS

    for location in LOCATIONS:
        decision = resolve_pickup_slot(location, TUESDAY, at(TUESDAY, "06:00"))
        assert decision.pickup_time == "11:30"


def test_next_day_cutoff():
    rules = {
        "Sydney": {
            "Tuesday": NextDayCutoff("16:00"),
            "Wednesday": NextDayCutoff("16:00", enabled=False),
        }
    }

    # 1. Ahead of the cutoff on the delivery day
    assert check_next_day_cutoff("Sydney", TUESDAY, at(TUESDAY, "15:59"), rules).allowed

    # 2. At or after the cutoff
    check = check_next_day_cutoff("Sydney", TUESDAY, at(TUESDAY, "16:00"), rules)
    assert not check.allowed
    assert check.reason == PAST_CUTOFF

    # 3. Delivery day after today is always allowed when enabled
    assert check_next_day_cutoff("Sydney", TUESDAY, at(date(2025, 6, 2), "20:00"), rules).allowed

    # 4. Disabled lane and missing rule
    wednesday = date(2025, 6, 4)
    assert check_next_day_cutoff("Sydney", wednesday, at(TUESDAY, "08:00"), rules).reason == LANE_DISABLED
    assert check_next_day_cutoff("Perth", TUESDAY, at(TUESDAY, "08:00"), rules).reason == NO_RULES


def test_utc_offset_month_heuristic():
    assert utc_offset("Melbourne", date(2025, 1, 15)) == "+1100"
    assert utc_offset("Melbourne", date(2025, 6, 15)) == "+1000"
    assert utc_offset("Adelaide", date(2025, 12, 1)) == "+1030"
    assert utc_offset("Brisbane", date(2025, 1, 15)) == "+1000"
    assert utc_offset("Perth", date(2025, 1, 15)) == "+0800"
    assert utc_offset("Nowhere", date(2025, 1, 15)) == "+1000"


def test_format_pickup_datetime():
    assert format_pickup_datetime(TUESDAY, "14:00", "Melbourne") == "2025-06-03 14:00:00+1000"
    assert format_pickup_datetime(date(2025, 12, 2), "11:30", "Perth") == "2025-12-02 11:30:00+0800"


def test_local_now_uses_location_zone():
    now_utc = datetime(2025, 6, 3, 2, 30, tzinfo=timezone.utc)

    assert format_hhmm(local_now("Melbourne", now_utc)) == "12:30"
    assert format_hhmm(local_now("Perth", now_utc)) == "10:30"
    assert local_now("Nowhere", now_utc) is None
