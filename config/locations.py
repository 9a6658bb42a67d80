"""
Purpose: Static per-location reference data.
What it does:
- Lists the fulfilment locations the run knows about
- Timezone table (fixed vs daylight-saving offsets)
- Pickup ("from") addresses for each carrier
- AusPost account numbers per store and location

Rule: Data only. Scheduling and payload logic read from here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

MELBOURNE = "Melbourne"
SYDNEY = "Sydney"
PERTH = "Perth"
ADELAIDE = "Adelaide"
BRISBANE = "Brisbane"

LOCATIONS: Tuple[str, ...] = (MELBOURNE, SYDNEY, PERTH, ADELAIDE, BRISBANE)

DEFAULT_UTC_OFFSET = "+1000"


@dataclass(frozen=True)
class LocationTimezone:
    standard_offset: str  # "+HHMM"
    daylight_offset: str
    timezone: str
    has_dst: bool


LOCATION_TIMEZONES: Dict[str, LocationTimezone] = {
    MELBOURNE: LocationTimezone("+1000", "+1100", "Australia/Melbourne", True),
    SYDNEY: LocationTimezone("+1000", "+1100", "Australia/Sydney", True),
    BRISBANE: LocationTimezone("+1000", "+1000", "Australia/Brisbane", False),
    ADELAIDE: LocationTimezone("+0930", "+1030", "Australia/Adelaide", True),
    PERTH: LocationTimezone("+0800", "+0800", "Australia/Perth", False),
}


@dataclass(frozen=True)
class PickupContact:
    name: str
    number: str
    email: str = ""


@dataclass(frozen=True)
class PickupAddress:
    """
    Warehouse address used as the sender for every carrier booking out of a location.
    """
    company_name: str
    unit: str
    address1: str
    suburb: str
    state: str
    postcode: str
    contact: PickupContact
    email: str = ""
    is_commercial: bool = True

    def lines(self) -> List[str]:
        # AusPost wants a single street line, unit folded in
        if self.unit:
            return [f"{self.unit}, {self.address1}"]
        return [self.address1]


PICKUP_ADDRESSES: Dict[str, PickupAddress] = {
    MELBOURNE: PickupAddress(
        company_name="Lvly Melbourne",
        unit="",
        address1="15 Cochranes Road",
        suburb="MOORABBIN",
        state="VIC",
        postcode="3189",
        contact=PickupContact("Lvly", "0390710475"),
        email="melbourne@lvly.com.au",
    ),
    SYDNEY: PickupAddress(
        company_name="Lvly Sydney",
        unit="Unit 1",
        address1="22-28 Mandible St",
        suburb="Alexandria",
        state="NSW",
        postcode="2015",
        contact=PickupContact("Lvly", "0390710475"),
        email="sydney@lvly.com.au",
    ),
    PERTH: PickupAddress(
        company_name="Lvly Perth",
        unit="4",
        address1="35 Colin Jamieson Dr",
        suburb="Welshpool",
        state="WA",
        postcode="6106",
        contact=PickupContact("Lvly", "0390712481"),
        email="perth@lvly.com.au",
    ),
    ADELAIDE: PickupAddress(
        company_name="Lvly Adelaide",
        unit="",
        address1="295 The Parade",
        suburb="Beulah Park",
        state="SA",
        postcode="5067",
        contact=PickupContact("Lvly", "0390712481"),
        email="adelaide@lvly.com.au",
    ),
    BRISBANE: PickupAddress(
        company_name="Lvly Brisbane",
        unit="2",
        address1="25 Unwin St",
        suburb="Moorooka",
        state="QLD",
        postcode="4105",
        contact=PickupContact("Lvly", "0390710475"),
        email="brisbane@lvly.com.au",
    ),
}


@dataclass(frozen=True)
class AusPostAccount:
    """
    Per-store AusPost contract. Authorization comes from the environment (Settings).
    """
    store: str
    account_numbers: Dict[str, str] = field(default_factory=dict)

    def account_for(self, location: str) -> Optional[str]:
        return self.account_numbers.get(location)


AUSPOST_ACCOUNTS: Dict[str, AusPostAccount] = {
    "LVLY": AusPostAccount("LVLY", {location: "01416548" for location in LOCATIONS}),
    "BL": AusPostAccount("BL", {location: "01416548" for location in LOCATIONS}),
}


def is_known_location(location: Optional[str]) -> bool:
    return location in LOCATIONS
