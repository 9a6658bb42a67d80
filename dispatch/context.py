"""
Purpose: Everything one pipeline run is parameterised by, and everything it owns.
What it does:
- StageFlags: the six-position bit string that switches stages on/off
- RunParameters: date, delivery type, store selector, filters, flags, manual options
- PacingPolicy: fixed delays between sequential carrier calls
- RunContext: the ledger, prior/final counters, stage results and collaborator outputs of one run

Rule: No I/O here. The orchestrator builds one RunContext per execute() and drops it afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from config.locations import LOCATIONS, MELBOURNE, is_known_location
from orders.ledger import OrderLedger
from orders.models import DeliveryType
from orders.source import OrderSelection
from scheduling.timezones import local_now

from .stages import StageResult

logger = logging.getLogger(__name__)


# ----------------------------
# Stage flags
# ----------------------------

FLAG_POSITIONS = ("logistics", "content", "labels", "tally_submission", "reconciliation", "audit_sheets")
DEFAULT_FLAGS = "111111"


@dataclass(frozen=True)
class StageFlags:
    logistics: bool = True
    content: bool = True
    labels: bool = True
    tally_submission: bool = True
    reconciliation: bool = True
    audit_sheets: bool = True

    @staticmethod
    def parse(raw: Optional[str]) -> StageFlags:
        """
        "101101" -> logistics, labels, tally_submission, audit_sheets on.

        Anything that is not a string of 0/1 (or longer than six) falls back to
        all-on. Shorter strings leave the missing trailing stages off: every
        position keeps its meaning, so "1101" never switches on a stage the
        caller did not name. The older five-stage expansion that inserted
        enabled stages into 2-4 character values is not carried over.
        """
        value = (raw or "").strip()
        if not value or len(value) > len(FLAG_POSITIONS) or set(value) - {"0", "1"}:
            if raw:
                logger.warning(f"Invalid stage flags {raw!r}, using default {DEFAULT_FLAGS}")
            value = DEFAULT_FLAGS
        value = value.ljust(len(FLAG_POSITIONS), "0")
        return StageFlags(**{name: value[i] == "1" for i, name in enumerate(FLAG_POSITIONS)})

    def as_string(self) -> str:
        return "".join("1" if getattr(self, name) else "0" for name in FLAG_POSITIONS)


# ----------------------------
# Run parameters
# ----------------------------

STORE_SHOP_IDS: Dict[str, Tuple[int, ...]] = {
    "1": (10,),     # LVLY
    "2": (6,),      # BL
    "3": (10, 6),   # both
}
DEFAULT_STORE = "1"


def parse_store(raw: Optional[str]) -> Tuple[str, Tuple[int, ...]]:
    value = str(raw).strip() if raw is not None else ""
    if value not in STORE_SHOP_IDS:
        if value:
            logger.warning(f"Invalid store selector {raw!r}, using {DEFAULT_STORE} (LVLY)")
        value = DEFAULT_STORE
    return value, STORE_SHOP_IDS[value]


def parse_locations(raw: Optional[str]) -> Tuple[str, ...]:
    """
    Comma separated location names. Unknown names are dropped; nothing valid means no filter.
    """
    if not raw:
        return ()
    names = [name.strip() for name in raw.split(",") if name.strip()]
    invalid = [name for name in names if not is_known_location(name)]
    if invalid:
        logger.warning(f"Ignoring unknown location(s): {', '.join(invalid)}")
    return tuple(name for name in names if is_known_location(name))


def parse_order_numbers(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(number.strip() for number in raw.split(",") if number.strip())


def today_in_melbourne(now_utc: Optional[datetime] = None) -> date:
    return local_now(MELBOURNE, now_utc).date()


@dataclass(frozen=True)
class RunParameters:
    delivery_date: date
    delivery_type: DeliveryType = DeliveryType.SAME_DAY
    store: str = DEFAULT_STORE
    shop_ids: Tuple[int, ...] = (10,)
    locations: Tuple[str, ...] = ()
    order_numbers: Tuple[str, ...] = ()
    flags: StageFlags = StageFlags()

    # manual options
    manual: bool = False
    pickup_timeframe: Optional[str] = None  # "YYYY-MM-DD HH:MM:00+HHMM", bypasses slot resolution
    compact: bool = False

    @staticmethod
    def parse(
        *,
        date_value: Optional[str] = None,
        is_same_day: Optional[str] = None,
        store: Optional[str] = None,
        locations: Optional[str] = None,
        order_numbers: Optional[str] = None,
        flags: Optional[str] = None,
        pickup_timeframe: Optional[str] = None,
        compact: bool = False,
        now_utc: Optional[datetime] = None,
    ) -> RunParameters:
        """
        Build parameters from raw strings (command line, job payload).
        Explicit order numbers switch the run to manual mode.
        """
        store_value, shop_ids = parse_store(store)
        numbers = parse_order_numbers(order_numbers)
        return RunParameters(
            delivery_date=_parse_date(date_value, now_utc),
            delivery_type=DeliveryType.from_flag(is_same_day if is_same_day is not None else "1"),
            store=store_value,
            shop_ids=shop_ids,
            locations=parse_locations(locations),
            order_numbers=numbers,
            flags=StageFlags.parse(flags),
            manual=bool(numbers),
            pickup_timeframe=pickup_timeframe or None,
            compact=compact,
        )

    @property
    def effective_locations(self) -> Tuple[str, ...]:
        return self.locations or LOCATIONS

    def selection(self) -> OrderSelection:
        return OrderSelection(
            delivery_date=self.delivery_date,
            delivery_type=self.delivery_type,
            shop_ids=self.shop_ids,
            locations=self.locations,
            order_numbers=self.order_numbers,
            manual=self.manual,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.delivery_date.isoformat(),
            "delivery_type": self.delivery_type.value,
            "store": self.store,
            "shop_ids": list(self.shop_ids),
            "locations": list(self.locations),
            "order_numbers": list(self.order_numbers),
            "flags": self.flags.as_string(),
            "manual": self.manual,
            "pickup_timeframe": self.pickup_timeframe,
        }


def _parse_date(value: Optional[str], now_utc: Optional[datetime]) -> date:
    if not value:
        return today_in_melbourne(now_utc)
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.warning(f"Invalid date {value!r}, using today's date")
        return today_in_melbourne(now_utc)


# ----------------------------
# Pacing
# ----------------------------

@dataclass(frozen=True)
class PacingPolicy:
    """
    Fixed delays (seconds) between sequential external calls.
    """
    gopeople_sec: float = 0.1
    auspost_sec: float = 0.2
    notification_sec: float = 0.1

    def validate(self) -> None:
        if min(self.gopeople_sec, self.auspost_sec, self.notification_sec) < 0:
            raise ValueError("pacing delays must be >= 0")

    def for_delivery_type(self, delivery_type: DeliveryType) -> float:
        return self.gopeople_sec if delivery_type.is_same_day else self.auspost_sec


def default_pacing_policy() -> PacingPolicy:
    p = PacingPolicy()
    p.validate()
    return p


def no_pacing() -> PacingPolicy:
    return PacingPolicy(gopeople_sec=0.0, auspost_sec=0.0, notification_sec=0.0)


# ----------------------------
# Run context
# ----------------------------

@dataclass
class RunContext:
    params: RunParameters
    ledger: OrderLedger = field(default_factory=OrderLedger)
    prior_counters: Dict[str, Optional[int]] = field(default_factory=dict)
    final_counters: Dict[str, Optional[int]] = field(default_factory=dict)
    stage_results: List[StageResult] = field(default_factory=list)
    outputs: Dict[str, Any] = field(default_factory=dict)  # collaborator results by stage name
    seed_failed: bool = False
    seed_reason: Optional[str] = None

    def record(self, result: StageResult) -> StageResult:
        self.stage_results.append(result)
        return result

    def result_for(self, name: str) -> Optional[StageResult]:
        for result in self.stage_results:
            if result.name == name:
                return result
        return None

    @property
    def batches_assigned(self) -> bool:
        return any(value is not None for value in self.final_counters.values())
