"""
Purpose: Domain models for one fulfilment run.
What it does:
- Defines core data structures:
- EligibleOrder (a row from the eligible-orders source, already typed)
- ShippingAddress (recipient details used by carrier payloads)
- GiftDetails (card message, sender, packer note)
- OrderTrackingRecord (per-order state carried through every pipeline stage)

Defines enums/constants:
- Store = LVLY | BL (derived from shop id 10 / 6)
- DeliveryType = same-day | next-day
- LogisticsStatus = PENDING | BOOKED | BOOKING_FAILED | SKIPPED
- ReconciliationStatus = Processed | Hold

Rule: No HTTP, no SQL, no stage logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional


class Store(str, Enum):
    LVLY = "LVLY"
    BL = "BL"

    @staticmethod
    def from_shop_id(shop_id: Optional[int]) -> Store:
        return SHOP_ID_STORES.get(shop_id, Store.LVLY)


SHOP_ID_STORES: Dict[Optional[int], Store] = {10: Store.LVLY, 6: Store.BL}


class DeliveryType(str, Enum):
    SAME_DAY = "same-day"
    NEXT_DAY = "next-day"

    @property
    def is_same_day(self) -> bool:
        return self is DeliveryType.SAME_DAY

    @staticmethod
    def from_flag(flag: str) -> DeliveryType:
        # "1" selects the same-day lane, anything else next-day
        return DeliveryType.SAME_DAY if str(flag) == "1" else DeliveryType.NEXT_DAY


class LogisticsStatus(Enum):
    PENDING = "PENDING"
    BOOKED = "BOOKED"
    BOOKING_FAILED = "BOOKING_FAILED"
    SKIPPED = "SKIPPED"


class ReconciliationStatus(str, Enum):
    PROCESSED = "Processed"
    HOLD = "Hold"


@dataclass(frozen=True)
class ShippingAddress:
    name: str = ""
    company: str = ""
    address1: str = ""
    address2: str = ""
    building_name: str = ""
    room_number: str = ""
    suburb: str = ""
    state: str = ""
    postcode: str = ""
    phone: str = ""
    email: str = ""
    residence_type: str = ""
    delivery_notes: str = ""

    @property
    def is_commercial(self) -> bool:
        return self.residence_type != "House/Unit/Apartment"


@dataclass(frozen=True)
class GiftDetails:
    """
    Card and packing text printed on the packing slip and message card.
    """
    card_message: str = ""
    sender_name: str = ""
    recipient_name: str = ""
    packer_note: str = ""

    @property
    def has_message(self) -> bool:
        return bool(self.card_message.strip())


@dataclass(frozen=True)
class EligibleOrder:
    """
    One row returned by the eligible-orders source.
    line_items holds product titles, one entry per ordered line.
    """
    id: int
    order_number: str
    location: str
    store: Store
    delivery_date: date
    line_items: List[str] = field(default_factory=list)
    shipping: ShippingAddress = field(default_factory=ShippingAddress)
    gift: GiftDetails = field(default_factory=GiftDetails)


@dataclass
class OrderTrackingRecord:
    """
    Per-order tracking state for one run.

    Created once at seed time, mutated in place by stages through
    dispatch.state_machines.order_state, discarded when the run ends.
    """

    id: int
    store: Store
    order_number: str
    delivery_date: date
    location: str
    delivery_type: DeliveryType
    line_items: List[str] = field(default_factory=list)
    shipping: ShippingAddress = field(default_factory=ShippingAddress)
    gift: GiftDetails = field(default_factory=GiftDetails)

    # assigned in the batch stage; None when the counter was unavailable
    batch: Optional[int] = None

    logistics_status: LogisticsStatus = LogisticsStatus.PENDING
    logistics_error: Optional[str] = None
    skip_reason: Optional[str] = None
    scheduled_pickup: Optional[str] = None
    carrier_reference: Optional[str] = None
    carrier_response: Optional[Dict[str, Any]] = None

    personalization_status: bool = False
    packing_slip_status: bool = False
    message_card_status: bool = False

    reconciliation_status: Optional[ReconciliationStatus] = None
    notification_sent: Optional[bool] = None

    @staticmethod
    def new(order: EligibleOrder, delivery_type: DeliveryType) -> OrderTrackingRecord:
        return OrderTrackingRecord(
            id=order.id,
            store=order.store,
            order_number=order.order_number,
            delivery_date=order.delivery_date,
            location=order.location,
            delivery_type=delivery_type,
            line_items=list(order.line_items),
            shipping=order.shipping,
            gift=order.gift,
        )

    @property
    def is_booked(self) -> bool:
        return self.logistics_status is LogisticsStatus.BOOKED

    @property
    def is_terminal(self) -> bool:
        return self.logistics_status is not LogisticsStatus.PENDING

    @property
    def failure_reason(self) -> Optional[str]:
        return self.logistics_error or self.skip_reason

    def to_row(self) -> Dict[str, Any]:
        """
        Flat view used by reports and the audit sheet.
        """
        return {
            "id": self.id,
            "store": self.store.value,
            "order_number": self.order_number,
            "delivery_date": self.delivery_date.isoformat(),
            "location": self.location,
            "delivery_type": self.delivery_type.value,
            "batch": self.batch,
            "logistics_status": self.logistics_status.value,
            "logistics_error": self.failure_reason,
            "scheduled_pickup": self.scheduled_pickup,
            "carrier_reference": self.carrier_reference,
            "personalization_status": self.personalization_status,
            "packing_slip_status": self.packing_slip_status,
            "message_card_status": self.message_card_status,
            "reconciliation_status": (
                self.reconciliation_status.value if self.reconciliation_status else None
            ),
            "line_items": ", ".join(self.line_items),
        }
