"""
Purpose: Carrier request bodies built from tracking records.
What it does:
- build_gopeople_request(): GoPeople /book/instant job (addressFrom, addressTo, parcels, pickUpDate)
- build_auspost_request(): AusPost shipment (from, to, items)
- map_state_to_code(): "Victoria" -> "VIC"

Rule: Pure shaping. No HTTP and no eligibility decisions here.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from config.locations import MELBOURNE, PICKUP_ADDRESSES, PickupAddress
from orders.models import OrderTrackingRecord, ShippingAddress
from .base import BookingRequest


@dataclass(frozen=True)
class GoPeopleParcel:
    type: str = "custom"
    number: int = 1
    width: int = 10  # cm
    height: int = 10
    length: int = 10
    weight: int = 5  # kg


@dataclass(frozen=True)
class GoPeopleDefaults:
    description: str = "Giftbox"
    atl: bool = True
    id_check_required: bool = False
    send_update_sms: bool = False
    send_update_email: bool = False
    ref_prefix: str = "LV"
    parcel: GoPeopleParcel = GoPeopleParcel()


@dataclass(frozen=True)
class AusPostItemDefaults:
    product_id: str = "FPP"
    packaging_type: str = "CTN"
    length: str = "40"
    height: str = "15"
    width: str = "15"
    weight: str = "3"
    authority_to_leave: bool = True
    allow_partial_delivery: bool = False


STATE_CODES = {
    "VICTORIA": "VIC",
    "NEW SOUTH WALES": "NSW",
    "QUEENSLAND": "QLD",
    "SOUTH AUSTRALIA": "SA",
    "WESTERN AUSTRALIA": "WA",
    "TASMANIA": "TAS",
    "NORTHERN TERRITORY": "NT",
    "AUSTRALIAN CAPITAL TERRITORY": "ACT",
}


def map_state_to_code(state: str) -> str:
    if not state:
        return ""
    upper = state.strip().upper()
    if upper in STATE_CODES.values():
        return upper
    # unknown names pass through unchanged
    return STATE_CODES.get(upper, state)


def _pickup_address(location: str) -> PickupAddress:
    return PICKUP_ADDRESSES.get(location) or PICKUP_ADDRESSES[MELBOURNE]


def _street(shipping: ShippingAddress) -> str:
    if shipping.address2:
        return f"{shipping.address1}, {shipping.address2}"
    return shipping.address1


def _unit(shipping: ShippingAddress) -> str:
    if shipping.building_name:
        if shipping.room_number:
            return f"{shipping.room_number}, {shipping.building_name}"
        return shipping.building_name
    return shipping.room_number


def build_gopeople_request(
    record: OrderTrackingRecord,
    pickup_datetime: str,
    defaults: GoPeopleDefaults = GoPeopleDefaults(),
) -> BookingRequest:
    origin = _pickup_address(record.location)
    shipping = record.shipping
    body: Dict[str, Any] = {
        "addressFrom": {
            "unit": origin.unit,
            "address1": origin.address1,
            "suburb": origin.suburb,
            "state": origin.state,
            "postcode": origin.postcode,
            "isCommercial": origin.is_commercial,
            "companyName": origin.company_name,
            "contacts": [{
                "contactName": origin.contact.name,
                "contactNumber": origin.contact.number,
                "sendUpdateSMS": False,
                "contactEmail": origin.contact.email,
                "sendUpdateEmail": False,
            }],
        },
        "addressTo": {
            "unit": _unit(shipping),
            "address1": _street(shipping),
            "suburb": shipping.suburb,
            "state": shipping.state,
            "postcode": shipping.postcode,
            "isCommercial": shipping.is_commercial,
            "companyName": shipping.company,
            "contacts": [{
                "contactName": shipping.name,
                "contactNumber": shipping.phone,
                "sendUpdateSMS": defaults.send_update_sms,
                "contactEmail": shipping.email,
                "sendUpdateEmail": defaults.send_update_email,
            }],
        },
        "parcels": [asdict(defaults.parcel)],
        "pickUpDate": pickup_datetime,
        "description": defaults.description,
        "note": shipping.delivery_notes,
        "ref": f"{defaults.ref_prefix}{record.order_number}",
        "ref2": "",
        "atl": defaults.atl,
        "idCheckRequired": defaults.id_check_required,
        "collectPointId": "",
    }
    return BookingRequest(
        order_number=record.order_number,
        store=record.store,
        location=record.location,
        body=body,
        scheduled_pickup=pickup_datetime,
    )


def _to_lines(shipping: ShippingAddress) -> List[str]:
    lines = [line for line in (shipping.building_name, shipping.room_number, _street(shipping)) if line]
    return lines or ["Address not provided"]


def build_auspost_request(
    record: OrderTrackingRecord,
    item_defaults: AusPostItemDefaults = AusPostItemDefaults(),
) -> BookingRequest:
    origin = _pickup_address(record.location)
    shipping = record.shipping
    item = {"item_reference": record.order_number}
    item.update(asdict(item_defaults))

    body: Dict[str, Any] = {
        "shipment_reference": record.order_number,
        "customer_reference_1": record.order_number,
        "customer_reference_2": "",
        "generate_label_metadata": True,
        "from": {
            "name": origin.company_name,
            "lines": origin.lines(),
            "suburb": origin.suburb,
            "state": origin.state,
            "postcode": origin.postcode,
            "phone": origin.contact.number,
            "email": origin.email,
        },
        "to": {
            "name": shipping.name,
            "business_name": shipping.company,
            "lines": _to_lines(shipping),
            "suburb": shipping.suburb,
            "state": map_state_to_code(shipping.state),
            "postcode": shipping.postcode,
            "phone": shipping.phone,
            "email": shipping.email,
        },
        "items": [item],
    }
    return BookingRequest(
        order_number=record.order_number,
        store=record.store,
        location=record.location,
        body=body,
    )
