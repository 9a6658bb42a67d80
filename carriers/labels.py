"""
Purpose: Shipping label data for booked orders, and its delivery to the label endpoints.
What it does:
- gopeople_label_fields() / group_gopeople_labels(): GoPeople sheets of 12 per location (gp1..gp12)
- auspost_label_fields() / group_auspost_labels(): one AusPost label request per location
- LabelPublisher: posts the grouped data, downloads AusPost label PDFs and hands them to the asset store

Rule: Works from BOOKED records only. A location whose batch is None is not labelled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from orders.models import OrderTrackingRecord
from .documents import DocumentApiError, DocumentClient
from .payloads import build_auspost_request

logger = logging.getLogger(__name__)

LABELS_PER_SHEET = 12


@dataclass
class LabelOutcome:
    location: str
    success: bool
    batch: Optional[int] = None
    labels: int = 0
    error: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)


# ----------------------------
# GoPeople
# ----------------------------

def gopeople_label_fields(response: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Label fields out of a GoPeople booking result.
    """
    if not response:
        return None
    address_to = response.get("addressTo") or {}
    contacts = address_to.get("contacts") or [{}]
    barcodes = response.get("barcodes") or [{}]
    return {
        "address": address_to.get("address1", ""),
        "suburb": address_to.get("suburb", ""),
        "state": address_to.get("state", ""),
        "postcode": address_to.get("postcode", ""),
        "contactName": contacts[0].get("contactName", ""),
        "barcode": barcodes[0].get("text", ""),
        "jobId": response.get("number", ""),
        "ref": response.get("ref", ""),
    }


def group_gopeople_labels(
    records: List[OrderTrackingRecord],
    batches: Dict[str, Optional[int]],
) -> Dict[str, List[Dict[str, Any]]]:
    """
    {location: [sheet, ...]} where each sheet is
    {location, delivery_date, batch, gp_labels_data: [{gp1: {...}, ..., gp12: {...}}]}
    """
    by_location: Dict[str, List[OrderTrackingRecord]] = {}
    fields_by_location: Dict[str, List[Dict[str, Any]]] = {}
    for record in records:
        if not record.is_booked:
            continue
        fields = gopeople_label_fields(record.carrier_response)
        if fields is None:
            logger.warning(f"Order {record.order_number} has no GoPeople response, no label")
            continue
        by_location.setdefault(record.location, []).append(record)
        fields_by_location.setdefault(record.location, []).append(fields)

    sheets: Dict[str, List[Dict[str, Any]]] = {}
    for location, labels in fields_by_location.items():
        delivery_date = by_location[location][0].delivery_date.isoformat()
        location_sheets = []
        for start in range(0, len(labels), LABELS_PER_SHEET):
            chunk = labels[start:start + LABELS_PER_SHEET]
            location_sheets.append({
                "location": location,
                "delivery_date": delivery_date,
                "batch": batches.get(location),
                "gp_labels_data": [{f"gp{index + 1}": label for index, label in enumerate(chunk)}],
            })
        sheets[location] = location_sheets
    return sheets


# ----------------------------
# AusPost
# ----------------------------

def _joined(lines: Any) -> str:
    if isinstance(lines, list):
        return ", ".join(lines)
    return lines or ""


def _date_only(value: Optional[str]) -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value[:10]


def auspost_label_fields(record: OrderTrackingRecord) -> Optional[Dict[str, Any]]:
    """
    Label fields from the shipment request we sent and the label metadata AusPost returned.
    None when the response carries no label metadata.
    """
    response = record.carrier_response or {}
    shipments = response.get("shipments")
    if not isinstance(shipments, list) or not shipments or not isinstance(shipments[0], dict):
        return None
    shipment = shipments[0]
    items = shipment.get("items")
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return None
    item = items[0]
    metadata = item.get("label_metadata")
    if not isinstance(metadata, dict) or not metadata:
        return None

    payload = build_auspost_request(record).body
    to, sender = payload["to"], payload["from"]
    return {
        "qr": metadata.get("qr_2d_barcode", ""),
        "to": {
            "name": to.get("name", ""),
            "lines": _joined(to.get("lines")),
            "phone": to.get("phone", ""),
            "state": to.get("state", ""),
            "suburb": to.get("suburb", ""),
            "postcode": to.get("postcode", ""),
            "business_name": to.get("business_name", ""),
        },
        "atl": item.get("atl_number", ""),
        "date": _date_only(shipment.get("shipment_creation_date")),
        "from": {
            "name": sender.get("name", ""),
            "lines": _joined(sender.get("lines")),
            "phone": sender.get("phone", ""),
            "state": sender.get("state", ""),
            "suburb": sender.get("suburb", ""),
            "postcode": sender.get("postcode", ""),
            "business_name": sender.get("name", ""),
        },
        "conid": metadata.get("consignment_id", ""),
        "p_port": metadata.get("primary_port", ""),
        "s_port": metadata.get("secondary_port", ""),
        "weight": f"{item['weight']}kg" if item.get("weight") else "",
        "reference": shipment.get("shipment_reference", ""),
        "article_id": metadata.get("article_id", ""),
        "packaging_type": payload["items"][0].get("packaging_type", ""),
        "routing_barcode": metadata.get("routing_barcode", ""),
    }


def group_auspost_labels(
    records: List[OrderTrackingRecord],
    batches: Dict[str, Optional[int]],
) -> Dict[str, Dict[str, Any]]:
    grouped: Dict[str, Dict[str, Any]] = {}
    for record in records:
        if not record.is_booked:
            continue
        fields = auspost_label_fields(record)
        if fields is None:
            logger.warning(f"Order {record.order_number}: missing label metadata in AusPost response")
            continue
        entry = grouped.setdefault(record.location, {
            "location": record.location,
            "delivery_date": record.delivery_date.isoformat(),
            "batch": batches.get(record.location),
            "items": [],
        })
        entry["items"].append(fields)
    return grouped


def auspost_label_filename(location: str, batch: Optional[int]) -> str:
    return f"auspost_labels_{location}_batch_{batch}.pdf"


class LabelPublisher:
    """
    Sends grouped label data to the label endpoints.

    asset_store must provide:
      async upload(delivery_date, location, batch, filename, content, mime_type) -> str
    """

    def __init__(
        self,
        documents: DocumentClient,
        gp_labels_url: str,
        auspost_labels_url: str,
        asset_store=None,
    ):
        self.documents = documents
        self.gp_labels_url = gp_labels_url
        self.auspost_labels_url = auspost_labels_url
        self.asset_store = asset_store

    async def publish_gopeople(
        self,
        records: List[OrderTrackingRecord],
        batches: Dict[str, Optional[int]],
    ) -> List[LabelOutcome]:
        outcomes: List[LabelOutcome] = []
        for location, sheets in group_gopeople_labels(records, batches).items():
            batch = batches.get(location)
            if batch is None:
                outcomes.append(LabelOutcome(location, False, error="No batch number assigned"))
                continue
            labels = sum(len(sheet["gp_labels_data"][0]) for sheet in sheets)
            try:
                responses = [await self.documents.post_json(self.gp_labels_url, sheet) for sheet in sheets]
            except DocumentApiError as e:
                outcomes.append(LabelOutcome(location, False, batch=batch, labels=labels, error=str(e)))
                continue
            outcomes.append(LabelOutcome(location, True, batch=batch, labels=labels, detail={"responses": responses}))
        return outcomes

    async def publish_auspost(
        self,
        records: List[OrderTrackingRecord],
        batches: Dict[str, Optional[int]],
    ) -> List[LabelOutcome]:
        outcomes: List[LabelOutcome] = []
        for location, data in group_auspost_labels(records, batches).items():
            batch = batches.get(location)
            labels = len(data["items"])
            if batch is None:
                outcomes.append(LabelOutcome(location, False, labels=labels, error="No batch number assigned"))
                continue
            try:
                response = await self.documents.post_json(self.auspost_labels_url, data)
                label_url = response.get("label_url")
                detail: Dict[str, Any] = {"response": response}
                if label_url and self.asset_store is not None:
                    pdf = await self.documents.get_bytes(label_url)
                    filename = auspost_label_filename(location, batch)
                    detail["file_id"] = await self.asset_store.upload(
                        data["delivery_date"], location, batch, filename, pdf, "application/pdf"
                    )
                    detail["filename"] = filename
            except DocumentApiError as e:
                outcomes.append(LabelOutcome(location, False, batch=batch, labels=labels, error=str(e)))
                continue
            except Exception as e:
                # upload failures stay with this location
                logger.error(f"AusPost label upload failed for {location}: {e}")
                outcomes.append(LabelOutcome(location, False, batch=batch, labels=labels, error=str(e)))
                continue
            outcomes.append(LabelOutcome(location, True, batch=batch, labels=labels, detail=detail))
        return outcomes
