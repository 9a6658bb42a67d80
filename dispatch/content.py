"""
Purpose: Content generation for booked orders (personalised products, packing slips, message cards).
What it does:
- Tags every artifact with an ArtifactKind when it is created
- Groups artifacts into one document per (kind, location, batch)
- Routes each document to the endpoint of its kind
- Sets per-order content booleans from the artifacts of each kind

Rule: Routing reads the tag, never the payload text. Statuses are only set when
every document call succeeded; otherwise every booked order gets False.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from carriers.documents import DocumentApiError, DocumentClient
from orders.models import OrderTrackingRecord

logger = logging.getLogger(__name__)


class ArtifactKind(str, Enum):
    JARS_LUXE = "jars_luxe"
    JARS_CLASSIC_LARGE = "jars_classic_large"
    PROSECCO = "prosecco"
    CANDLES = "candles"
    PACKING_SLIP = "packing_slips"
    MESSAGE_CARD = "message_cards"

    @property
    def is_personalization(self) -> bool:
        return self in PERSONALIZED_KINDS


PERSONALIZED_KINDS = frozenset({
    ArtifactKind.JARS_LUXE,
    ArtifactKind.JARS_CLASSIC_LARGE,
    ArtifactKind.PROSECCO,
    ArtifactKind.CANDLES,
})

# document template per kind, relative to DOCUMENT_API_BASE_URL
ENDPOINT_PATHS: Dict[ArtifactKind, str] = {
    ArtifactKind.JARS_LUXE: "/ac919e50/474c90b5",
    ArtifactKind.JARS_CLASSIC_LARGE: "/ac919e50/fed759df",
    ArtifactKind.PROSECCO: "/ac919e50/414e6c2e",
    ArtifactKind.PACKING_SLIP: "/ac919e50/04e72138",
    ArtifactKind.MESSAGE_CARD: "/ac919e50/babd4a32",
    ArtifactKind.CANDLES: "/ac919e50/7ec2e86f",
}


def content_endpoints(base_url: str, paths: Optional[Dict[ArtifactKind, str]] = None) -> Dict[ArtifactKind, str]:
    paths = paths or ENDPOINT_PATHS
    base = base_url.rstrip("/")
    return {kind: f"{base}{path}" for kind, path in paths.items()}


def classify_line_item(title: str) -> Optional[ArtifactKind]:
    """
    Personalised product kind for one line item title, None for plain products.
    """
    lowered = (title or "").lower()
    if "jar" in lowered:
        return ArtifactKind.JARS_LUXE if "luxe" in lowered else ArtifactKind.JARS_CLASSIC_LARGE
    if "prosecco" in lowered:
        return ArtifactKind.PROSECCO
    if "candle" in lowered or "plant" in lowered:
        return ArtifactKind.CANDLES
    return None


@dataclass(frozen=True)
class ArtifactItem:
    kind: ArtifactKind
    order_number: str
    location: str
    batch: int
    delivery_date: str
    data: Dict[str, Any] = field(default_factory=dict)


def _packing_slip(record: OrderTrackingRecord) -> Dict[str, Any]:
    shipping = record.shipping
    address = f"{shipping.address1}, {shipping.address2}" if shipping.address2 else shipping.address1
    return {
        "order_number": record.order_number,
        "to_recipient": shipping.name,
        "address": address,
        "products": list(record.line_items),
        "packers_note": record.gift.packer_note,
        "recipient_name": record.gift.recipient_name,
        "from_sender": record.gift.sender_name,
    }


def artifacts_for_record(record: OrderTrackingRecord) -> List[ArtifactItem]:
    def item(kind: ArtifactKind, data: Dict[str, Any]) -> ArtifactItem:
        return ArtifactItem(
            kind=kind,
            order_number=record.order_number,
            location=record.location,
            batch=record.batch,
            delivery_date=record.delivery_date.isoformat(),
            data=data,
        )

    items = [item(ArtifactKind.PACKING_SLIP, _packing_slip(record))]
    if record.gift.has_message:
        items.append(item(ArtifactKind.MESSAGE_CARD, {
            "order_number": record.order_number,
            "message": " ".join(record.gift.card_message.split()),
            "from_sender": record.gift.sender_name,
            "recipient_name": record.gift.recipient_name,
        }))

    seen: Set[ArtifactKind] = set()
    for title in record.line_items:
        kind = classify_line_item(title)
        if kind is None or kind in seen:
            continue
        seen.add(kind)
        items.append(item(kind, {
            "order_number": record.order_number,
            "product": title,
            "message": " ".join(record.gift.card_message.split()),
        }))
    return items


def build_artifacts(records: List[OrderTrackingRecord]) -> List[ArtifactItem]:
    """
    Artifacts for BOOKED records that carry a batch number.
    """
    items: List[ArtifactItem] = []
    for record in records:
        if not record.is_booked:
            continue
        if record.batch is None:
            logger.warning(f"Order {record.order_number} has no batch number, no content generated")
            continue
        items.extend(artifacts_for_record(record))
    return items


@dataclass
class ArtifactDocument:
    kind: ArtifactKind
    location: str
    batch: int
    delivery_date: str
    items: List[ArtifactItem] = field(default_factory=list)

    @property
    def order_numbers(self) -> List[str]:
        return [item.order_number for item in self.items]

    def payload(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "batch": self.batch,
            "delivery_date": self.delivery_date,
            f"{self.kind.value}_data": [item.data for item in self.items],
        }


def group_documents(items: List[ArtifactItem]) -> List[ArtifactDocument]:
    documents: Dict[Tuple[ArtifactKind, str, int], ArtifactDocument] = {}
    for item in items:
        key = (item.kind, item.location, item.batch)
        if key not in documents:
            documents[key] = ArtifactDocument(item.kind, item.location, item.batch, item.delivery_date)
        documents[key].items.append(item)
    return list(documents.values())


@dataclass
class DocumentCall:
    kind: ArtifactKind
    location: str
    batch: int
    success: bool
    order_numbers: List[str] = field(default_factory=list)
    error: Optional[str] = None
    response: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "location": self.location,
            "batch": self.batch,
            "success": self.success,
            "orders": len(self.order_numbers),
            "error": self.error,
        }


@dataclass
class ContentOutcome:
    items: List[ArtifactItem] = field(default_factory=list)
    calls: List[DocumentCall] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(call.success for call in self.calls)

    @property
    def failed_calls(self) -> List[DocumentCall]:
        return [call for call in self.calls if not call.success]

    def order_numbers(self, *kinds: ArtifactKind) -> Set[str]:
        return {item.order_number for item in self.items if item.kind in kinds}

    def summary(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "artifacts": len(self.items),
            "documents": len(self.calls),
            "successful_calls": len(self.calls) - len(self.failed_calls),
            "failed_calls": len(self.failed_calls),
            "errors": [f"{call.kind.value} {call.location}: {call.error}" for call in self.failed_calls],
        }


class ContentGenerator:
    """
    Sends one document per (kind, location, batch) to the endpoint of that kind.
    """

    def __init__(self, documents: DocumentClient, endpoints: Dict[ArtifactKind, str]):
        missing = [kind.value for kind in ArtifactKind if not endpoints.get(kind)]
        if missing:
            raise ValueError(f"Missing endpoint configuration: {', '.join(missing)}")
        self.documents = documents
        self.endpoints = endpoints

    async def generate(self, records: List[OrderTrackingRecord]) -> ContentOutcome:
        outcome = ContentOutcome(items=build_artifacts(records))
        for document in group_documents(outcome.items):
            url = self.endpoints[document.kind]
            try:
                response = await self.documents.post_json(url, document.payload())
            except DocumentApiError as e:
                outcome.calls.append(DocumentCall(
                    document.kind, document.location, document.batch, False,
                    order_numbers=document.order_numbers, error=str(e),
                ))
                continue
            outcome.calls.append(DocumentCall(
                document.kind, document.location, document.batch, True,
                order_numbers=document.order_numbers, response=response,
            ))
        logger.info(f"Content generation: {outcome.summary()}")
        return outcome


def apply_content_statuses(records: List[OrderTrackingRecord], outcome: Optional[ContentOutcome]) -> int:
    """
    Set the three content booleans on BOOKED records. Returns how many records got at least one True.
    """
    succeeded = outcome is not None and outcome.success
    personalised = outcome.order_numbers(*PERSONALIZED_KINDS) if succeeded else set()
    packing_slips = outcome.order_numbers(ArtifactKind.PACKING_SLIP) if succeeded else set()
    message_cards = outcome.order_numbers(ArtifactKind.MESSAGE_CARD) if succeeded else set()

    marked = 0
    for record in records:
        if not record.is_booked:
            continue
        record.personalization_status = record.order_number in personalised
        record.packing_slip_status = record.order_number in packing_slips
        record.message_card_status = record.order_number in message_cards
        if record.personalization_status or record.packing_slip_status or record.message_card_status:
            marked += 1
    return marked
