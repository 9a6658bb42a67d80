"""
Purpose: Eligible-orders source (the relational data collaborator).
What it does:
- OrderSelection: what one run asks for (date, lane, stores, locations, explicit order numbers, mode)
- build_eligible_orders_query(): parameterised SQL text for that selection
- rows_to_orders(): typed EligibleOrder rows, de-duplicated by id
- SqlEligibleOrdersSource: runs the query on an async SQLAlchemy engine

Row-limit policy:
- automatic runs take at most ROW_CAP_AUTOMATIC orders per location,
  business addresses first, newest first inside a priority band
- manual runs (explicit order numbers) are uncapped

Rule: Only unprocessed orders (process_status IS NULL) are ever eligible.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql.elements import TextClause

from config.locations import LOCATIONS
from .models import DeliveryType, EligibleOrder, GiftDetails, ShippingAddress, Store

logger = logging.getLogger(__name__)

ROW_CAP_AUTOMATIC = 20

# ASCII unit separator between line-item titles; product titles may contain commas
LINE_ITEM_SEPARATOR = "\x1f"

# residence types ranked for the per-location cap; lower books first
RESIDENCE_PRIORITY = (
    "Office/Business",
    "Office/business",
    "School",
    "Hospital (patient)",
    "Hospital (employee)",
    "University (student residence)",
    "University (staff)",
    "Hotel/Retirement Village",
    "House/Unit/Apartment",
)


class SourceUnavailable(Exception):
    """Raised when the eligible-orders query cannot be executed (connection or SQL failure)."""
    pass


@dataclass(frozen=True)
class OrderSelection:
    delivery_date: date
    delivery_type: DeliveryType
    shop_ids: Tuple[int, ...] = (10,)
    locations: Tuple[str, ...] = ()
    order_numbers: Tuple[str, ...] = ()
    manual: bool = False

    @property
    def row_cap(self) -> Optional[int]:
        return None if self.manual else ROW_CAP_AUTOMATIC

    @property
    def effective_locations(self) -> Tuple[str, ...]:
        return self.locations or LOCATIONS


_PRIORITY_CASE = "\n".join(
    f"                    WHEN '{residence}' THEN {rank}"
    for rank, residence in enumerate(RESIDENCE_PRIORITY, start=1)
)

_BASE_QUERY = f"""
SELECT
    so.id,
    so.order_number,
    so.shop_id,
    so.email,
    sfl.location_name,
    sode.delivery_date,
    sode.building_name,
    sode.room_number,
    sode.residence_type,
    sode.delivery_instructions,
    sode.sender_name,
    sode.recipient_name,
    sode.packer_note,
    so.note AS card_message,
    sos.name,
    sos.company,
    sos.address1,
    sos.address2,
    sos.city,
    sos.province,
    sos.zip,
    sos.phone,
    (SELECT GROUP_CONCAT(DISTINCT sp2.title ORDER BY sp2.title SEPARATOR '{LINE_ITEM_SEPARATOR}')
       FROM shopify_order_products sop2
       LEFT JOIN shopify_products sp2 ON sp2.variant_id = sop2.variant_id
      WHERE sop2.order_id = so.id) AS order_products
FROM (
    SELECT
        so.id,
        ROW_NUMBER() OVER (
            PARTITION BY sfl.location_name
            ORDER BY
                CASE sode.residence_type
{_PRIORITY_CASE}
                    ELSE {len(RESIDENCE_PRIORITY) + 1}
                END,
                so.created_at DESC
        ) AS rn
    FROM shopify_orders so
    LEFT JOIN shopify_fulfillment_locations sfl ON so.fulfillment_location_id = sfl.id
    LEFT JOIN shopify_order_additional_details sode ON so.id = sode.order_id
    WHERE so.shop_id IN :shop_ids
      AND sode.delivery_date = :delivery_date
      AND so.process_status IS NULL
      AND sode.is_same_day = :is_same_day
      AND sfl.location_name IN :locations
      {{order_filter}}
) ranked_orders
JOIN shopify_orders so ON ranked_orders.id = so.id
LEFT JOIN shopify_order_additional_details sode ON so.id = sode.order_id
LEFT JOIN shopify_order_shipping sos ON so.id = sos.order_id
LEFT JOIN shopify_fulfillment_locations sfl ON so.fulfillment_location_id = sfl.id
{{row_cap_filter}}
ORDER BY sfl.location_name, so.created_at DESC
"""


def build_eligible_orders_query(selection: OrderSelection) -> Tuple[TextClause, Dict[str, Any]]:
    """
    Build the eligible-orders statement and its bind parameters.
    """
    params: Dict[str, Any] = {
        "shop_ids": list(selection.shop_ids),
        "delivery_date": selection.delivery_date.isoformat(),
        "is_same_day": 1 if selection.delivery_type.is_same_day else 0,
        "locations": list(selection.effective_locations),
    }
    expanding = ["shop_ids", "locations"]

    order_filter = ""
    if selection.order_numbers:
        order_filter = "AND so.order_number IN :order_numbers"
        params["order_numbers"] = list(selection.order_numbers)
        expanding.append("order_numbers")

    row_cap_filter = ""
    if selection.row_cap is not None:
        row_cap_filter = "WHERE ranked_orders.rn <= :row_cap"
        params["row_cap"] = selection.row_cap

    sql = _BASE_QUERY.format(order_filter=order_filter, row_cap_filter=row_cap_filter)
    statement = text(sql).bindparams(*[bindparam(name, expanding=True) for name in expanding])
    return statement, params


def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def split_line_items(order_products: Optional[str]) -> List[str]:
    if not order_products:
        return []
    return [item.strip() for item in order_products.split(LINE_ITEM_SEPARATOR) if item.strip()]


def _text(row: Mapping[str, Any], key: str) -> str:
    value = row.get(key)
    return "" if value is None else str(value)


def row_to_order(row: Mapping[str, Any]) -> Optional[EligibleOrder]:
    """
    Convert one result row. Rows without id, order number or location are unusable and dropped.
    """
    if not row.get("id") or not row.get("order_number") or not row.get("location_name"):
        return None

    delivery_date = _as_date(row.get("delivery_date"))
    if delivery_date is None:
        return None

    shipping = ShippingAddress(
        name=_text(row, "name"),
        company=_text(row, "company"),
        address1=_text(row, "address1"),
        address2=_text(row, "address2"),
        building_name=_text(row, "building_name"),
        room_number=_text(row, "room_number"),
        suburb=_text(row, "city"),
        state=_text(row, "province"),
        postcode=_text(row, "zip"),
        phone=_text(row, "phone"),
        email=_text(row, "email"),
        residence_type=_text(row, "residence_type"),
        delivery_notes=_text(row, "delivery_instructions"),
    )
    return EligibleOrder(
        id=int(row["id"]),
        order_number=str(row["order_number"]),
        location=str(row["location_name"]),
        store=Store.from_shop_id(row.get("shop_id")),
        delivery_date=delivery_date,
        line_items=split_line_items(row.get("order_products")),
        shipping=shipping,
        gift=GiftDetails(
            card_message=_text(row, "card_message"),
            sender_name=_text(row, "sender_name"),
            recipient_name=_text(row, "recipient_name"),
            packer_note=_text(row, "packer_note"),
        ),
    )


def rows_to_orders(rows: Iterable[Mapping[str, Any]]) -> List[EligibleOrder]:
    orders: List[EligibleOrder] = []
    seen = set()
    for row in rows:
        order = row_to_order(row)
        if order is None or order.id in seen:
            continue
        seen.add(order.id)
        orders.append(order)
    return orders


class SqlEligibleOrdersSource:
    """
    Eligible-orders source backed by the shop database.

    The engine is created lazily from the URL (mysql+aiomysql://...) unless one is injected.
    """

    def __init__(self, database_url: str = "", engine: Optional[AsyncEngine] = None, timeout: float = 30.0):
        self.database_url = database_url
        self.timeout = timeout
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            if not self.database_url:
                raise SourceUnavailable("Database URL not set. Please set DATABASE_URL in the .env file.")
            self._engine = create_async_engine(self.database_url, pool_pre_ping=True)
        return self._engine

    async def _fetch_rows(self, statement: TextClause, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with self.engine.connect() as conn:
            result = await conn.execute(statement, params)
            return [dict(row) for row in result.mappings()]

    async def fetch(self, selection: OrderSelection) -> List[EligibleOrder]:
        statement, params = build_eligible_orders_query(selection)
        try:
            rows = await asyncio.wait_for(self._fetch_rows(statement, params), timeout=self.timeout)
        except Exception as e:
            logger.error(f"Eligible-orders query failed: {e}")
            raise SourceUnavailable(str(e)) from e

        orders = rows_to_orders(rows)
        logger.info(f"Eligible-orders query returned {len(rows)} rows, {len(orders)} unique orders")
        return orders

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
