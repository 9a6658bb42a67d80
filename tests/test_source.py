import pytest

from orders.models import DeliveryType, Store
from orders.source import (
    LINE_ITEM_SEPARATOR,
    ROW_CAP_AUTOMATIC,
    OrderSelection,
    SourceUnavailable,
    SqlEligibleOrdersSource,
    build_eligible_orders_query,
    rows_to_orders,
    split_line_items,
)

from tests.conftest import DELIVERY_DATE


def row(order_id, **overrides):
    values = {
        "id": order_id,
        "order_number": f"#{order_id}",
        "shop_id": 10,
        "location_name": "Sydney",
        "delivery_date": "2025-06-03",
        "order_products": LINE_ITEM_SEPARATOR.join(["Candle Jar", "Luxe Jar Bouquet"]),
        "name": "Alex",
        "city": "Surry Hills",
        "province": "New South Wales",
        "zip": "2010",
        "card_message": "Happy birthday",
        "sender_name": "Sam",
    }
    values.update(overrides)
    return values


def test_automatic_query_caps_rows_per_location():
    selection = OrderSelection(DELIVERY_DATE, DeliveryType.SAME_DAY, shop_ids=(10, 6), locations=("Sydney",))

    statement, params = build_eligible_orders_query(selection)

    assert "ranked_orders.rn <= :row_cap" in statement.text
    assert "process_status IS NULL" in statement.text
    assert "so.order_number IN" not in statement.text
    assert params["row_cap"] == ROW_CAP_AUTOMATIC
    assert params["shop_ids"] == [10, 6]
    assert params["locations"] == ["Sydney"]
    assert params["is_same_day"] == 1
    assert params["delivery_date"] == "2025-06-03"


def test_manual_query_filters_order_numbers_without_cap():
    selection = OrderSelection(
        DELIVERY_DATE, DeliveryType.NEXT_DAY, order_numbers=("#1", "#2"), manual=True
    )

    statement, params = build_eligible_orders_query(selection)

    assert "row_cap" not in params
    assert "rn <=" not in statement.text
    assert params["order_numbers"] == ["#1", "#2"]
    assert params["is_same_day"] == 0
    # no location filter given: every configured location is queried
    assert "Sydney" in params["locations"] and "Perth" in params["locations"]


def test_rows_are_typed_and_deduplicated():
    rows = [row(1), row(1), row(2, shop_id=6, location_name="Perth"), row(3, location_name=None)]

    orders = rows_to_orders(rows)

    assert [order.id for order in orders] == [1, 2]
    assert orders[0].store is Store.LVLY
    assert orders[1].store is Store.BL
    assert orders[0].line_items == ["Candle Jar", "Luxe Jar Bouquet"]
    assert orders[0].gift.card_message == "Happy birthday"
    assert orders[0].shipping.suburb == "Surry Hills"


def test_split_line_items_handles_empty():
    assert split_line_items(None) == []
    assert split_line_items(f" {LINE_ITEM_SEPARATOR} ") == []


def test_titles_with_commas_stay_whole():
    products = LINE_ITEM_SEPARATOR.join(["Roses, Peonies & Lilies", "Prosecco 750ml"])

    assert split_line_items(products) == ["Roses, Peonies & Lilies", "Prosecco 750ml"]

    statement, _ = build_eligible_orders_query(OrderSelection(DELIVERY_DATE, DeliveryType.SAME_DAY))
    assert f"SEPARATOR '{LINE_ITEM_SEPARATOR}'" in statement.text


class BrokenSource(SqlEligibleOrdersSource):
    async def _fetch_rows(self, statement, params):
        raise ConnectionRefusedError("Can't connect to MySQL server")


@pytest.mark.asyncio
async def test_query_failure_raises_source_unavailable():
    source = BrokenSource("mysql+aiomysql://user:pw@db.test/shop")

    with pytest.raises(SourceUnavailable, match="Can't connect"):
        await source.fetch(OrderSelection(DELIVERY_DATE, DeliveryType.SAME_DAY))


@pytest.mark.asyncio
async def test_missing_database_url_is_source_unavailable():
    source = SqlEligibleOrdersSource("")

    with pytest.raises(SourceUnavailable, match="Database URL not set"):
        await source.fetch(OrderSelection(DELIVERY_DATE, DeliveryType.SAME_DAY))
    await source.dispose()
