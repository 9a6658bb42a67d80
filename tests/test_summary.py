from dispatch.state_machines.order_state import mark_booked, mark_booking_failed, mark_skipped
from dispatch.summary import batch_summary_rows
from orders.models import Store

from tests.conftest import make_record


def test_batch_summary_groups_by_location_and_batch():
    """
    One row per (store, date, city, delivery type, batch), booked and not-booked
    order numbers split into their own columns.
    """
    a = make_record(1, location="Sydney")
    b = make_record(2, location="Sydney")
    c = make_record(3, location="Sydney")
    d = make_record(4, location="Perth", store=Store.BL)
    mark_booked(a)
    mark_booked(b)
    mark_booking_failed(c, "rejected")
    mark_skipped(d, "Order past cutoff time")
    for record in (a, b, c):
        record.batch = 6

    rows = batch_summary_rows([a, b, c, d])

    assert len(rows) == 2
    sydney, perth = rows
    assert sydney["store"] == "LVLY"
    assert sydney["city"] == "Sydney"
    assert sydney["batch"] == 6
    assert sydney["same_day"] == "same-day"
    assert sydney["count_success_orders"] == 2
    assert sydney["orders"] == "#1, #2"
    assert sydney["failed_orders"] == "#3"

    assert perth["store"] == "BL"
    assert perth["batch"] is None
    assert perth["count_success_orders"] == 0
    assert perth["failed_orders"] == "#4"


def test_empty_ledger_has_no_rows():
    assert batch_summary_rows([]) == []
