import pytest

from orders.batching.counters import BatchCounterStore, InMemoryCounterBackend
from orders.batching.engine import assign_batches
from orders.batching.policy import BatchCounterPolicy, default_policy
from orders.ledger import OrderLedger
from orders.models import DeliveryType
from dispatch.state_machines.order_state import mark_booked, mark_booking_failed

from tests.conftest import DELIVERY_DATE, make_order

SAME_DAY = DeliveryType.SAME_DAY


def key(location: str, delivery_type: DeliveryType = SAME_DAY) -> str:
    return default_policy().key(location, DELIVERY_DATE, delivery_type)


def test_policy_key_and_validation():
    assert key("Sydney") == "Sydney_2025-06-03_same-day"
    assert key("Perth", DeliveryType.NEXT_DAY) == "Perth_2025-06-03_next-day"

    with pytest.raises(ValueError):
        BatchCounterPolicy(increment=2).validate()
    with pytest.raises(ValueError):
        BatchCounterPolicy(locations=()).validate()


@pytest.mark.asyncio
async def test_get_counters_creates_missing_keys(counter_store, counter_backend):
    """
    A key seen for the first time is created at 0; existing keys are read back.
    """
    counter_backend.documents[key("Sydney")] = {"batch": 5}

    counters = await counter_store.get_counters(["Sydney", "Melbourne"], DELIVERY_DATE, SAME_DAY)

    assert counters == {"Sydney": 5, "Melbourne": 0}
    assert counter_backend.documents[key("Melbourne")]["batch"] == 0
    assert counter_backend.creates == 1


@pytest.mark.asyncio
async def test_read_failure_gives_none(counter_store, counter_backend):
    counter_backend.fail_reads.add(key("Perth"))

    counters = await counter_store.get_counters(["Perth", "Sydney"], DELIVERY_DATE, SAME_DAY)

    assert counters["Perth"] is None
    assert counters["Sydney"] == 0


@pytest.mark.asyncio
async def test_increment_rules(counter_store, counter_backend):
    prior = {"Sydney": 5, "Melbourne": 2, "Perth": None}
    success = {"Sydney": 3, "Melbourne": 0, "Perth": 4}

    final = await counter_store.increment_counters(success, DELIVERY_DATE, SAME_DAY, prior)

    # 1. One write of prior + 1, regardless of the success count
    assert final["Sydney"] == 6
    assert counter_backend.documents[key("Sydney")]["batch"] == 6

    # 2. No successes: unchanged, nothing written
    assert final["Melbourne"] == 2
    assert key("Melbourne") not in counter_backend.documents

    # 3. Unreadable prior stays None
    assert final["Perth"] is None
    assert counter_backend.writes == 1


@pytest.mark.asyncio
async def test_write_failure_gives_none(counter_store, counter_backend):
    counter_backend.fail_writes.add(key("Sydney"))

    final = await counter_store.increment_counters({"Sydney": 1}, DELIVERY_DATE, SAME_DAY, {"Sydney": 1})

    assert final == {"Sydney": None}


@pytest.mark.asyncio
async def test_assign_batches_stamps_every_record_of_location():
    """
    Three Sydney bookings on prior counter 5 produce batch 6 on all three.
    A failed Sydney record in the same run carries the same batch value.
    """
    backend = InMemoryCounterBackend({key("Sydney"): {"batch": 5}})
    store = BatchCounterStore(backend)
    ledger = OrderLedger()
    ledger.seed([make_order(i, "Sydney") for i in (1, 2, 3, 4)], SAME_DAY)
    for order_id in (1, 2, 3):
        mark_booked(ledger.get(order_id), carrier_reference=f"R{order_id}")
    mark_booking_failed(ledger.get(4), "rejected")

    prior = await store.get_counters(["Sydney"], DELIVERY_DATE, SAME_DAY)
    assignment = await assign_batches(
        ledger, store=store, delivery_date=DELIVERY_DATE, delivery_type=SAME_DAY, prior_counters=prior
    )

    assert assignment.success_counts == {"Sydney": 3}
    assert assignment.batch_for("Sydney") == 6
    assert assignment.records_stamped == 4
    assert all(record.batch == 6 for record in ledger)


@pytest.mark.asyncio
async def test_assign_batches_with_unreadable_counter():
    backend = InMemoryCounterBackend()
    backend.fail_reads.add(key("Perth"))
    store = BatchCounterStore(backend)
    ledger = OrderLedger()
    ledger.seed([make_order(1, "Perth"), make_order(2, "Sydney")], SAME_DAY)
    for record in ledger:
        mark_booked(record)

    prior = await store.get_counters(["Perth", "Sydney"], DELIVERY_DATE, SAME_DAY)
    assignment = await assign_batches(
        ledger, store=store, delivery_date=DELIVERY_DATE, delivery_type=SAME_DAY, prior_counters=prior
    )

    assert assignment.final_counters == {"Perth": None, "Sydney": 1}
    assert ledger.get(1).batch is None
    assert ledger.get(2).batch == 1


@pytest.mark.asyncio
async def test_get_counters_is_idempotent_for_new_key(counter_store, counter_backend):
    first = await counter_store.get_counters(["Adelaide"], DELIVERY_DATE, SAME_DAY)
    second = await counter_store.get_counters(["Adelaide"], DELIVERY_DATE, SAME_DAY)

    assert first == second == {"Adelaide": 0}
    assert counter_backend.creates == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("successes", [1, 50])
async def test_increment_is_one_regardless_of_volume(counter_store, counter_backend, successes):
    final = await counter_store.increment_counters({"Sydney": successes}, DELIVERY_DATE, SAME_DAY, {"Sydney": 9})

    assert final == {"Sydney": 10}
    assert counter_backend.documents[key("Sydney")]["last_order_count"] == successes
