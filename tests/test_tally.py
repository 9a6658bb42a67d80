import pandas as pd
import pytest

from carriers.documents import DocumentApiError
from config.tally_rules import TallyField, TallyRow, TallyTable
from dispatch.state_machines.order_state import mark_booked, mark_booking_failed
from dispatch.tally import ProductTally, calculate_tallies, count_matching, products_frame
from orders.models import DeliveryType

from tests.conftest import DELIVERY_DATE, make_record


class MockDocuments:
    def __init__(self, fail=False):
        self.fail = fail
        self.posts = []

    async def post_json(self, url, payload):
        self.posts.append(payload)
        if self.fail:
            raise DocumentApiError("API call failed after 3 attempts: timeout", attempts=3)
        return {}


@pytest.fixture
def records():
    sydney = make_record(1, location="Sydney", line_items=["Red Rose Bouquet", "Luxe Jar Arrangement"])
    melbourne = make_record(2, location="Melbourne", line_items=["Pink Lilies", "Prosecco 750ml"])
    failed = make_record(3, location="Sydney", line_items=["White Roses"])
    mark_booked(sydney)
    mark_booked(melbourne)
    mark_booking_failed(failed, "rejected")
    return [sydney, melbourne, failed]


def test_count_matching_is_case_insensitive_or():
    products = pd.Series(["Red ROSE", "Lily Posy", "Native Box"])

    assert count_matching(products, ["rose"]) == 1
    assert count_matching(products, ["rose", "lily"]) == 2
    assert count_matching(products, ["tulip"]) == 0


def test_complex_rows_count_each_field():
    rules = (
        TallyTable("jars", (TallyRow("Jars", fields=(TallyField("luxe", ("luxe jar",)), TallyField("large", ("large jar",)))),)),
        TallyTable("flowers", (TallyRow("Roses", ("rose",)),)),
    )
    products = pd.Series(["Luxe Jar Arrangement", "Luxe Jar Mini", "Rose Bunch"])

    tallies = calculate_tallies(products, rules)

    assert tallies == {"jars": {"Jars": {"luxe": 2, "large": 0}}, "flowers": {"Roses": 1}}


def test_products_frame_has_booked_lines_only(records):
    frame = products_frame(records)
    assert len(frame) == 4
    assert "White Roses" not in set(frame["product"])


@pytest.mark.asyncio
async def test_calculation_without_submission(records):
    documents = MockDocuments()
    tally = ProductTally(documents, "https://tally.test")

    outcome = await tally.calculate_and_submit(
        records, DELIVERY_DATE, DeliveryType.SAME_DAY, {"Sydney": 2, "Melbourne": 1}, submit=False
    )

    assert outcome.success
    assert documents.posts == []
    assert outcome.calculations["Sydney"]["tallies"]["flowers"]["Roses"] == 1
    assert outcome.calculations["Sydney"]["tallies"]["jars"]["Jars"]["luxe"] == 1
    assert outcome.calculations["Melbourne"]["tallies"]["extras"]["Prosecco"] == 1


@pytest.mark.asyncio
async def test_submission_payload_and_missing_batch(records):
    documents = MockDocuments()
    tally = ProductTally(documents, "https://tally.test")

    outcome = await tally.calculate_and_submit(
        records, DELIVERY_DATE, DeliveryType.SAME_DAY, {"Sydney": 2, "Melbourne": None}, submit=True
    )

    # 1. Sydney posted with its batch
    assert len(documents.posts) == 1
    payload = documents.posts[0]
    assert payload["location"] == "Sydney"
    assert payload["batch"] == 2
    assert payload["isSameDay"] == "same-day"
    assert payload["flowers"]["Roses"] == 1

    # 2. Melbourne has no batch, so nothing is sent and the error is recorded
    assert outcome.api_success == 1
    assert outcome.errors == [{"location": "Melbourne", "error": "No batch number assigned"}]
    assert not outcome.success


@pytest.mark.asyncio
async def test_api_failure_is_recorded(records):
    tally = ProductTally(MockDocuments(fail=True), "https://tally.test")

    outcome = await tally.calculate_and_submit(
        records, DELIVERY_DATE, DeliveryType.SAME_DAY, {"Sydney": 2, "Melbourne": 1}, submit=True
    )

    assert outcome.api_failed == 2
    assert outcome.to_dict()["apiCalls"] == {"success": 0, "failed": 2}
