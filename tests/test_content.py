import pytest

from carriers.documents import DocumentApiError
from dispatch.content import (
    ArtifactKind,
    ContentGenerator,
    apply_content_statuses,
    build_artifacts,
    classify_line_item,
    content_endpoints,
    group_documents,
)
from dispatch.state_machines.order_state import mark_booked, mark_booking_failed

from tests.conftest import make_record


class MockDocuments:
    """
    Records every POST. URLs listed in failing raise DocumentApiError.
    """

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.posts = []

    async def post_json(self, url, payload):
        self.posts.append((url, payload))
        if url in self.failing:
            raise DocumentApiError("API call failed after 3 attempts: HTTP 503: down", attempts=3)
        return {"ok": True}


@pytest.fixture
def endpoints():
    return content_endpoints("https://docs.test/")


@pytest.fixture
def records():
    luxe = make_record(1, location="Sydney", line_items=["Luxe Jar Arrangement", "Prosecco 750ml"], card_message="Hi")
    plain = make_record(2, location="Sydney", line_items=["Classic Roses Bouquet"])
    failed = make_record(3, location="Sydney", line_items=["Soy Candle"], card_message="Hello")
    for record in (luxe, plain):
        mark_booked(record)
        record.batch = 4
    mark_booking_failed(failed, "rejected")
    failed.batch = 4
    return [luxe, plain, failed]


def test_classify_line_item():
    assert classify_line_item("Luxe Jar Arrangement") is ArtifactKind.JARS_LUXE
    assert classify_line_item("Large Jar Arrangement") is ArtifactKind.JARS_CLASSIC_LARGE
    assert classify_line_item("Prosecco 750ml") is ArtifactKind.PROSECCO
    assert classify_line_item("Potted Plant") is ArtifactKind.CANDLES
    assert classify_line_item("Native Posy") is None


def test_only_booked_records_with_batch_produce_artifacts(records):
    unbatched = make_record(5, line_items=["Soy Candle"])
    mark_booked(unbatched)

    items = build_artifacts(records + [unbatched])

    assert {item.order_number for item in items} == {"#1", "#2"}
    kinds_for_1 = {item.kind for item in items if item.order_number == "#1"}
    assert kinds_for_1 == {
        ArtifactKind.PACKING_SLIP,
        ArtifactKind.MESSAGE_CARD,
        ArtifactKind.JARS_LUXE,
        ArtifactKind.PROSECCO,
    }


def test_documents_grouped_by_kind_location_batch(records):
    documents = group_documents(build_artifacts(records))

    slips = [d for d in documents if d.kind is ArtifactKind.PACKING_SLIP]
    assert len(slips) == 1
    assert slips[0].order_numbers == ["#1", "#2"]
    payload = slips[0].payload()
    assert payload["batch"] == 4
    assert len(payload["packing_slips_data"]) == 2


@pytest.mark.asyncio
async def test_each_kind_goes_to_its_own_endpoint(records, endpoints):
    documents = MockDocuments()
    generator = ContentGenerator(documents, endpoints)

    outcome = await generator.generate(records)

    assert outcome.success
    posted = {url: payload for url, payload in documents.posts}
    assert "jars_luxe_data" in posted[endpoints[ArtifactKind.JARS_LUXE]]
    assert "message_cards_data" in posted[endpoints[ArtifactKind.MESSAGE_CARD]]
    assert endpoints[ArtifactKind.CANDLES] not in posted

    marked = apply_content_statuses(records, outcome)
    luxe, plain, failed = records
    assert marked == 2
    assert (luxe.personalization_status, luxe.packing_slip_status, luxe.message_card_status) == (True, True, True)
    assert (plain.personalization_status, plain.packing_slip_status, plain.message_card_status) == (False, True, False)
    assert not failed.packing_slip_status


@pytest.mark.asyncio
async def test_any_failed_call_clears_all_statuses(records, endpoints):
    documents = MockDocuments(failing={endpoints[ArtifactKind.PROSECCO]})
    generator = ContentGenerator(documents, endpoints)

    outcome = await generator.generate(records)

    assert not outcome.success
    assert len(outcome.failed_calls) == 1
    assert outcome.summary()["errors"][0].startswith("prosecco Sydney")

    apply_content_statuses(records, outcome)
    assert not any(r.packing_slip_status or r.personalization_status for r in records)


def test_missing_endpoint_configuration():
    with pytest.raises(ValueError):
        ContentGenerator(MockDocuments(), {ArtifactKind.PACKING_SLIP: "https://docs.test/slips"})
