import asyncio

from experience_ai.agents.aggregator import ExternalAggregator, freetext_phrase, merge_by_product
from experience_ai.agents.experience_matcher import ExperienceMatcher
from experience_ai.algorithms.taxonomy import taxonomy
from experience_ai.schemas import Mode

from conftest import FakeInventory, external


def _aggregate(inventory, activity="surfing", location="Lisbon", mode=Mode.NEAR_YOU, target_count=8):
    query = ExperienceMatcher.build_query(activity, activity, location, mode)
    aggregator = ExternalAggregator(inventory, timeout=1, limit=20, target_count=target_count)
    return asyncio.run(aggregator.aggregate(query, taxonomy.expand(query.normalized_base)))


def test_freetext_phrase():
    assert freetext_phrase("surfing", "Lisbon") == "surfing Lisbon"
    assert freetext_phrase(None, "Namibia") == "Namibia"
    assert freetext_phrase("surfing", None) == "surfing"


def test_merge_by_product_first_seen_wins():
    merged = merge_by_product(
        [external("P1", "From destination", rating=4.0)],
        [external("P1", "From freetext", rating=5.0), external("P2", "Other")],
    )
    assert [(c.id, c.title) for c in merged] == [("P1", "From destination"), ("P2", "Other")]


def test_near_you_runs_both_searches_and_dedupes():
    inventory = FakeInventory(
        destination_results=[external("P1", "Surf Lesson"), external("P9", "Sintra Palace Ticket")],
        freetext_results=[external("P1", "Surf Lesson (dup)"), external("P2", "Surf Camp")],
    )

    merged = _aggregate(inventory, target_count=2)

    assert inventory.calls["resolve"] == 1
    assert inventory.calls["destination"] == 1
    assert inventory.calls["freetext"] == 1
    assert inventory.search_terms == ["surfing Lisbon"]
    # destination results are narrowed to the activity; P1 keeps its first-seen title
    assert [(c.id, c.title) for c in merged.candidates] == [("P1", "Surf Lesson"), ("P2", "Surf Camp")]
    assert not merged.all_failed


def test_one_failed_search_does_not_block_the_other():
    inventory = FakeInventory(fail_destination=True, freetext_results=[external("P2", "Surf Camp")])

    merged = _aggregate(inventory, target_count=1)

    assert merged.failed == 1
    assert not merged.all_failed
    assert [c.id for c in merged.candidates] == ["P2"]


def test_missing_destination_id_falls_back_to_freetext():
    inventory = FakeInventory(destination_id=None, freetext_results=[external("P2", "Surf Camp")])

    merged = _aggregate(inventory, target_count=1)

    assert inventory.calls["destination"] == 0
    assert merged.failed == 0
    assert [c.id for c in merged.candidates] == ["P2"]


def test_both_searches_failing_is_reported():
    inventory = FakeInventory(fail_destination=True, fail_freetext=True)

    merged = _aggregate(inventory)

    assert merged.all_failed
    assert merged.candidates == []


def test_reel_mode_uses_freetext_only():
    inventory = FakeInventory(freetext_results=[external("P2", "Surf Camp")])

    _aggregate(inventory, mode=Mode.AS_SEEN_ON_REEL, target_count=1)

    assert inventory.calls["resolve"] == 0
    assert inventory.calls["destination"] == 0
    assert inventory.search_terms == ["surfing Lisbon"]


def test_location_only_query_searches_the_place():
    inventory = FakeInventory(freetext_results=[external("P5", "Desert Quad Tour", location="Namibia")])

    merged = _aggregate(inventory, activity=None, location="Namibia", mode=Mode.AS_SEEN_ON_REEL)

    assert inventory.search_terms == ["Namibia"]
    assert [c.id for c in merged.candidates] == ["P5"]


def test_thin_results_are_diversified_with_related_terms():
    inventory = FakeInventory(freetext_results={
        "surfing Lisbon": [external("P1", "Surf Lesson")],
        "bodyboard Lisbon": [external("P3", "Bodyboard Session"), external("P1", "Surf Lesson")],
        "wave Lisbon": [external("P4", "Wave Riding Clinic")],
    })

    merged = _aggregate(inventory, mode=Mode.AS_SEEN_ON_REEL)

    assert inventory.search_terms[0] == "surfing Lisbon"
    assert set(inventory.search_terms[1:]) == {"bodyboard Lisbon", "wave Lisbon"}
    assert [c.id for c in merged.candidates] == ["P1", "P3", "P4"]
