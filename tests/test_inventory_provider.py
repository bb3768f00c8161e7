import asyncio
import json

import httpx
import pytest

from experience_ai.interfaces.geocoder import Geocoder
from experience_ai.interfaces.inventory_provider import (
    InventoryProviderError,
    ViatorClient,
    add_affiliate_params,
    extract_location,
    format_duration,
    transform_product,
)
from experience_ai.schemas import CandidateSource


SURF_PRODUCT = {
    "productCode": "12345P1",
    "title": "Surf Lesson for Beginners",
    "description": "Two hours in the water",
    "pricing": {"summary": {"fromPrice": 45.5}, "currency": "EUR"},
    "reviews": {"combinedAverageRating": 4.8, "totalReviews": 321},
    "duration": {"fixedDurationInMinutes": 150},
    "images": [{"variants": [{"url": "https://img.example/surf.jpg"}]}],
    "productUrl": "https://www.viator.com/tours/Lisbon/Surf/d538-12345P1",
    "destinations": [{"destinationName": "Lisbon", "parentDestinationName": "Portugal"}],
    "tags": [21909, 11903],
}


@pytest.mark.parametrize(
    "duration, expected",
    [
        ({"fixedDurationInMinutes": 150}, "2h 30m"),
        ({"fixedDurationInMinutes": 120}, "2h"),
        ({"fixedDurationInMinutes": 45}, "45m"),
        ({"variableDurationFromMinutes": 180, "variableDurationToMinutes": 300}, "3-5h"),
        ({}, "Duration varies"),
        (None, "Duration varies"),
    ],
)
def test_format_duration(duration, expected):
    assert format_duration(duration) == expected


def test_extract_location_prefers_redemption_point():
    product = {
        "logistics": {"redemption": [{"location": {"name": "Carcavelos Beach"}}]},
        "destinations": [{"destinationName": "Lisbon", "parentDestinationName": "Portugal"}],
    }
    assert extract_location(product) == "Carcavelos Beach, Portugal"


def test_extract_location_fallbacks():
    pickup = {"logistics": {"travelerPickup": {"locations": [{"name": "Cascais"}]}}}
    assert extract_location(pickup) == "Cascais"
    assert extract_location({}, "Lisbon") == "Lisbon"
    assert extract_location({}) == "Location varies"


def test_add_affiliate_params():
    url = add_affiliate_params("https://www.viator.com/tours/x?lang=en")

    assert "lang=en" in url
    assert "pid=P00285354" in url
    assert "mcid=42383" in url
    assert "medium=link" in url
    assert add_affiliate_params(None) is None


def test_transform_product():
    candidate = transform_product(SURF_PRODUCT)

    assert candidate.id == candidate.provider_ref == "12345P1"
    assert candidate.source == CandidateSource.EXTERNAL
    assert candidate.location == "Lisbon, Portugal"
    assert candidate.price == 45.5
    assert candidate.review_count == 321
    assert candidate.duration == "2h 30m"
    assert candidate.image_url == "https://img.example/surf.jpg"
    assert "pid=" in candidate.product_url
    assert candidate.tags == ["21909", "11903"]


def test_transform_product_without_code_is_skipped():
    assert transform_product({"title": "No code"}) is None


# ============================================
# HTTP client
# ============================================

def _client(handler, **kwargs) -> ViatorClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ViatorClient(api_key="test-key", base_url="https://api.test/partner", http_client=http_client, **kwargs)


def test_resolve_destination_id_is_memoized():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        assert request.headers["exp-api-key"] == "test-key"
        return httpx.Response(200, json={"destinations": [
            {"destinationId": 538, "destinationName": "Lisbon"},
            {"destinationId": 26879, "destinationName": "Lisbon District"},
        ]})

    client = _client(handler)

    async def run():
        first = await client.resolve_destination_id("Lisbon, Portugal")
        second = await client.resolve_destination_id("Lisbon, Portugal")
        other = await client.resolve_destination_id("Lisbon")
        missing = await client.resolve_destination_id("Atlantis")
        return first, second, other, missing

    first, second, other, missing = asyncio.run(run())

    assert first == second == other == "538"
    assert missing is None
    assert len(requests) == 1


def test_destination_memo_is_bounded():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"destinations": [
            {"destinationId": 538, "destinationName": "Lisbon"},
            {"destinationId": 26879, "destinationName": "Porto"},
        ]})

    client = _client(handler, max_memo=2)

    async def run():
        return [await client.resolve_destination_id(city) for city in ("Lisbon", "Porto", "Faro", "Porto")]

    assert asyncio.run(run()) == ["538", "26879", None, "26879"]
    assert list(client._destination_ids) == ["faro", "porto"]
    assert len(requests) == 1


def test_resolve_destination_id_failure_returns_none():
    client = _client(lambda request: httpx.Response(500))
    assert asyncio.run(client.resolve_destination_id("Lisbon")) is None


def test_search_freetext_parses_results():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"products": {"results": [SURF_PRODUCT, {"title": "broken"}]}})

    client = _client(handler)
    results = asyncio.run(client.search_freetext("surfing Lisbon", limit=5, search_location="Lisbon"))

    assert seen["path"] == "/partner/search/freetext"
    assert seen["body"]["searchTerm"] == "surfing Lisbon"
    assert seen["body"]["searchTypes"][0]["pagination"]["count"] == 5
    assert [c.id for c in results] == ["12345P1"]


def test_search_by_destination_sends_destination_filter():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"products": [SURF_PRODUCT]})

    results = asyncio.run(_client(handler).search_by_destination("538", limit=10))

    assert seen["body"]["filtering"] == {"destination": "538"}
    assert seen["body"]["sorting"] == {"sort": "TRAVELER_RATING", "order": "DESCENDING"}
    assert len(results) == 1


def test_search_errors_raise_provider_error():
    client = _client(lambda request: httpx.Response(503))
    with pytest.raises(InventoryProviderError):
        asyncio.run(client.search_freetext("surfing"))


def test_unconfigured_client_raises():
    client = ViatorClient(api_key="")
    with pytest.raises(InventoryProviderError):
        asyncio.run(client.search_freetext("surfing"))
    assert asyncio.run(client.resolve_destination_id("Lisbon")) is None


# ============================================
# Geocoder
# ============================================

def test_reverse_geocode_formats_city_and_country():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/reverse"
        return httpx.Response(200, json={"address": {"city": "Lisbon", "country": "Portugal"}})

    geocoder = Geocoder(base_url="https://geo.test", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    assert asyncio.run(geocoder.reverse_geocode(38.72, -9.14)) == "Lisbon, Portugal"


def test_reverse_geocode_failure_returns_none():
    geocoder = Geocoder(
        base_url="https://geo.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    )
    assert asyncio.run(geocoder.reverse_geocode(0.0, 0.0)) is None


def test_reverse_geocode_memo_is_bounded():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"address": {"city": f"City {len(requests)}", "country": "Portugal"}})

    geocoder = Geocoder(
        base_url="https://geo.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        max_memo=2
    )

    async def run():
        return [
            await geocoder.reverse_geocode(38.72, -9.14),
            await geocoder.reverse_geocode(41.15, -8.61),
            await geocoder.reverse_geocode(38.721, -9.139),
            await geocoder.reverse_geocode(37.02, -7.93),
            await geocoder.reverse_geocode(41.15, -8.61),
        ]

    labels = asyncio.run(run())

    assert labels[0] == labels[2] == "City 1, Portugal"
    assert labels[4] == "City 4, Portugal"
    assert len(geocoder._memo) == 2
    assert len(requests) == 4
