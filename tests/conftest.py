import os

# Keep the suite off real backends regardless of the developer's .env
os.environ["REDIS_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["VIATOR_API_KEY"] = ""

import asyncio  # noqa: E402
from collections import Counter  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Callable, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402

from experience_ai.agents.experience_matcher import ExperienceMatcher  # noqa: E402
from experience_ai.algorithms.boring_gate import BoringGate  # noqa: E402
from experience_ai.algorithms.source_mixer import SourceMixer  # noqa: E402
from experience_ai.cache.analysis_cache import AnalysisCache  # noqa: E402
from experience_ai.cache.query_cache import QueryCache  # noqa: E402
from experience_ai.interfaces.catalog_store import CatalogStore  # noqa: E402
from experience_ai.interfaces.inventory_provider import InventoryProviderError  # noqa: E402
from experience_ai.llm.relevance_filter import RelevanceFilter  # noqa: E402
from experience_ai.schemas import Candidate, CandidateSource, ContentAnalysis  # noqa: E402


def external(code: str, title: str, location: str = "Lisbon, Portugal", **fields) -> Candidate:
    return Candidate(
        id=code,
        provider_ref=code,
        title=title,
        location=location,
        source=CandidateSource.EXTERNAL,
        **fields
    )


def internal(record_id: str, title: str, location: str = "Lisbon, Portugal", **fields) -> Candidate:
    return Candidate(id=record_id, title=title, location=location, source=CandidateSource.INTERNAL, **fields)


class FakeInventory:
    """Inventory provider double with per-method call counts"""

    def __init__(
        self,
        destination_results: Optional[List[Candidate]] = None,
        freetext_results=None,
        destination_id: Optional[str] = "62",
        fail_destination: bool = False,
        fail_freetext: bool = False
    ):
        self.destination_results = destination_results or []
        self.freetext_results = freetext_results if freetext_results is not None else []
        self.destination_id = destination_id
        self.fail_destination = fail_destination
        self.fail_freetext = fail_freetext
        self.calls = Counter()
        self.search_terms: List[str] = []

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def resolve_destination_id(self, location):
        self.calls["resolve"] += 1
        return self.destination_id

    async def search_by_destination(self, destination_id, limit=None, search_location=None):
        self.calls["destination"] += 1
        if self.fail_destination:
            raise InventoryProviderError("destination search down")
        return [c.model_copy() for c in self.destination_results]

    async def search_freetext(self, search_term, limit=None, search_location=None):
        self.calls["freetext"] += 1
        self.search_terms.append(search_term)
        if self.fail_freetext:
            raise InventoryProviderError("freetext search down")
        results = self.freetext_results
        if isinstance(results, dict):
            results = results.get(search_term, [])
        return [c.model_copy() for c in results]


class CountingCatalog(CatalogStore):
    """Real in-memory catalog that also counts lookups"""

    def __init__(self, records=None):
        super().__init__(records=records or [])
        self.calls = Counter()

    async def find_by_activity(self, synonyms, city, limit=10):
        self.calls["find_by_activity"] += 1
        return await super().find_by_activity(synonyms, city, limit)

    async def top_rated(self, city, limit=10):
        self.calls["top_rated"] += 1
        return await super().top_rated(city, limit)


class FakeOracle:
    """Relevance oracle double: keeps titles accepted by `keep`"""

    def __init__(self, keep: Optional[Callable[[str, str], bool]] = None, reply: Optional[List[int]] = None, fail: bool = False):
        self.keep = keep
        self.reply = reply
        self.fail = fail
        self.calls = 0
        self.last_titles: List[str] = []

    async def select_relevant(self, activity, titles):
        self.calls += 1
        self.last_titles = list(titles)
        if self.fail:
            raise RuntimeError("oracle unavailable")
        if self.reply is not None:
            return list(self.reply)
        return [i for i, title in enumerate(titles) if self.keep(activity, title)]


class FakeAnalyzer:
    def __init__(self, analysis: Optional[ContentAnalysis] = None, error: Optional[Exception] = None):
        self.analysis = analysis
        self.error = error
        self.calls = 0

    async def analyze(self, source_url):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.analysis


class FakeClassifier:
    def __init__(self, boring: Optional[set] = None):
        self.boring = {b.lower() for b in (boring or set())}
        self.calls = 0

    async def is_boring(self, activity):
        self.calls += 1
        return (activity or "").lower() in self.boring


class FakeGeocoder:
    def __init__(self, label: Optional[str] = "Lisbon, Portugal"):
        self.label = label
        self.calls = 0

    async def reverse_geocode(self, latitude, longitude):
        self.calls += 1
        return self.label


class FakeChatClient:
    """
    AsyncOpenAI-shaped double: client.chat.completions.create(...)

    Replies come from `replies` in order (the last one repeats); an Exception
    instance is raised instead of returned, and `delay` stalls every call.
    """

    def __init__(self, *replies, delay: float = 0.0):
        self.replies = list(replies) or [""]
        self.delay = delay
        self.requests: List[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)

        reply = self.replies[min(len(self.requests), len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])

    @property
    def calls(self) -> int:
        return len(self.requests)


def surf_titles_keep(activity: str, title: str) -> bool:
    lowered = title.lower()
    return any(term in lowered for term in ("surf", "bodyboard", "wave"))


@pytest.fixture()
def make_matcher():
    """Build an ExperienceMatcher over in-memory doubles"""

    def _make(
        inventory: Optional[FakeInventory] = None,
        catalog: Optional[CatalogStore] = None,
        oracle: Optional[FakeOracle] = None,
        classifier: Optional[FakeClassifier] = None,
        analyzer: Optional[FakeAnalyzer] = None,
        geocoder: Optional[FakeGeocoder] = None,
        threshold: int = 12,
        **overrides
    ) -> ExperienceMatcher:
        return ExperienceMatcher(
            catalog=catalog if catalog is not None else CountingCatalog(),
            provider=inventory if inventory is not None else FakeInventory(),
            relevance_filter=RelevanceFilter(oracle=oracle, threshold=threshold, timeout=1),
            gate=BoringGate(classifier or FakeClassifier(), confidence_floor=0.3),
            analyzer=analyzer,
            geocoder=geocoder,
            query_cache=overrides.pop("query_cache", QueryCache(ttl_seconds=600)),
            analysis_cache=overrides.pop("analysis_cache", AnalysisCache(use_redis=False)),
            mixer=SourceMixer(target_count=8, max_internal_cap=3),
            **overrides
        )

    return _make


@pytest.fixture()
def surf_reel_results() -> List[Candidate]:
    """Fourteen external products for a surfing query (above the relevance threshold)"""
    return [
        external("P1", "Surf Lesson for Beginners", review_count=900, rating=4.9),
        external("P2", "Indoor Skydiving Simulator", review_count=2000, rating=4.8),
        external("P3", "Surf Camp Week in Ericeira", review_count=300, rating=4.7),
        external("P4", "Surfing Coaching with Video Analysis", review_count=120, rating=4.6),
        external("P5", "Bodyboard Session at Carcavelos", review_count=80, rating=4.5),
        external("P6", "Big Wave Watching in Nazare", review_count=60, rating=4.4),
        external("P7", "Sintra Palace Entrance Ticket", review_count=5000, rating=4.3),
        external("P8", "Surf and Yoga Retreat", review_count=45, rating=4.8),
        external("P9", "Fado Show with Dinner", review_count=700, rating=4.2),
        external("P10", "Learn to Surf in Costa da Caparica", review_count=210, rating=4.9),
        external("P11", "Tram 28 Ride Experience", review_count=400, rating=4.0),
        external("P12", "Surfboard Rental and Lesson", review_count=33, rating=4.1),
        external("P13", "Wine Tasting in Alentejo", review_count=150, rating=4.6),
        external("P14", "Stand Up Paddle on the Tagus", review_count=95, rating=4.7),
    ]


@pytest.fixture()
def surf_catalog() -> CountingCatalog:
    return CountingCatalog([
        internal("exp_1", "Surf Lesson for Beginners at Caparica", tags=["surf", "lesson"], rating=4.9),
        internal("exp_2", "Bodyboard Session in Carcavelos", tags=["bodyboard", "wave"], rating=4.6),
        internal("exp_3", "Surfskate Workshop", tags=["skate"], rating=4.7),
        internal("exp_4", "Surf Photography Tour", location="Lisboa", tags=["surf", "photo"], rating=4.8),
        internal("exp_5", "Indoor Skydiving Simulator", tags=["air"], rating=5.0),
        internal("exp_6", "Surf Camp Day at Matosinhos", location="Porto, Portugal", tags=["surf"], rating=4.9),
    ])
