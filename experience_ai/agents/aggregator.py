"""
External Aggregator
Fans out to the inventory provider and merges what comes back.

NearYou:       destination-scoped search + freetext search, concurrently
AsSeenOnReel:  freetext only (scoped to the reel's location, possibly global)

Merge: destination results first, then freetext, deduplicated by provider
product code, first seen wins. One failed search never blocks the other.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, List, Optional, Protocol, Sequence

from loguru import logger

from ..algorithms.ranking import catalog_match_score
from ..algorithms.taxonomy import Expansion
from ..config import settings
from ..schemas import ActivityQuery, Candidate, Mode


MAX_DIVERSIFY_TERMS = 2


class InventoryProvider(Protocol):
    async def resolve_destination_id(self, location: Optional[str]) -> Optional[str]:
        ...

    async def search_by_destination(
        self, destination_id: str, limit: Optional[int] = None, search_location: Optional[str] = None
    ) -> List[Candidate]:
        ...

    async def search_freetext(
        self, search_term: str, limit: Optional[int] = None, search_location: Optional[str] = None
    ) -> List[Candidate]:
        ...


@dataclass
class AggregatedCandidates:
    """Merged external candidates plus how the searches went"""
    candidates: List[Candidate] = field(default_factory=list)
    attempted: int = 0
    failed: int = 0

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and self.failed == self.attempted


def merge_by_product(*result_sets: Sequence[Candidate]) -> List[Candidate]:
    """Union of result sets keyed by provider product code, first seen wins"""
    seen = set()
    merged = []
    for results in result_sets:
        for candidate in results:
            key = candidate.provider_ref or candidate.id
            if key in seen:
                continue
            seen.add(key)
            merged.append(candidate)
    return merged


def freetext_phrase(activity: Optional[str], location: Optional[str]) -> str:
    """'{activity} {location}' with either part optional"""
    return " ".join(part.strip() for part in (activity, location) if part and part.strip())


class ExternalAggregator:
    """
    Hybrid external search

    Usage:
        aggregator = ExternalAggregator(ViatorClient())
        merged = await aggregator.aggregate(query, taxonomy.expand(query.normalized_base))
    """

    def __init__(
        self,
        provider: InventoryProvider,
        timeout: Optional[float] = None,
        limit: Optional[int] = None,
        target_count: Optional[int] = None
    ):
        self.provider = provider
        self.timeout = settings.INVENTORY_TIMEOUT_SECONDS if timeout is None else timeout
        self.limit = settings.INVENTORY_SEARCH_LIMIT if limit is None else limit
        self.target_count = settings.TARGET_COUNT if target_count is None else target_count

    async def _bounded(self, coro: Awaitable, label: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{label} timed out after {self.timeout}s")
            raise

    async def _destination_search(self, query: ActivityQuery, expansion: Expansion) -> List[Candidate]:
        location = query.target_location
        destination_id = await self._bounded(
            self.provider.resolve_destination_id(location),
            f"Destination lookup for '{location}'"
        )
        if not destination_id:
            logger.warning(f"No destination ID for '{location}', relying on freetext search")
            return []

        results = await self._bounded(
            self.provider.search_by_destination(destination_id, self.limit, location),
            f"Destination search ({destination_id})"
        )

        if not query.has_activity:
            return results

        # Destination search returns top-rated products; keep the ones about the activity
        terms = [*expansion.synonyms, query.normalized_base]
        matching = [
            c for c in results
            if catalog_match_score(c.title, [*c.tags, c.description or ""], terms) > 0
        ]
        logger.info(f"Destination search: {len(matching)}/{len(results)} products mention the activity")
        return matching

    async def _freetext_search(self, phrase: str, location: Optional[str]) -> List[Candidate]:
        return await self._bounded(
            self.provider.search_freetext(phrase, self.limit, location),
            f"Freetext search '{phrase}'"
        )

    async def aggregate(self, query: ActivityQuery, expansion: Expansion) -> AggregatedCandidates:
        """
        Run the mode's search strategies and merge their results.

        Args:
            query: Normalized query
            expansion: Taxonomy expansion of query.normalized_base

        Returns:
            AggregatedCandidates; candidates is empty when every search failed
        """
        location = query.target_location
        phrase = freetext_phrase(query.search_phrase if query.has_activity else None, location)
        if not phrase:
            return AggregatedCandidates()

        labels = []
        searches = []
        if query.mode == Mode.NEAR_YOU and location:
            labels.append("destination")
            searches.append(self._destination_search(query, expansion))
        labels.append("freetext")
        searches.append(self._freetext_search(phrase, location))

        outcomes = await asyncio.gather(*searches, return_exceptions=True)

        result_sets = []
        failed = 0
        for label, outcome in zip(labels, outcomes):
            if isinstance(outcome, BaseException):
                failed += 1
                logger.error(f"External {label} search failed: {outcome!r}")
                continue
            logger.info(f"External {label} search returned {len(outcome)} products")
            result_sets.append(outcome)

        merged = merge_by_product(*result_sets)
        aggregated = AggregatedCandidates(candidates=merged, attempted=len(searches), failed=failed)

        if aggregated.all_failed:
            return aggregated

        if query.has_activity and len(merged) < self.target_count and expansion.related:
            extra = await self._diversify(query, expansion)
            aggregated.candidates = merge_by_product(merged, extra)

        logger.info(
            f"Aggregated {len(aggregated.candidates)} external candidates for '{phrase}' "
            f"({query.mode.value}, {failed}/{len(searches)} searches failed)"
        )
        return aggregated

    async def _diversify(self, query: ActivityQuery, expansion: Expansion) -> List[Candidate]:
        """Extra freetext searches on strictly-related terms for thin result sets"""
        phrase_lower = query.search_phrase.lower()
        terms = [t for t in expansion.related if t not in phrase_lower][:MAX_DIVERSIFY_TERMS]
        if not terms:
            return []

        location = query.target_location
        logger.info(f"Low signal for '{query.search_phrase}', diversifying with {terms}")
        outcomes = await asyncio.gather(
            *(self._freetext_search(freetext_phrase(term, location), location) for term in terms),
            return_exceptions=True
        )

        extra: List[Candidate] = []
        for term, outcome in zip(terms, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Diversification search for '{term}' failed: {outcome!r}")
                continue
            extra.extend(outcome)
        return extra
