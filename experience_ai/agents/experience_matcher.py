# agents/experience_matcher.py
"""
Experience Matcher
Turns an activity (typed by the user or detected in shared content) into a
short, mixed list of bookable experiences.

Pipeline:
1. Query cache lookup
2. Boring / irrelevant gate (no catalog or provider call when it rejects)
3. Taxonomy expansion of the normalized activity
4. Internal catalog search (NearYou only) || external aggregation
5. External filters: content gate -> location -> relevance -> title ordering
6. Source mixing, then cache and return
"""

import asyncio
from typing import List, Optional, Tuple

from loguru import logger

from ..algorithms.boring_gate import BoringGate
from ..algorithms.content_filters import apply_content_gate, filter_by_location
from ..algorithms.normalizer import normalize_activity
from ..algorithms.ranking import rank_by_title_relevance
from ..algorithms.source_mixer import SourceMixer
from ..algorithms.taxonomy import ActivityTaxonomy, Expansion, taxonomy as default_taxonomy
from ..cache.analysis_cache import AnalysisCache
from ..cache.query_cache import QueryCache
from ..config import settings
from ..llm.content_analyzer import ContentAnalysisError
from ..llm.relevance_filter import RelevanceFilter
from ..schemas import (
    ActivityQuery,
    Candidate,
    ContentAnalysis,
    MatchResult,
    Mode,
    SourceRecommendation,
    UserLocation,
)
from .aggregator import ExternalAggregator


MESSAGE_NO_RESULTS = "We couldn't find matching experiences for this yet."
MESSAGE_PROVIDER_UNAVAILABLE = (
    "Experiences for this place are temporarily unavailable. Please try again in a few minutes."
)


class ExperienceMatcher:
    """
    Orchestrates the matching pipeline

    Usage:
        matcher = ExperienceMatcher(catalog=CatalogStore(), provider=ViatorClient())
        result = await matcher.recommend("surfing", target_location="Lisbon")
        reel = await matcher.recommend_from_source(url, UserLocation(city="Lisbon"))
    """

    def __init__(
        self,
        catalog,
        provider,
        relevance_filter: Optional[RelevanceFilter] = None,
        gate: Optional[BoringGate] = None,
        analyzer=None,
        geocoder=None,
        query_cache: Optional[QueryCache] = None,
        analysis_cache: Optional[AnalysisCache] = None,
        taxonomy: Optional[ActivityTaxonomy] = None,
        mixer: Optional[SourceMixer] = None,
        catalog_timeout: Optional[float] = None
    ):
        """
        Initialize the matcher

        Args:
            catalog: find_by_activity(synonyms, city, limit) / top_rated(city, limit)
            provider: Inventory provider client (see aggregator.InventoryProvider)
            relevance_filter: Conditional LLM filter (default: never filters)
            gate: Boring / irrelevant gate
            analyzer: analyze(source_url) -> ContentAnalysis
            geocoder: reverse_geocode(lat, lng) -> "City, Country" | None
            query_cache: Ephemeral result cache
            analysis_cache: Durable per-URL analysis cache
        """
        self.catalog = catalog
        self.relevance_filter = relevance_filter or RelevanceFilter()
        self.gate = gate or BoringGate()
        self.analyzer = analyzer
        self.geocoder = geocoder
        self.query_cache = query_cache if query_cache is not None else QueryCache()
        self.analysis_cache = analysis_cache if analysis_cache is not None else AnalysisCache()
        self.taxonomy = taxonomy or default_taxonomy
        self.mixer = mixer or SourceMixer()
        self.aggregator = ExternalAggregator(provider, target_count=self.mixer.target_count)
        self.catalog_timeout = settings.CATALOG_TIMEOUT_SECONDS if catalog_timeout is None else catalog_timeout

        logger.info(
            f"ExperienceMatcher initialized (target={self.mixer.target_count}, "
            f"internal cap={self.mixer.max_internal_cap}, "
            f"relevance threshold={self.relevance_filter.threshold})"
        )

    # ============================================
    # Query construction
    # ============================================

    @staticmethod
    def build_query(
        activity: Optional[str],
        full_activity_label: Optional[str] = None,
        target_location: Optional[str] = None,
        mode: Mode = Mode.NEAR_YOU
    ) -> ActivityQuery:
        activity = (activity or "").strip() or None
        label = (full_activity_label or "").strip() or activity
        location = (target_location or "").strip() or None

        return ActivityQuery(
            raw_activity=activity,
            full_activity_label=label,
            normalized_base=normalize_activity(activity or label),
            target_location=location,
            mode=mode,
        )

    # ============================================
    # recommend
    # ============================================

    async def recommend(
        self,
        activity: Optional[str],
        full_activity_label: Optional[str] = None,
        target_location: Optional[str] = None,
        mode: Mode = Mode.NEAR_YOU,
        confidence: Optional[float] = None
    ) -> MatchResult:
        """
        Recommend experiences for an activity.

        Args:
            activity: Short activity name ("surfing")
            full_activity_label: Descriptive label ("person surfing a large wave")
            target_location: City to search in (user's city or the reel's place)
            mode: NEAR_YOU mixes internal + external, AS_SEEN_ON_REEL is external only
            confidence: Upstream detection confidence, when the activity was detected

        Returns:
            MatchResult: at most TARGET_COUNT candidates
        """
        query = self.build_query(activity, full_activity_label, target_location, mode)
        result, _ = await self._recommend(query, confidence)
        return result

    async def _recommend(self, query: ActivityQuery, confidence: Optional[float] = None) -> Tuple[MatchResult, bool]:
        """Returns the result and whether it is complete enough to cache"""
        key = self.query_cache.key_for(query)
        cached = self.query_cache.get(key)
        if cached is not None:
            return cached, True

        decision = await self.gate.evaluate(
            query.raw_activity or query.full_activity_label,
            query.target_location,
            confidence
        )
        if not decision.proceed:
            return MatchResult.empty(decision.verdict, decision.message), True

        if query.mode == Mode.NEAR_YOU and not query.target_location:
            logger.info(f"No user location, defaulting to {settings.DEFAULT_CITY}")
            query = query.model_copy(update={"target_location": settings.DEFAULT_CITY})

        expansion = self.taxonomy.expand(query.normalized_base)
        logger.info(
            f"Matching '{query.search_phrase}' (base='{query.normalized_base}', "
            f"domain={expansion.domain}) in '{query.target_location}' [{query.mode.value}]"
        )

        internal, (external, external_ok) = await asyncio.gather(
            self._search_internal(query, expansion),
            self._search_external(query, expansion)
        )

        message = None
        if not external_ok and query.mode == Mode.AS_SEEN_ON_REEL:
            message = MESSAGE_PROVIDER_UNAVAILABLE

        result = self.mixer.mix(internal, external, query.mode, message=message)
        if not result.candidates and result.message is None:
            result.message = MESSAGE_NO_RESULTS

        if external_ok:
            self.query_cache.put(key, result)
        else:
            logger.warning("External searches failed, result not cached")

        return result, external_ok

    async def _search_internal(self, query: ActivityQuery, expansion: Expansion) -> List[Candidate]:
        if query.mode != Mode.NEAR_YOU:
            return []

        limit = self.mixer.max_internal_cap
        try:
            if query.has_activity:
                terms = list(dict.fromkeys(
                    t for t in (*expansion.synonyms, query.normalized_base, (query.raw_activity or "").lower()) if t
                ))
                search = self.catalog.find_by_activity(terms, query.target_location, limit)
            else:
                search = self.catalog.top_rated(query.target_location, limit)

            return await asyncio.wait_for(search, timeout=self.catalog_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Catalog search timed out after {self.catalog_timeout}s")
        except Exception as e:
            logger.error(f"Catalog search failed: {e}")
        return []

    async def _search_external(self, query: ActivityQuery, expansion: Expansion) -> Tuple[List[Candidate], bool]:
        aggregated = await self.aggregator.aggregate(query, expansion)
        if aggregated.all_failed:
            logger.error(f"All external searches failed for '{query.search_phrase}' in '{query.target_location}'")
            return [], False

        candidates = apply_content_gate(aggregated.candidates)
        candidates = filter_by_location(candidates, query.target_location)

        if query.has_activity:
            candidates = await self.relevance_filter.apply(query.search_phrase, candidates)

        candidates = rank_by_title_relevance(candidates, query.search_phrase if query.has_activity else None)
        return candidates, True

    # ============================================
    # recommend_from_source
    # ============================================

    async def _resolve_user_location(self, user_location: Optional[UserLocation]) -> Optional[str]:
        if user_location is None:
            return None
        if user_location.city:
            return user_location.city
        if user_location.has_coordinates and self.geocoder is not None:
            try:
                return await asyncio.wait_for(
                    self.geocoder.reverse_geocode(user_location.latitude, user_location.longitude),
                    timeout=self.catalog_timeout
                )
            except Exception as e:
                logger.error(f"Could not resolve user location: {e!r}")
        return None

    async def _analyze(self, source_url: str) -> ContentAnalysis:
        if self.analyzer is None:
            raise ContentAnalysisError("No content analyzer configured")

        try:
            analysis = await asyncio.wait_for(
                self.analyzer.analyze(source_url),
                timeout=settings.ANALYZER_TIMEOUT_SECONDS
            )
        except ContentAnalysisError:
            raise
        except asyncio.TimeoutError as e:
            raise ContentAnalysisError(f"Content analysis timed out for {source_url}") from e
        except Exception as e:
            raise ContentAnalysisError(f"Content analysis failed for {source_url}: {e}") from e

        if analysis is None or analysis.is_empty:
            raise ContentAnalysisError(f"Could not understand content at {source_url}")
        return analysis

    async def recommend_from_source(
        self,
        source_url: str,
        user_location: Optional[UserLocation] = None,
        mode: Optional[Mode] = None
    ) -> SourceRecommendation:
        """
        Recommend experiences for shared content (e.g. a reel URL).

        Repeat submissions of a URL are answered from the analysis cache
        without calling the analyzer again.

        Raises:
            ContentAnalysisError: the content could not be understood
        """
        record = await self.analysis_cache.get(source_url)
        if record is not None:
            return SourceRecommendation(cached=True, analysis=record.analysis, result=record.result, mode=record.mode)

        analysis = await self._analyze(source_url)

        if mode is None:
            mode = Mode.AS_SEEN_ON_REEL if analysis.location else Mode.NEAR_YOU

        if mode == Mode.AS_SEEN_ON_REEL:
            target_location = analysis.location
        else:
            target_location = await self._resolve_user_location(user_location)

        query = self.build_query(analysis.activity, analysis.activity, target_location, mode)
        result, complete = await self._recommend(query, analysis.confidence)

        if complete:
            await self.analysis_cache.put(source_url, analysis, result, mode)

        return SourceRecommendation(cached=False, analysis=analysis, result=result, mode=mode)
