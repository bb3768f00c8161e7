"""
Catalog Store - Curated internal experiences

Keeps the platform's own experience listings in memory, loaded once from a
JSON seed file, and answers city-scoped activity lookups.
"""

import json
import os
from typing import Dict, Iterable, List, Optional

from loguru import logger

from ..algorithms.content_filters import location_matches
from ..algorithms.ranking import catalog_match_score
from ..config import settings
from ..schemas import Candidate, CandidateSource


class CatalogStore:
    """
    In-memory catalog of internal experiences

    Usage:
        catalog = CatalogStore()
        results = await catalog.find_by_activity(["surf", "surfing"], "Lisbon", limit=3)
    """

    def __init__(self, records: Optional[Iterable[Candidate]] = None, seed_path: Optional[str] = None):
        """
        Initialize catalog store

        Args:
            records: Explicit records (skips the seed file)
            seed_path: JSON seed file (default: settings.CATALOG_SEED_PATH)
        """
        self.seed_path = seed_path or settings.CATALOG_SEED_PATH
        self._records: Dict[str, Candidate] = {}
        self._loaded = False

        if records is not None:
            for record in records:
                self.add(record)
            self._loaded = True

    def _ensure_loaded(self):
        """Load the seed file on first use"""
        if self._loaded:
            return
        self._loaded = True

        if not os.path.exists(self.seed_path):
            logger.warning(f"Catalog seed not found at {self.seed_path}, starting empty")
            return

        try:
            with open(self.seed_path, "r", encoding="utf-8") as f:
                rows = json.load(f)
            for row in rows:
                self.add(Candidate(source=CandidateSource.INTERNAL, **row))
            logger.info(f"CatalogStore loaded {len(self._records)} experiences from {self.seed_path}")
        except Exception as e:
            logger.error(f"Failed to load catalog seed: {e}")

    def add(self, record: Candidate):
        """Insert or replace an internal experience"""
        if record.source != CandidateSource.INTERNAL:
            record = record.model_copy(update={"source": CandidateSource.INTERNAL})
        self._records[record.id] = record

    def _in_city(self, city: Optional[str]) -> List[Candidate]:
        return [r for r in self._records.values() if location_matches(r.location, city)]

    async def find_by_activity(
        self,
        synonyms: List[str],
        city: Optional[str],
        limit: int = 10
    ) -> List[Candidate]:
        """
        Find experiences in a city whose title or tags mention any synonym.

        Args:
            synonyms: Activity terms (case-insensitive substring match)
            city: Target city, alias tolerant
            limit: Max results

        Returns:
            List[Candidate]: Exact title matches first, then partial/tag
            matches, each tier by rating (desc)
        """
        self._ensure_loaded()
        terms = [s for s in synonyms if s and s.strip()]
        if not terms or limit <= 0:
            return []

        scored = []
        for record in self._in_city(city):
            score = catalog_match_score(record.title, record.tags, terms)
            if score > 0:
                scored.append((score, record))

        scored.sort(key=lambda pair: (-pair[0], -pair[1].rating))
        results = [record for _, record in scored[:limit]]

        logger.info(f"Catalog: {len(results)} matches for {terms[:3]} in '{city}'")
        return [r.model_copy(deep=True) for r in results]

    async def top_rated(self, city: Optional[str], limit: int = 10) -> List[Candidate]:
        """Best-rated experiences in a city, for location-only queries"""
        self._ensure_loaded()
        if limit <= 0:
            return []

        records = sorted(self._in_city(city), key=lambda r: (-r.rating, -r.review_count))
        return [r.model_copy(deep=True) for r in records[:limit]]

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._records)
