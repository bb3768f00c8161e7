"""
Ranking helpers
- Catalog relevance score (exact title match > partial title match > tag match)
- Title-relevance ordering for external candidates
"""

import re
from typing import List, Optional, Sequence

from ..schemas import Candidate
from .normalizer import normalize_activity

SCORE_EXACT = 3    # a term appears as a whole word in the title
SCORE_PARTIAL = 2  # a term appears inside a title word
SCORE_TAG = 1      # a term appears in a tag only

EARLY_MATCH_CHARS = 30


def catalog_match_score(title: str, tags: Sequence[str], terms: Sequence[str]) -> int:
    """
    Score how well a catalog record matches a set of synonym terms.

    Args:
        title: Record title
        tags: Record tags
        terms: Synonym terms (case-insensitive)

    Returns:
        int: SCORE_EXACT, SCORE_PARTIAL, SCORE_TAG or 0 for no match
    """
    title_lower = (title or "").lower()
    tags_lower = [(tag or "").lower() for tag in tags]
    best = 0

    for term in terms:
        term = term.lower().strip()
        if not term:
            continue
        if re.search(rf"\b{re.escape(term)}\b", title_lower):
            return SCORE_EXACT
        if term in title_lower:
            best = max(best, SCORE_PARTIAL)
        elif any(term in tag for tag in tags_lower):
            best = max(best, SCORE_TAG)

    return best


def rank_by_title_relevance(candidates: List[Candidate], activity: Optional[str]) -> List[Candidate]:
    """
    Order external candidates by how prominently the activity shows in the title.

    1. Activity at the START of the title
    2. Activity within the first 30 characters
    3. More reviews
    4. Better rating

    Python's sort is stable, so ties keep their merged order.
    """
    activity_lower = (activity or "").lower().strip()
    if not activity_lower:
        return sorted(candidates, key=lambda c: (-c.review_count, -c.rating))

    activity_base = re.sub(r"ing$", "", activity_lower)
    normalized = normalize_activity(activity_lower)

    def sort_key(candidate: Candidate):
        title = (candidate.title or "").lower()
        starts = title.startswith(activity_base) or title.startswith(activity_lower) or (
            bool(normalized) and title.startswith(normalized)
        )
        early = activity_base in title[:EARLY_MATCH_CHARS]
        return (not starts, not early, -candidate.review_count, -candidate.rating)

    return sorted(candidates, key=sort_key)
