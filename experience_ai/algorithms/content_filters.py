"""
Content Filters for external candidates
- Boring-keyword content gate (+ price cap)
- Location filter with city alias normalization

Internal catalog content is curated and never passes through these filters.
"""

import re
from typing import Dict, List, Optional

from loguru import logger

from ..config import settings
from ..schemas import Candidate
from .normalizer import strip_accents


# Passive / "bored tourist" descriptors we never recommend
BORING_TITLE_KEYWORDS = [
    # Transportation & logistics
    "transfer", "airport transfer", "car rental", "bike rental", "bicycle rental",
    "scooter rental", "segway rental", "motorcycle rental", "bus tour", "coach tour",
    # Accommodation
    "hotel", "resort", "luxury stay", "accommodation",
    # Shopping
    "shopping tour", "souvenir shopping", "outlet shopping",
    # Nightlife
    "night club", "bar tour", "pub tour", "bar crawl", "nightclub", "casino", "gambling",
    # Generic sightseeing
    "tuk tuk tour", "tuktuk", "hop-on hop-off", "sightseeing bus", "city tour bus",
    "panoramic bus", "city tour", "day tour", "day trip", "full day tour", "half day tour",
    "full-day tour", "half-day tour", "guided tour", "sightseeing tour", "city sightseeing",
    "city highlights", "highlights tour", "best of", "must see", "must-see",
    "top attractions", "walking tour", "private tour", "group tour",
    # Museums & wellness
    "museum", "gallery visit", "spa", "wellness", "massage", "thermal bath",
    # Miscellaneous
    "karaoke", "comic con", "geek culture", "paranormal tour", "astrology",
    "tarot reading", "fortune telling",
]

# Canonical city -> known spelling variants
LOCATION_ALIASES: Dict[str, List[str]] = {
    "lisbon": ["lisboa", "lisbonne", "lissabon"],
    "porto": ["oporto"],
    "seville": ["sevilla"],
    "florence": ["firenze"],
    "rome": ["roma"],
    "milan": ["milano"],
    "naples": ["napoli"],
    "venice": ["venezia"],
    "munich": ["munchen", "muenchen"],
    "cologne": ["koln", "koeln"],
    "vienna": ["wien"],
    "prague": ["praha"],
    "copenhagen": ["kobenhavn"],
    "athens": ["athina"],
    "brussels": ["bruxelles", "brussel"],
    "geneva": ["geneve", "genf"],
    "the hague": ["den haag"],
    "warsaw": ["warszawa"],
    "krakow": ["cracow"],
    "bucharest": ["bucuresti"],
    "istanbul": ["constantinople"],
    "marrakech": ["marrakesh"],
    "mexico city": ["ciudad de mexico", "cdmx"],
    "bangkok": ["krung thep"],
    "ho chi minh city": ["saigon"],
    "beijing": ["peking"],
    "bali": ["denpasar", "ubud"],
    "new york": ["new york city", "nyc", "manhattan"],
    "funchal": ["madeira"],
    "ponta delgada": ["azores", "acores", "sao miguel"],
}


# Placeholder location texts that carry no information
UNKNOWN_LOCATIONS = {"location varies", "various locations", "multiple locations"}

_BORING_PATTERNS = [
    (keyword, re.compile(rf"\b{re.escape(keyword)}\b")) for keyword in BORING_TITLE_KEYWORDS
]


def _fold(text: Optional[str]) -> str:
    return strip_accents(text or "").lower().strip()


def _build_alias_index() -> Dict[str, List[str]]:
    index: Dict[str, List[str]] = {}
    for canonical, variants in LOCATION_ALIASES.items():
        group = [canonical, *variants]
        for name in group:
            index[name] = group
    return index


_ALIAS_INDEX = _build_alias_index()


def city_base_name(location: Optional[str]) -> str:
    """'Lisbon, Portugal' -> 'lisbon'"""
    return _fold(location).split(",")[0].strip()


def location_variants(location: Optional[str]) -> List[str]:
    """All names the target city is known by (folded)"""
    full = _fold(location)
    if not full:
        return []

    base = city_base_name(location)
    variants = [full, base, *_ALIAS_INDEX.get(base, []), *_ALIAS_INDEX.get(full, [])]
    return [v for v in dict.fromkeys(variants) if v]


def location_matches(candidate_location: Optional[str], target_location: Optional[str]) -> bool:
    """
    True when the candidate's location text names the target city.

    Empty values on either side never reject.
    """
    candidate = _fold(candidate_location)
    if not candidate or candidate in UNKNOWN_LOCATIONS or not _fold(target_location):
        return True

    return any(variant in candidate for variant in location_variants(target_location))


def filter_by_location(candidates: List[Candidate], target_location: Optional[str]) -> List[Candidate]:
    """Drop candidates whose location does not match the target city"""
    if not _fold(target_location):
        return candidates

    kept = []
    for candidate in candidates:
        if location_matches(candidate.location, target_location):
            kept.append(candidate)
        else:
            logger.debug(f"Location filter dropped '{candidate.title}' ({candidate.location} != {target_location})")

    if len(kept) != len(candidates):
        logger.info(f"Location filter: {len(candidates)} -> {len(kept)} for '{target_location}'")
    return kept


def boring_keyword(candidate: Candidate) -> Optional[str]:
    """Return the first denylisted phrase found in the title or description"""
    text = f"{_fold(candidate.title)} {_fold(candidate.description)}"
    for keyword, pattern in _BORING_PATTERNS:
        if pattern.search(text):
            return keyword
    return None


def apply_content_gate(candidates: List[Candidate], max_price: Optional[float] = None) -> List[Candidate]:
    """
    Drop boring and over-budget external candidates.

    Args:
        candidates: External candidates
        max_price: Price cap (default: settings.MAX_PRICE)

    Returns:
        List[Candidate]: Survivors, order preserved
    """
    max_price = settings.MAX_PRICE if max_price is None else max_price

    kept = []
    for candidate in candidates:
        if candidate.price is not None and candidate.price > max_price:
            logger.debug(f"Filtered out expensive experience: '{candidate.title}' ({candidate.price} > {max_price})")
            continue

        keyword = boring_keyword(candidate)
        if keyword:
            logger.debug(f"Filtered out boring experience: '{candidate.title}' (matches '{keyword}')")
            continue

        kept.append(candidate)

    logger.info(f"Content gate filtered {len(candidates) - len(kept)} experiences, {len(kept)} remain")
    return kept
