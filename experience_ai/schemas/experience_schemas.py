# schemas/experience_schemas.py
"""
Pydantic v2 schemas for the Experience Matching Service
Covers queries, candidates, match results and both cache records
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


# ============================================
# Enums
# ============================================

class Mode(str, Enum):
    NEAR_YOU = "near_you"               # scoped to the user's own location
    AS_SEEN_ON_REEL = "as_seen_on_reel"  # scoped to the location seen in shared content


class CandidateSource(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class GateVerdict(str, Enum):
    PROCEED = "proceed"
    BORING = "boring"
    IRRELEVANT = "irrelevant"


class ContentType(str, Enum):
    ACTIVITY = "activity"
    LANDSCAPE = "landscape"
    UNKNOWN = "unknown"


# ============================================
# Query
# ============================================

class ActivityQuery(BaseModel):
    """A single request's matching parameters. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    raw_activity: Optional[str] = None
    full_activity_label: Optional[str] = None
    normalized_base: str = ""
    target_location: Optional[str] = None
    mode: Mode = Mode.NEAR_YOU

    @property
    def has_activity(self) -> bool:
        return bool(self.normalized_base)

    @property
    def search_phrase(self) -> str:
        """Phrase sent to the inventory provider"""
        return (self.raw_activity or self.full_activity_label or self.normalized_base or "").strip()


# ============================================
# Candidates & Results
# ============================================

class Candidate(BaseModel):
    """An experience considered for a result set"""
    id: str
    title: str
    location: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    source: CandidateSource
    provider_ref: Optional[str] = None  # provider product code for external candidates

    description: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    rating: float = 0.0
    review_count: int = 0
    duration: Optional[str] = None
    image_url: Optional[str] = None
    product_url: Optional[str] = None

    @property
    def identity(self) -> tuple:
        return (self.source, self.id)


class SourceCounts(BaseModel):
    internal: int = 0
    external: int = 0


class MatchResult(BaseModel):
    """Ranked, deduplicated and capped experiences for one query"""
    candidates: List[Candidate] = Field(default_factory=list)
    counts: SourceCounts = Field(default_factory=SourceCounts)
    verdict: GateVerdict = GateVerdict.PROCEED
    message: Optional[str] = None

    @classmethod
    def from_candidates(cls, candidates: List[Candidate], message: Optional[str] = None) -> "MatchResult":
        internal = sum(1 for c in candidates if c.source == CandidateSource.INTERNAL)
        return cls(
            candidates=candidates,
            counts=SourceCounts(internal=internal, external=len(candidates) - internal),
            message=message,
        )

    @classmethod
    def empty(cls, verdict: GateVerdict, message: str) -> "MatchResult":
        return cls(verdict=verdict, message=message)


# ============================================
# Content analysis
# ============================================

class ContentAnalysis(BaseModel):
    """Output of the upstream content analyzer"""
    type: ContentType = ContentType.UNKNOWN
    activity: Optional[str] = None
    location: Optional[str] = None
    confidence: float = 0.0
    thumbnail_url: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.activity and not self.location


class AnalysisCacheRecord(BaseModel):
    """Durable cache record keyed by source URL"""
    source_url: str
    analysis: ContentAnalysis
    result: MatchResult
    mode: Mode
    created_at: datetime
    expires_at: datetime
    hit_count: int = 0


class UserLocation(BaseModel):
    """Where the user is: a city string, coordinates, or both"""
    city: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class SourceRecommendation(BaseModel):
    """Response of recommend_from_source"""
    cached: bool = False
    analysis: ContentAnalysis
    result: MatchResult
    mode: Mode
