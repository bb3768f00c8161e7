"""
Pydantic Schemas Package

Contains all Pydantic v2 models for:
- Activity queries and modes
- Candidates and match results
- Content analysis and cache records
"""

from .experience_schemas import (
    # Enums
    Mode, CandidateSource, GateVerdict, ContentType,
    # Query
    ActivityQuery,
    # Results
    Candidate, SourceCounts, MatchResult,
    # Content analysis
    ContentAnalysis, AnalysisCacheRecord, UserLocation, SourceRecommendation,
)

__all__ = [
    # Enums
    "Mode", "CandidateSource", "GateVerdict", "ContentType",
    # Query
    "ActivityQuery",
    # Results
    "Candidate", "SourceCounts", "MatchResult",
    # Content analysis
    "ContentAnalysis", "AnalysisCacheRecord", "UserLocation", "SourceRecommendation",
]
