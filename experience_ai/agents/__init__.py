"""
Agents Module
External aggregation and the experience matching orchestrator
"""

from .aggregator import AggregatedCandidates, ExternalAggregator, merge_by_product
from .experience_matcher import ExperienceMatcher, MESSAGE_NO_RESULTS, MESSAGE_PROVIDER_UNAVAILABLE

__all__ = [
    "AggregatedCandidates",
    "ExternalAggregator",
    "merge_by_product",
    "ExperienceMatcher",
    "MESSAGE_NO_RESULTS",
    "MESSAGE_PROVIDER_UNAVAILABLE",
]
