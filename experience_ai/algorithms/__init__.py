"""
Matching Algorithms Module
Pure, synchronous building blocks of the experience matching pipeline
"""

from .normalizer import normalize_activity, stem_word
from .taxonomy import ActivityTaxonomy, Expansion, TaxonomyEntry, taxonomy
from .boring_gate import BoringGate, GateDecision, KeywordBoringClassifier
from .content_filters import apply_content_gate, filter_by_location, location_matches
from .ranking import catalog_match_score, rank_by_title_relevance
from .source_mixer import SourceMixer, dedupe_candidates

__all__ = [
    "normalize_activity",
    "stem_word",
    "ActivityTaxonomy",
    "Expansion",
    "TaxonomyEntry",
    "taxonomy",
    "BoringGate",
    "GateDecision",
    "KeywordBoringClassifier",
    "apply_content_gate",
    "filter_by_location",
    "location_matches",
    "catalog_match_score",
    "rank_by_title_relevance",
    "SourceMixer",
    "dedupe_candidates",
]
