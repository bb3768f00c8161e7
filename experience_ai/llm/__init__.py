"""
LLM Module
Prompt templates and the OpenAI-backed oracles used by the matcher
"""

from .prompts import RELEVANCE_PROMPT, BORING_ACTIVITY_PROMPT, CONTENT_ANALYSIS_PROMPT
from .relevance_filter import (
    IdentityFilter,
    OpenAIRelevanceOracle,
    OracleFilter,
    RelevanceFilter,
    parse_indices,
)
from .boring_classifier import OpenAIBoringClassifier
from .content_analyzer import ContentAnalysisError, ContentAnalyzer, parse_analysis

__all__ = [
    "RELEVANCE_PROMPT",
    "BORING_ACTIVITY_PROMPT",
    "CONTENT_ANALYSIS_PROMPT",
    "IdentityFilter",
    "OpenAIRelevanceOracle",
    "OracleFilter",
    "RelevanceFilter",
    "parse_indices",
    "OpenAIBoringClassifier",
    "ContentAnalysisError",
    "ContentAnalyzer",
    "parse_analysis",
]
