"""
Cache Module
Two narrowly-scoped caches: ephemeral query results and durable content analyses
"""

from .redis_client import get_redis_client, check_redis_health
from .query_cache import QueryCache, CacheEntry
from .analysis_cache import AnalysisCache

__all__ = [
    "get_redis_client",
    "check_redis_health",
    "QueryCache",
    "CacheEntry",
    "AnalysisCache"
]
