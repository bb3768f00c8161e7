"""
API Module
FastAPI routers for the experience matching service
"""

from .recommendations import router as recommendations_router, get_matcher

__all__ = [
    "recommendations_router",
    "get_matcher",
]
