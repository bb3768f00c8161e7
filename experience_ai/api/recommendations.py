# api/recommendations.py
"""
/experiences HTTP API Endpoint
Exposes the experience matcher.

POST /api/ai/experiences/recommend     - Experiences for an activity
POST /api/ai/experiences/from-source   - Experiences for shared content (reel URL)
GET  /api/ai/experiences/cache/stats   - Cache statistics
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from pydantic import BaseModel, Field

from ..agents.experience_matcher import ExperienceMatcher
from ..llm.content_analyzer import ContentAnalysisError
from ..schemas import MatchResult, Mode, SourceRecommendation, UserLocation


router = APIRouter(prefix="/api/ai/experiences", tags=["experiences"])


def get_matcher(request: Request) -> ExperienceMatcher:
    """Matcher built at startup (see main.lifespan)"""
    matcher = getattr(request.app.state, "matcher", None)
    if matcher is None:
        raise HTTPException(status_code=503, detail="Experience matcher not ready")
    return matcher


# ============================================
# Request Models
# ============================================

class RecommendRequest(BaseModel):
    """Request model for activity recommendations"""
    activity: Optional[str] = Field(None, description="Activity name", examples=["surfing"])
    full_activity_label: Optional[str] = Field(
        None, description="Descriptive activity label", examples=["person surfing a large wave"]
    )
    location: Optional[str] = Field(None, description="City to search in", examples=["Lisbon, Portugal"])
    mode: Mode = Field(Mode.NEAR_YOU, description="near_you or as_seen_on_reel")


class FromSourceRequest(BaseModel):
    """Request model for shared-content recommendations"""
    source_url: str = Field(..., min_length=1, description="Shared content URL")
    user_location: Optional[UserLocation] = Field(None, description="Where the user is")
    mode: Optional[Mode] = Field(None, description="Force a mode (default: decided by the analysis)")


# ============================================
# Endpoints
# ============================================

@router.post("/recommend", response_model=MatchResult)
async def recommend(request: RecommendRequest, matcher: ExperienceMatcher = Depends(get_matcher)):
    """Get experiences for an activity in a location"""
    logger.info(f"Recommend request: activity='{request.activity}' location='{request.location}' mode={request.mode.value}")

    return await matcher.recommend(
        activity=request.activity,
        full_activity_label=request.full_activity_label,
        target_location=request.location,
        mode=request.mode
    )


@router.post("/from-source", response_model=SourceRecommendation)
async def recommend_from_source(request: FromSourceRequest, matcher: ExperienceMatcher = Depends(get_matcher)):
    """Get experiences for a shared reel / post"""
    logger.info(f"From-source request: {request.source_url}")

    try:
        return await matcher.recommend_from_source(
            source_url=request.source_url,
            user_location=request.user_location,
            mode=request.mode
        )
    except ContentAnalysisError as e:
        logger.warning(f"Could not understand {request.source_url}: {e}")
        raise HTTPException(status_code=422, detail="Could not understand this content")


@router.get("/cache/stats")
async def cache_stats(matcher: ExperienceMatcher = Depends(get_matcher)):
    """Statistics for both caches"""
    return {
        "query_cache": matcher.query_cache.stats(),
        "analysis_cache": await matcher.analysis_cache.stats(),
    }
