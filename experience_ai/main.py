"""
Experience Matching Service - FastAPI Application
Matches activities (typed or seen in shared reels) to bookable experiences.

LLM Provider:
- If OPENAI_API_KEY is set: OpenAI relevance oracle, boring classifier and content analyzer
- If not: keyword boring classifier only, no relevance filtering, no content analysis
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .agents.experience_matcher import ExperienceMatcher
from .algorithms.boring_gate import BoringGate, KeywordBoringClassifier
from .api.recommendations import router as recommendations_router
from .cache.analysis_cache import AnalysisCache
from .cache.query_cache import QueryCache
from .cache.redis_client import check_redis_health
from .config import settings
from .interfaces.catalog_store import CatalogStore
from .interfaces.geocoder import Geocoder
from .interfaces.inventory_provider import ViatorClient
from .llm.boring_classifier import OpenAIBoringClassifier
from .llm.content_analyzer import ContentAnalyzer
from .llm.relevance_filter import OpenAIRelevanceOracle, RelevanceFilter


def build_matcher() -> ExperienceMatcher:
    """Wire the production collaborators from settings"""
    if settings.openai_enabled:
        classifier = OpenAIBoringClassifier()
        relevance_filter = RelevanceFilter(oracle=OpenAIRelevanceOracle())
    else:
        classifier = KeywordBoringClassifier()
        relevance_filter = RelevanceFilter()

    return ExperienceMatcher(
        catalog=CatalogStore(),
        provider=ViatorClient(),
        relevance_filter=relevance_filter,
        gate=BoringGate(classifier),
        analyzer=ContentAnalyzer(),
        geocoder=Geocoder(),
        query_cache=QueryCache(),
        analysis_cache=AnalysisCache(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info("=" * 50)
    logger.info("Starting Experience Matching Service")
    logger.info("=" * 50)
    logger.info(f"Environment: {settings.API_ENV}")
    logger.info(f"LLM Provider: {'OpenAI (' + settings.OPENAI_MODEL + ')' if settings.openai_enabled else 'disabled'}")

    matcher = build_matcher()
    app.state.matcher = matcher
    await matcher.analysis_cache.start()

    yield

    logger.info("Shutting down Experience Matching Service")
    await matcher.analysis_cache.stop()


app = FastAPI(
    title="Experience Matching Service",
    description="Matches activities seen in reels or typed by users to bookable experiences.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(recommendations_router)


@app.get("/")
async def root():
    return {
        "service": "experience-matching-service",
        "version": "1.0.0",
        "endpoints": [
            "/health",
            "/api/ai/experiences/recommend",
            "/api/ai/experiences/from-source",
            "/api/ai/experiences/cache/stats"
        ]
    }


@app.get("/health")
async def health_check():
    """Detailed health check"""
    matcher = getattr(app.state, "matcher", None)
    redis_status = "connected" if await check_redis_health() else "unavailable"

    return {
        "status": "healthy",
        "service": "experience-matching-service",
        "version": "1.0.0",
        "components": {
            "matcher": "ready" if matcher is not None else "unavailable",
            "redis": redis_status,
            "openai": "configured" if settings.openai_enabled else "not configured",
            "inventory_provider": "configured" if settings.INVENTORY_API_KEY else "not configured",
        }
    }


# ============================================
# Main
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "experience_ai.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_ENV == "development"
    )
