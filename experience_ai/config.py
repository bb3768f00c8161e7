"""
Experience Matching Service Configuration
Loads settings from environment variables
"""

import os
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment"""

    # OpenAI Configuration (relevance oracle + content analyzer)
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_VISION_MODEL: str = os.getenv("OPENAI_VISION_MODEL", "gpt-4o")

    # Redis Configuration (durable analysis cache)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    REDIS_ENABLED: bool = os.getenv("REDIS_ENABLED", "true").lower() == "true"

    # Inventory provider (Viator partner API)
    INVENTORY_API_KEY: str = os.getenv("VIATOR_API_KEY", "")
    INVENTORY_BASE_URL: str = os.getenv("VIATOR_API_URL", "https://api.viator.com/partner")
    AFFILIATE_PARTNER_ID: str = os.getenv("VIATOR_PARTNER_ID", "P00285354")
    AFFILIATE_CAMPAIGN_ID: str = os.getenv("VIATOR_CAMPAIGN_ID", "42383")
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "EUR")

    # Geocoder (Nominatim-compatible)
    GEOCODER_BASE_URL: str = os.getenv("GEOCODER_BASE_URL", "https://nominatim.openstreetmap.org")
    GEOCODER_USER_AGENT: str = os.getenv("GEOCODER_USER_AGENT", "experience-ai/1.0")

    # Matching policy
    TARGET_COUNT: int = int(os.getenv("TARGET_COUNT", "8"))
    MAX_INTERNAL_CAP: int = int(os.getenv("MAX_INTERNAL_CAP", "3"))
    RELEVANCE_FILTER_THRESHOLD: int = int(os.getenv("RELEVANCE_FILTER_THRESHOLD", "12"))
    CONFIDENCE_FLOOR: float = float(os.getenv("CONFIDENCE_FLOOR", "0.3"))
    MAX_PRICE: float = float(os.getenv("MAX_PRICE", "1000"))
    INVENTORY_SEARCH_LIMIT: int = int(os.getenv("INVENTORY_SEARCH_LIMIT", "20"))
    DEFAULT_CITY: str = os.getenv("DEFAULT_CITY", "Lisbon")

    # Internal catalog seed (JSON list of experiences)
    CATALOG_SEED_PATH: str = os.getenv(
        "CATALOG_SEED_PATH",
        os.path.join(os.path.dirname(__file__), "data", "catalog_seed.json")
    )

    # Timeouts (seconds)
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "8"))
    INVENTORY_TIMEOUT_SECONDS: float = float(os.getenv("INVENTORY_TIMEOUT_SECONDS", "15"))
    CATALOG_TIMEOUT_SECONDS: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "5"))
    ANALYZER_TIMEOUT_SECONDS: float = float(os.getenv("ANALYZER_TIMEOUT_SECONDS", "45"))

    # Cache Settings
    QUERY_CACHE_TTL_SECONDS: int = int(os.getenv("QUERY_CACHE_TTL_SECONDS", "600"))
    ANALYSIS_CACHE_TTL_DAYS: int = int(os.getenv("ANALYSIS_CACHE_TTL_DAYS", "30"))
    ANALYSIS_CACHE_SWEEP_INTERVAL: int = int(os.getenv("ANALYSIS_CACHE_SWEEP_INTERVAL", "3600"))
    QUERY_CACHE_MAX_ENTRIES: int = int(os.getenv("QUERY_CACHE_MAX_ENTRIES", "1000"))
    MEMO_MAX_ENTRIES: int = int(os.getenv("MEMO_MAX_ENTRIES", "512"))

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_ENV: str = os.getenv("API_ENV", "development")

    # CORS Configuration
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:8081,http://localhost:19006")

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def redis_url(self) -> str:
        """Get Redis connection URL"""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def openai_enabled(self) -> bool:
        """True when a usable OpenAI key is configured"""
        return bool(self.OPENAI_API_KEY) and not self.OPENAI_API_KEY.startswith("sk-your")


# Global settings instance
settings = Settings()
