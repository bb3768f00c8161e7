"""
Durable Analysis Cache
Remembers what a shared source URL contained and which experiences it produced.

- Redis hash per URL (record JSON + hit counter), written in one transaction
- Hits are counted under WATCH, so an expired key is never recreated
- Falls back to in-memory storage if Redis is unavailable
- TTL counted from creation; hit count is informational and never evicts
- Any store error is logged and treated as a miss
"""

import asyncio
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import WatchError

from ..config import settings
from ..schemas import AnalysisCacheRecord, ContentAnalysis, MatchResult, Mode
from .redis_client import get_redis_client


KEY_PREFIX = "analysis:"
FIELD_RECORD = "record"
FIELD_HITS = "hits"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisCache:
    """
    Long-lived cache of content analyses keyed by source URL.

    Usage:
        cache = AnalysisCache()
        record = await cache.get(url)
        if record is None:
            record = await cache.put(url, analysis, result, mode)
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        ttl_days: Optional[int] = None,
        sweep_interval: Optional[int] = None,
        use_redis: Optional[bool] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize analysis cache

        Args:
            redis_client: Explicit client (default: shared client from settings)
            ttl_days: Days a record stays valid
            sweep_interval: Seconds between background sweeps of the memory store
            use_redis: Force Redis on/off (default: settings.REDIS_ENABLED)
            clock: Returns the current UTC datetime
        """
        self.ttl = timedelta(days=settings.ANALYSIS_CACHE_TTL_DAYS if ttl_days is None else ttl_days)
        self.sweep_interval = settings.ANALYSIS_CACHE_SWEEP_INTERVAL if sweep_interval is None else sweep_interval
        self.use_redis = settings.REDIS_ENABLED if use_redis is None else use_redis
        self._now = clock or _utcnow

        self.redis_client: Optional[redis.Redis] = redis_client

        # Fallback in-memory storage
        self.memory_store: Dict[str, AnalysisCacheRecord] = {}

        self._initialized = False
        self._running = False
        self._tasks: List[asyncio.Task] = []

    async def _ensure_connected(self):
        """Ensure Redis connection is established"""
        if self._initialized:
            return

        if not self.use_redis:
            self.redis_client = None
            self._initialized = True
            logger.info("AnalysisCache using in-memory storage (Redis disabled)")
            return

        try:
            if self.redis_client is None:
                self.redis_client = get_redis_client()
            await self.redis_client.ping()
            logger.info("AnalysisCache connected to Redis")
        except Exception as e:
            logger.warning(f"Redis connection failed, using in-memory storage: {e}")
            self.redis_client = None
        self._initialized = True

    @staticmethod
    def _get_key(source_url: str) -> str:
        digest = hashlib.sha256(source_url.strip().encode("utf-8")).hexdigest()
        return f"{KEY_PREFIX}{digest}"

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client is not None else "memory"

    # ============================================
    # Read / write
    # ============================================

    async def get(self, source_url: str) -> Optional[AnalysisCacheRecord]:
        """
        Look up a source URL.

        Returns:
            AnalysisCacheRecord with the incremented hit count, or None on miss,
            expiry or store error
        """
        await self._ensure_connected()
        key = self._get_key(source_url)
        now = self._now()

        try:
            if self.redis_client:
                # WATCH so the increment never recreates a key that expired after the read
                async with self.redis_client.pipeline(transaction=True) as pipe:
                    await pipe.watch(key)
                    data = await pipe.hgetall(key)
                    if not data or FIELD_RECORD not in data:
                        return None

                    record = AnalysisCacheRecord.model_validate_json(data[FIELD_RECORD])
                    if record.expires_at <= now:
                        await pipe.delete(key)
                        logger.info(f"[Analysis Cache] expired: {source_url}")
                        return None

                    pipe.multi()
                    pipe.hincrby(key, FIELD_HITS, 1)
                    try:
                        hits, = await pipe.execute()
                    except WatchError:
                        logger.info(f"[Analysis Cache] record changed during read, treating as miss: {source_url}")
                        return None
                record = record.model_copy(update={"hit_count": hits})
            else:
                record = self.memory_store.get(key)
                if record is None:
                    return None

                if record.expires_at <= now:
                    self.memory_store.pop(key, None)
                    logger.info(f"[Analysis Cache] expired: {source_url}")
                    return None

                record = record.model_copy(update={"hit_count": record.hit_count + 1})
                self.memory_store[key] = record

            logger.info(f"[Analysis Cache Hit] {source_url} (hits: {record.hit_count})")
            return record.model_copy(deep=True)

        except Exception as e:
            logger.error(f"Analysis cache read failed, treating as miss: {e}")
            return None

    async def put(
        self,
        source_url: str,
        analysis: ContentAnalysis,
        result: MatchResult,
        mode: Mode
    ) -> AnalysisCacheRecord:
        """
        Store the analysis and computed experiences for a URL.

        The record is always returned, even when the store write fails.
        """
        await self._ensure_connected()
        key = self._get_key(source_url)
        created_at = self._now()

        record = AnalysisCacheRecord(
            source_url=source_url,
            analysis=analysis.model_copy(deep=True),
            result=result.model_copy(deep=True),
            mode=mode,
            created_at=created_at,
            expires_at=created_at + self.ttl,
            hit_count=0,
        )

        try:
            if self.redis_client:
                async with self.redis_client.pipeline(transaction=True) as pipe:
                    pipe.hset(key, mapping={FIELD_RECORD: record.model_dump_json(), FIELD_HITS: 0})
                    pipe.expire(key, int(self.ttl.total_seconds()))
                    await pipe.execute()
                logger.debug(f"Saved analysis to Redis: {source_url}")
            else:
                self.memory_store[key] = record
                logger.debug(f"Saved analysis to memory: {source_url}")
        except Exception as e:
            logger.error(f"Analysis cache write failed: {e}")

        return record

    async def invalidate(self, source_url: str) -> bool:
        await self._ensure_connected()
        key = self._get_key(source_url)

        try:
            if self.redis_client:
                return bool(await self.redis_client.delete(key))
            return self.memory_store.pop(key, None) is not None
        except Exception as e:
            logger.error(f"Analysis cache delete failed: {e}")
            return False

    # ============================================
    # Maintenance
    # ============================================

    async def sweep_expired(self) -> int:
        """Drop expired records from the memory store (Redis expires keys itself)"""
        now = self._now()
        expired = [key for key, record in self.memory_store.items() if record.expires_at <= now]
        for key in expired:
            self.memory_store.pop(key, None)

        if expired:
            logger.info(f"[Analysis Cache] swept {len(expired)} expired records")
        return len(expired)

    async def clear(self) -> int:
        """Remove every analysis record. Returns how many were removed."""
        await self._ensure_connected()

        try:
            if self.redis_client:
                keys = [key async for key in self.redis_client.scan_iter(match=f"{KEY_PREFIX}*")]
                deleted = await self.redis_client.delete(*keys) if keys else 0
            else:
                deleted = len(self.memory_store)
                self.memory_store.clear()

            logger.info(f"Cleared {deleted} analysis cache records")
            return deleted
        except Exception as e:
            logger.error(f"Error clearing analysis cache: {e}")
            return 0

    async def stats(self) -> dict:
        """
        Get cache statistics

        Returns:
            dict: backend, record count, total hits and TTL
        """
        await self._ensure_connected()

        try:
            if self.redis_client:
                entries = 0
                total_hits = 0
                async for key in self.redis_client.scan_iter(match=f"{KEY_PREFIX}*"):
                    entries += 1
                    hits = await self.redis_client.hget(key, FIELD_HITS)
                    total_hits += int(hits or 0)
            else:
                entries = len(self.memory_store)
                total_hits = sum(record.hit_count for record in self.memory_store.values())

            return {
                "backend": self.backend,
                "entries": entries,
                "total_hits": total_hits,
                "ttl_days": self.ttl.days,
            }
        except Exception as e:
            logger.error(f"Error getting analysis cache stats: {e}")
            return {"backend": self.backend, "error": str(e)}

    async def start(self):
        """Start the periodic sweep"""
        if self._running:
            logger.warning("AnalysisCache sweep already running")
            return

        await self._ensure_connected()
        self._running = True
        self._tasks = [asyncio.create_task(self._periodic_sweep())]
        logger.info(f"AnalysisCache sweep started (every {self.sweep_interval}s)")

    async def stop(self):
        """Stop the periodic sweep"""
        if not self._running:
            return

        self._running = False
        for task in self._tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("AnalysisCache sweep stopped")

    async def _periodic_sweep(self):
        try:
            while self._running:
                await asyncio.sleep(self.sweep_interval)

                if not self._running:
                    break

                try:
                    await self.sweep_expired()
                except Exception as e:
                    logger.error(f"Analysis cache sweep error: {e}")

        except asyncio.CancelledError:
            logger.info("Analysis cache sweep cancelled")
