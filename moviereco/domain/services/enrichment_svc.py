# moviereco/domain/services/enrichment_svc.py
"""
Lazy, at-most-once-per-movie enrichment.

EnrichmentService.ensure() is the unit of work: cache read -> one LLM call ->
output guardrail -> upsert. BackfillScheduler runs that unit as detached asyncio
tasks so the recommendation response never waits for it.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Set

from redis.asyncio import Redis

from moviereco.domain.errors import OutputValidationError
from moviereco.domain.models.movie import EnrichmentAttributes, Movie
from moviereco.domain.repositories.enrichment_repo import EnrichmentCacheRepo
from moviereco.domain.services.constants import ENRICHMENT_TEMPERATURE, MAX_ENRICHMENT_TOKENS
from moviereco.domain.services.guardrails import validate_enrichment_output
from moviereco.domain.services.llm_client import ModelTier, ReasoningClient
from moviereco.domain.services.prompts import ENRICHMENT_SYSTEM, enrichment_user
from moviereco.utils.locks import RedisLock

logger = logging.getLogger(__name__)


class EnrichmentService:
    def __init__(
        self,
        llm: ReasoningClient,
        cache: EnrichmentCacheRepo,
        redis: Optional[Redis] = None,
        lock_ttl: int = 60,
    ):
        self.llm = llm
        self.cache = cache
        self.redis = redis
        self.lock_ttl = lock_ttl

    async def compute(self, movie: Movie) -> EnrichmentAttributes:
        """One reasoning call, validated. Raises OutputValidationError on a bad shape."""
        data = await self.llm.complete_json(
            ENRICHMENT_SYSTEM,
            enrichment_user(movie),
            tier=ModelTier.FULL,
            temperature=ENRICHMENT_TEMPERATURE,
            max_tokens=MAX_ENRICHMENT_TOKENS,
        )
        validated = validate_enrichment_output(data)
        if not validated.valid:
            logger.warning(f"Enrichment validation errors for movie_id={movie.movie_id}: {validated.errors}")
            raise OutputValidationError(
                f"Invalid enrichment output: {', '.join(validated.errors)}", validated.errors
            )
        return validated.data

    async def ensure(self, movie: Movie) -> Optional[EnrichmentAttributes]:
        """
        Return the cached record, computing and storing it first when absent.
        Returns None when another worker holds the lock for this movie.
        """
        if cached := await self.cache.get(movie.movie_id):
            logger.debug(f"Enrichment cache hit movie_id={movie.movie_id}")
            return cached

        lock = RedisLock(self.redis, f"enrich:{movie.movie_id}", ttl=self.lock_ttl) if self.redis else None
        if lock and not await lock.acquire():
            logger.info(f"Enrichment already in progress elsewhere movie_id={movie.movie_id}")
            return None
        try:
            # Double-check after acquiring the lock
            if lock and (cached := await self.cache.get(movie.movie_id)):
                return cached
            attributes = await self.compute(movie)
            stored = await self.cache.upsert(movie.movie_id, attributes)
            logger.info(f"Enrichment stored movie_id={movie.movie_id} score={stored.effectiveness_score}")
            return stored
        finally:
            if lock:
                await lock.release()


class BackfillScheduler:
    """
    Fire-and-forget enrichment. Each movie is its own task; failures are logged here
    and never reach the request that triggered them.
    """

    def __init__(self, service: EnrichmentService):
        self.service = service
        self._tasks: Set[asyncio.Task] = set()
        self._in_flight: Set[int] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, movies: Iterable[Movie]) -> int:
        """Hand off un-enriched movies; returns how many new tasks were started."""
        started = 0
        for movie in movies:
            if movie.movie_id in self._in_flight:
                continue
            self._in_flight.add(movie.movie_id)
            task = asyncio.create_task(self._run(movie), name=f"enrich-{movie.movie_id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            started += 1
        if started:
            logger.info(f"Scheduled {started} enrichment backfill(s)")
        return started

    async def _run(self, movie: Movie) -> None:
        try:
            await self.service.ensure(movie)
        except asyncio.CancelledError:
            logger.info(f"Enrichment backfill cancelled movie_id={movie.movie_id}")
            raise
        except Exception as e:
            logger.error(f"Enrichment backfill failed movie_id={movie.movie_id}: {e}")
        finally:
            self._in_flight.discard(movie.movie_id)

    async def wait(self) -> None:
        """Wait for every outstanding backfill (tests, graceful drain)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding backfills."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} enrichment backfill(s) on shutdown")
