import logging
from typing import Any, List, Optional, Sequence

from moviereco.domain.errors import InvalidRequestError, NotFoundError
from moviereco.domain.models.movie import ComparisonResult, ComparisonWinner, Movie
from moviereco.domain.repositories.enrichment_repo import EnrichmentCacheRepo
from moviereco.domain.repositories.movie_repo import MovieRepo
from moviereco.domain.services.constants import (
    COMPARISON_TEMPERATURE,
    MAX_COMPARE_MOVIES,
    MAX_COMPARISON_TOKENS,
    MIN_COMPARE_MOVIES,
)
from moviereco.domain.services.enrichment_svc import BackfillScheduler
from moviereco.domain.services.llm_client import ModelTier, ReasoningClient
from moviereco.domain.services.prompts import COMPARISON_SYSTEM, comparison_user

logger = logging.getLogger(__name__)


def _winner(raw: Any) -> Optional[ComparisonWinner]:
    # Comparison output is shaped, not validated: free text plus an optional winner.
    if not isinstance(raw, dict):
        return None
    movie_id = raw.get("movie_id")
    return ComparisonWinner(
        movie_id=movie_id if isinstance(movie_id, int) and not isinstance(movie_id, bool) else None,
        title=raw.get("title") if isinstance(raw.get("title"), str) else None,
        reason=raw.get("reason") if isinstance(raw.get("reason"), str) else None,
    )


class CompareService:
    def __init__(
        self,
        movies: MovieRepo,
        enrichments: EnrichmentCacheRepo,
        llm: ReasoningClient,
        backfill: BackfillScheduler,
    ):
        self.movies = movies
        self.enrichments = enrichments
        self.llm = llm
        self.backfill = backfill

    async def compare(self, movie_ids: Sequence[int]) -> ComparisonResult:
        if not isinstance(movie_ids, (list, tuple)) or len(movie_ids) < MIN_COMPARE_MOVIES:
            raise InvalidRequestError(f"Need at least {MIN_COMPARE_MOVIES} movie IDs")
        if len(movie_ids) > MAX_COMPARE_MOVIES:
            raise InvalidRequestError(f"Max {MAX_COMPARE_MOVIES} movies")

        by_id = await self.movies.get_many_with_ratings(movie_ids)
        for movie_id in movie_ids:
            if movie_id not in by_id:
                raise NotFoundError(f"Movie {movie_id} not found")

        enriched = await self.enrichments.get_many(list(by_id))
        movies: List[Movie] = [
            by_id[i].model_copy(update={"enrichment": enriched.get(i)}) for i in movie_ids
        ]

        data = await self.llm.complete_json(
            COMPARISON_SYSTEM,
            comparison_user(movies),
            tier=ModelTier.FULL,
            temperature=COMPARISON_TEMPERATURE,
            max_tokens=MAX_COMPARISON_TOKENS,
        )
        comparison = data.get("comparison")
        result = ComparisonResult(
            movies=movies,
            comparison=comparison if isinstance(comparison, str) else "",
            winner=_winner(data.get("winner")),
        )

        self.backfill.schedule(m for m in movies if m.enrichment is None)
        return result
