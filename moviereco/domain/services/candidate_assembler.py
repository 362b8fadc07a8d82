import logging
from typing import Dict, List, Optional, Sequence

from moviereco.domain.models.movie import RecommendationCandidate
from moviereco.domain.repositories.enrichment_repo import EnrichmentCacheRepo
from moviereco.domain.repositories.movie_repo import MovieRepo

logger = logging.getLogger(__name__)


class CandidateAssembler:
    """Joins retrieval hits with catalog rows and cached enrichment."""

    def __init__(self, movies: MovieRepo, enrichments: EnrichmentCacheRepo):
        self.movies = movies
        self.enrichments = enrichments

    async def assemble(
        self,
        movie_ids: Sequence[int],
        scores: Optional[Dict[int, float]] = None,
    ) -> List[RecommendationCandidate]:
        """
        Keep input order, drop ids the catalog no longer knows (stale vector entries),
        attach enrichment when cached. Missing enrichment stays None.
        """
        ids = list(dict.fromkeys(movie_ids))
        if not ids:
            return []

        by_id = await self.movies.get_many_with_ratings(ids)
        enriched = await self.enrichments.get_many(list(by_id))

        missing = [i for i in ids if i not in by_id]
        if missing:
            logger.warning(f"Dropping {len(missing)} ids without a catalog row: {missing[:20]}")

        scores = scores or {}
        return [
            RecommendationCandidate(
                movie=by_id[i],
                enrichment=enriched.get(i),
                score=scores.get(i),
            )
            for i in ids
            if i in by_id
        ]
