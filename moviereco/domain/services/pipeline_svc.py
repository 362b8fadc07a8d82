import logging
import time
from typing import Dict, List, Optional

from moviereco.domain.errors import InvalidRequestError, OutputValidationError, UpstreamUnavailableError
from moviereco.domain.models.movie import (
    RankingOutput,
    Recommendation,
    RecommendationCandidate,
    RecommendationResult,
)
from moviereco.domain.repositories.movie_repo import MovieRepo
from moviereco.domain.repositories.vector_index_repo import VectorIndexRepo
from moviereco.domain.services.candidate_assembler import CandidateAssembler
from moviereco.domain.services.constants import (
    BLOCKED_REASONING,
    DEFAULT_RECOMMENDATION_LIMIT,
    INVALID_OUTPUT_REASONING,
    MAX_CANDIDATES_FOR_CONTEXT,
    MAX_RECOMMENDATIONS,
    MAX_RECOMMENDATION_TOKENS,
    NO_MATCHES_REASONING,
    RECOMMENDATION_TEMPERATURE,
    RETRIEVAL_K,
    UNAVAILABLE_REASONING,
)
from moviereco.domain.services.enrichment_svc import BackfillScheduler
from moviereco.domain.services.guardrails import (
    sanitize_input,
    validate_recommendation_output,
    wrap_user_input,
)
from moviereco.domain.services.llm_client import ModelTier, ReasoningClient
from moviereco.domain.services.prompts import recommendation_system, recommendation_user
from moviereco.domain.services.retrieval import Retriever

logger = logging.getLogger(__name__)


class RecommendationPipeline:
    """
    End-to-end query -> ranked recommendations.

    High-level flow:
      1) Sanitize the query once (blocked input stops here, no downstream call).
      2) Stop early when the vector index is missing or empty.
      3) Enhance the query, embed it, retrieve top RETRIEVAL_K by cosine.
         If retrieval itself fails, fall back to the catalog popularity sample.
      4) Assemble candidates (catalog row + cached enrichment), drop stale ids.
      5) Ask the LLM to rank at most MAX_CANDIDATES_FOR_CONTEXT of them.
      6) Validate the ranking against the ids actually presented.
      7) Build the result, then hand un-enriched movies to the backfill scheduler.

    Every degraded path returns an explained empty result instead of raising.
    """

    def __init__(
        self,
        *,
        retriever: Retriever,
        index: VectorIndexRepo,
        assembler: CandidateAssembler,
        movies: MovieRepo,
        llm: ReasoningClient,
        backfill: BackfillScheduler,
    ):
        self.retriever = retriever
        self.index = index
        self.assembler = assembler
        self.movies = movies
        self.llm = llm
        self.backfill = backfill

    async def recommend(self, query: str, limit: int = DEFAULT_RECOMMENDATION_LIMIT) -> RecommendationResult:
        t0 = time.perf_counter()
        if limit < 1:
            raise InvalidRequestError("limit must be at least 1")

        # ---- 1) Input guardrail --------------------------------------------
        sanitized = sanitize_input(query)
        if sanitized.blocked:
            logger.warning(f"Query blocked: {sanitized.reason}")
            return RecommendationResult(reasoning=BLOCKED_REASONING)
        if sanitized.reason:
            logger.info(f"Query sanitized: {sanitized.reason}")
        safe_query = sanitized.text
        if not safe_query:
            raise InvalidRequestError("Query is required and must be a non-empty string")

        # ---- 2) Index state ------------------------------------------------
        try:
            state = await self.index.state()
        except Exception as e:
            logger.error(f"Vector index unavailable: {e}")
            state = None
        if state in ("missing", "empty"):
            logger.info(f"Vector index is {state}, no candidates")
            return RecommendationResult(reasoning=NO_MATCHES_REASONING)

        # ---- 3) Retrieval (or degraded catalog sample) ---------------------
        enhanced_query: Optional[str] = None
        if state is None:
            candidates = await self._fallback_candidates()
        else:
            outcome = await self.retriever.retrieve(safe_query, k=RETRIEVAL_K)
            enhanced_query = outcome.enhanced_query
            if outcome.failed:
                candidates = await self._fallback_candidates()
            elif not outcome.hits:
                return RecommendationResult(reasoning=NO_MATCHES_REASONING)
            else:
                # ---- 4) Assembly ---------------------------------------
                scores = {h.movie_id: h.similarity for h in outcome.hits}
                candidates = await self.assembler.assemble([h.movie_id for h in outcome.hits], scores)

        if candidates is None:
            return RecommendationResult(reasoning=UNAVAILABLE_REASONING)
        if not candidates:
            return RecommendationResult(reasoning=NO_MATCHES_REASONING)

        # ---- 5-6) Ranking + output guardrail -------------------------------
        presented = candidates[:MAX_CANDIDATES_FOR_CONTEXT]
        capped = min(limit, MAX_RECOMMENDATIONS)
        try:
            ranking = await self._rank(safe_query, presented, capped)
        except UpstreamUnavailableError as e:
            logger.error(f"Recommendation ranking unavailable: {e}")
            return RecommendationResult(reasoning=UNAVAILABLE_REASONING)
        except OutputValidationError as e:
            logger.warning(f"Recommendation validation error: {e} {e.errors}")
            return RecommendationResult(reasoning=INVALID_OUTPUT_REASONING)

        # ---- 7) Build result, then backfill --------------------------------
        by_id: Dict[int, RecommendationCandidate] = {c.movie_id: c for c in presented}
        recommendations: List[Recommendation] = []
        for ranked in ranking.recommendations[:capped]:
            cand = by_id[ranked.movie_id]
            # Ranking-supplied enrichment fills the response only; the cache is written by backfill
            enrichment = cand.enrichment or ranked.enrichment
            recommendations.append(
                Recommendation(
                    movie=cand.movie.model_copy(update={"enrichment": enrichment}),
                    match_score=ranked.match_score,
                    match_reason=ranked.match_reason,
                )
            )

        result = RecommendationResult(
            recommendations=recommendations,
            reasoning=ranking.reasoning,
            enhanced_query=enhanced_query if enhanced_query and enhanced_query != safe_query else None,
        )

        self.backfill.schedule(
            by_id[r.movie.movie_id].movie for r in recommendations if not by_id[r.movie.movie_id].is_enriched
        )

        logger.info(
            f"recommend done candidates={len(candidates)} presented={len(presented)} "
            f"returned={len(recommendations)} time={time.perf_counter() - t0:.3f}s"
        )
        return result

    async def _fallback_candidates(self) -> Optional[List[RecommendationCandidate]]:
        """Popular catalog movies, used when vector retrieval is down. None if the catalog is down too."""
        logger.warning("Falling back to catalog sample for candidates")
        try:
            sample = await self.movies.list_sample(MAX_CANDIDATES_FOR_CONTEXT)
            return await self.assembler.assemble([m.movie_id for m in sample])
        except Exception as e:
            logger.error(f"Catalog sample fallback failed: {e}")
            return None

    async def _rank(
        self,
        safe_query: str,
        presented: List[RecommendationCandidate],
        limit: int,
    ) -> RankingOutput:
        data = await self.llm.complete_json(
            recommendation_system(limit),
            recommendation_user(wrap_user_input(safe_query), presented),
            tier=ModelTier.FULL,
            temperature=RECOMMENDATION_TEMPERATURE,
            max_tokens=MAX_RECOMMENDATION_TOKENS,
        )
        validated = validate_recommendation_output(data, [c.movie_id for c in presented])
        if not validated.valid:
            raise OutputValidationError("Invalid recommendation output", validated.errors)
        if validated.errors:
            logger.warning(f"Recommendation output partially invalid: {validated.errors}")
        return validated.data
