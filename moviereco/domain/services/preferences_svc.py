import logging

from moviereco.domain.errors import NotFoundError, OutputValidationError
from moviereco.domain.models.movie import PreferenceSummary, TopRatedMovie
from moviereco.domain.repositories.movie_repo import MovieRepo
from moviereco.domain.services.constants import (
    MAX_RATINGS_FOR_SUMMARY,
    MAX_RATING_SUMMARY_TOKENS,
    SUMMARY_TEMPERATURE,
    TOP_RATED_COUNT,
)
from moviereco.domain.services.guardrails import validate_preferences_output
from moviereco.domain.services.llm_client import ModelTier, ReasoningClient
from moviereco.domain.services.prompts import PREFERENCES_SYSTEM, preferences_user

logger = logging.getLogger(__name__)


class PreferenceService:
    def __init__(self, movies: MovieRepo, llm: ReasoningClient):
        self.movies = movies
        self.llm = llm

    async def summarize(self, user_id: int) -> PreferenceSummary:
        """
        Summarize a user's taste from their full rating history.
        Unknown users raise NotFoundError; an invalid LLM answer raises OutputValidationError
        (a preference summary is a single claim, there is nothing partial to return).
        """
        rating_count, average = await self.movies.user_rating_stats(user_id)
        if not rating_count:
            raise NotFoundError(f"User {user_id} not found")

        # Ratings of movies missing from the catalog count in the stats, not in the prompt
        history = await self.movies.list_user_history(user_id)
        ranked = sorted(history, key=lambda r: r.rating, reverse=True)
        data = await self.llm.complete_json(
            PREFERENCES_SYSTEM,
            preferences_user(user_id, ranked[:MAX_RATINGS_FOR_SUMMARY]),
            tier=ModelTier.FULL,
            temperature=SUMMARY_TEMPERATURE,
            max_tokens=MAX_RATING_SUMMARY_TOKENS,
        )
        validated = validate_preferences_output(data)
        if not validated.valid:
            logger.warning(f"Preferences validation errors user_id={user_id}: {validated.errors}")
            raise OutputValidationError(
                f"Invalid preferences output: {', '.join(validated.errors)}", validated.errors
            )

        prefs = validated.data
        return PreferenceSummary(
            user_id=user_id,
            summary=prefs.summary,
            favorite_genres=prefs.favorite_genres,
            likes_big_budget=prefs.likes_big_budget,
            prefers_classics=prefs.prefers_classics,
            average_rating=round(average, 2),
            rating_count=rating_count,
            top_rated=[TopRatedMovie(title=r.movie.title, rating=r.rating) for r in ranked[:TOP_RATED_COUNT]],
        )

    async def list_user_ids(self, limit: int = 20) -> list[int]:
        return await self.movies.list_user_ids(limit)
