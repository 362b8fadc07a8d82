import pytest
from unittest.mock import AsyncMock, MagicMock

from conftest import make_movie
from moviereco.domain.errors import NotFoundError, OutputValidationError
from moviereco.domain.models.movie import UserRating
from moviereco.domain.services.preferences_svc import PreferenceService

VALID_OUTPUT = {
    "summary": "Gravitates to character-driven dramas.",
    "favorite_genres": ["Drama", "Crime", "Romance"],
    "likes_big_budget": False,
    "prefers_classics": True,
}


def _history(n):
    return [UserRating(movie=make_movie(i, title=f"Film {i}"), rating=(i % 5) + 0.5) for i in range(1, n + 1)]


@pytest.fixture
def movies():
    repo = MagicMock()
    repo.list_user_history = AsyncMock(return_value=_history(40))
    repo.user_rating_stats = AsyncMock(return_value=(40, 2.5))
    repo.list_user_ids = AsyncMock(return_value=[1, 2, 3])
    return repo


@pytest.fixture
def llm():
    mock = MagicMock()
    mock.complete_json = AsyncMock(return_value=dict(VALID_OUTPUT))
    return mock


class TestPreferenceService:

    @pytest.mark.asyncio
    async def test_summary_with_stats(self, movies, llm):
        result = await PreferenceService(movies, llm).summarize(7)

        assert result.user_id == 7
        assert result.summary == VALID_OUTPUT["summary"]
        assert result.rating_count == 40
        assert result.average_rating == 2.5
        assert len(result.top_rated) == 5
        assert all(t.rating == 4.5 for t in result.top_rated)

    @pytest.mark.asyncio
    async def test_prompt_holds_top_30_ratings(self, movies, llm):
        await PreferenceService(movies, llm).summarize(7)

        prompt = llm.complete_json.call_args.args[1]
        assert prompt.count("- Rating: ") == 30
        assert "Rating: 0.5/5" not in prompt

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_found(self, movies, llm):
        movies.user_rating_stats.return_value = (0, None)

        with pytest.raises(NotFoundError):
            await PreferenceService(movies, llm).summarize(999)
        movies.list_user_history.assert_not_awaited()
        llm.complete_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stats_count_ratings_of_uncataloged_movies(self, movies, llm):
        movies.user_rating_stats.return_value = (42, 29 / 12)

        result = await PreferenceService(movies, llm).summarize(7)

        assert result.rating_count == 42
        assert result.average_rating == 2.42
        assert llm.complete_json.call_args.args[1].count("- Rating: ") == 30

    @pytest.mark.asyncio
    async def test_user_with_only_uncataloged_ratings_still_gets_a_summary(self, movies, llm):
        movies.user_rating_stats.return_value = (3, 4.0)
        movies.list_user_history.return_value = []

        result = await PreferenceService(movies, llm).summarize(7)

        assert result.rating_count == 3
        assert result.average_rating == 4.0
        assert result.top_rated == []

    @pytest.mark.asyncio
    async def test_invalid_output_raises(self, movies, llm):
        llm.complete_json.return_value = {**VALID_OUTPUT, "prefers_classics": "sometimes"}

        with pytest.raises(OutputValidationError) as exc:
            await PreferenceService(movies, llm).summarize(7)
        assert exc.value.errors

    @pytest.mark.asyncio
    async def test_list_user_ids(self, movies, llm):
        assert await PreferenceService(movies, llm).list_user_ids(3) == [1, 2, 3]
        movies.list_user_ids.assert_awaited_once_with(3)
