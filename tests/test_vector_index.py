"""
Tests for VectorIndexRepo (exact cosine scan and Atlas score mapping) and the embedding client.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from conftest import AsyncCursor, embedding_response, make_movie
from moviereco.domain.errors import UpstreamUnavailableError
from moviereco.domain.repositories.vector_index_repo import VectorIndexRepo
from moviereco.domain.services.embedding_svc import EmbeddingClient, EmbeddingService, build_movie_text
from moviereco.domain.services.retrieval import Retriever


@pytest.fixture
def index(fake_db):
    return VectorIndexRepo(fake_db, mode="exact", dimensions=3)


class TestVectorIndexRepo:

    @pytest.mark.asyncio
    async def test_state_missing_then_empty_then_ready(self, index):
        assert await index.state() == "missing"
        await index.ensure_indexes()
        assert await index.state() == "empty"
        await index.upsert(1, [1.0, 0.0, 0.0], model="m")
        assert await index.state() == "ready"

    @pytest.mark.asyncio
    async def test_exact_search_orders_by_cosine(self, index):
        await index.upsert(1, [1.0, 0.0, 0.0], model="m")
        await index.upsert(2, [0.0, 1.0, 0.0], model="m")
        await index.upsert(3, [0.9, 0.1, 0.0], model="m")
        await index.upsert(4, [-1.0, 0.0, 0.0], model="m")

        hits = await index.search([1.0, 0.0, 0.0], k=3)

        assert [h.movie_id for h in hits] == [1, 3, 2]
        assert hits[0].distance == pytest.approx(0.0, abs=1e-6)
        assert hits[0].similarity == pytest.approx(1.0, abs=1e-6)
        assert all(0.0 <= h.similarity <= 1.0 for h in hits)

        opposite = await index.search([1.0, 0.0, 0.0], k=4)
        assert opposite[-1].movie_id == 4
        assert opposite[-1].distance == pytest.approx(2.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_vector(self, index, fake_db):
        await index.upsert(1, [1.0, 0.0, 0.0], model="m")
        await index.upsert(1, [0.0, 1.0, 0.0], model="m")

        assert await index.count() == 1
        hits = await index.search([0.0, 1.0, 0.0], k=1)
        assert hits[0].similarity == pytest.approx(1.0, abs=1e-6)

    @pytest.mark.asyncio
    async def test_empty_index_returns_no_hits(self, index):
        assert await index.search([1.0, 0.0, 0.0], k=5) == []

    @pytest.mark.asyncio
    async def test_wrong_dimensions_are_rejected(self, index):
        with pytest.raises(ValueError):
            await index.upsert(1, [1.0, 0.0], model="m")
        with pytest.raises(ValueError):
            await index.search([1.0, 0.0, 0.0, 0.0], k=5)

    @pytest.mark.asyncio
    async def test_atlas_score_maps_to_distance(self, fake_db):
        repo = VectorIndexRepo(fake_db, mode="atlas", dimensions=3)
        repo.col.aggregate = MagicMock(return_value=AsyncCursor([
            {"movie_id": 7, "score": 1.0},
            {"movie_id": 8, "score": 0.75},
        ]))

        hits = await repo.search([1.0, 0.0, 0.0], k=2)

        assert [h.movie_id for h in hits] == [7, 8]
        assert hits[0].distance == pytest.approx(0.0)
        assert hits[1].distance == pytest.approx(0.5)
        assert hits[1].similarity == pytest.approx(0.75)
        stage = repo.col.aggregate.call_args.args[0][0]["$vectorSearch"]
        assert stage["limit"] == 2


class TestEmbeddingClient:

    @pytest.mark.asyncio
    async def test_embed_returns_vector(self, openai_client):
        openai_client.embeddings.create.return_value = embedding_response([[0.1, 0.2, 0.3]])
        embedder = EmbeddingClient(openai_client, model="text-embedding-3-small", dimensions=3)

        assert await embedder.embed("heist") == [0.1, 0.2, 0.3]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("vector", [[0.1, 0.2], [0.0, 0.0, 0.0], [float("nan"), 0.1, 0.2]])
    async def test_degenerate_vectors_fail_loudly(self, openai_client, vector):
        openai_client.embeddings.create.return_value = embedding_response([vector])
        embedder = EmbeddingClient(openai_client, model="m", dimensions=3)

        with pytest.raises(UpstreamUnavailableError):
            await embedder.embed("heist")

    @pytest.mark.asyncio
    async def test_api_error_is_upstream_unavailable(self, openai_client):
        openai_client.embeddings.create.side_effect = RuntimeError("timeout")
        embedder = EmbeddingClient(openai_client, model="m", dimensions=3)

        with pytest.raises(UpstreamUnavailableError):
            await embedder.embed("heist")

    @pytest.mark.asyncio
    async def test_batch_mismatch(self, openai_client):
        openai_client.embeddings.create.return_value = embedding_response([[0.1, 0.2, 0.3]])
        embedder = EmbeddingClient(openai_client, model="m", dimensions=3)

        with pytest.raises(UpstreamUnavailableError, match="batch_mismatch"):
            await embedder.embed_batch(["a", "b"])

    @pytest.mark.asyncio
    async def test_cache_hit_skips_api(self, openai_client):
        cache = MagicMock()
        cache.key.return_value = "qvec:abc"
        cache.get = AsyncMock(return_value=[0.5, 0.5, 0.5])
        cache.set = AsyncMock()
        embedder = EmbeddingClient(openai_client, model="m", dimensions=3, cache=cache)

        assert await embedder.embed("heist") == [0.5, 0.5, 0.5]
        openai_client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_outage_is_tolerated(self, openai_client):
        cache = MagicMock()
        cache.key.return_value = "qvec:abc"
        cache.get = AsyncMock(side_effect=ConnectionError("redis down"))
        cache.set = AsyncMock(side_effect=ConnectionError("redis down"))
        openai_client.embeddings.create.return_value = embedding_response([[0.1, 0.2, 0.3]])
        embedder = EmbeddingClient(openai_client, model="m", dimensions=3, cache=cache)

        assert await embedder.embed("heist") == [0.1, 0.2, 0.3]


class TestVectorizeCatalog:

    def _movies(self, movies):
        repo = MagicMock()

        async def _iter():
            for m in movies:
                yield m

        repo.iter_for_embedding = _iter
        return repo

    @pytest.mark.asyncio
    async def test_skips_indexed_movies_and_counts_failures(self):
        index = MagicMock()
        index.existing_ids = AsyncMock(return_value={1})
        index.upsert = AsyncMock()
        embedder = MagicMock()
        embedder.model = "m"
        embedder.embed_batch = AsyncMock(side_effect=[
            [[0.1, 0.2, 0.3], [0.3, 0.2, 0.1]],
            UpstreamUnavailableError("down"),
        ])
        movies = self._movies([make_movie(i) for i in (1, 2, 3, 4)])

        stats = await EmbeddingService(embedder, index, movies).vectorize_catalog(batch_size=2)

        assert stats["skipped"] == 1
        assert stats["processed"] == 2
        assert stats["failed"] == 1
        assert len(stats["errors"]) == 1
        assert index.upsert.await_count == 2

    @pytest.mark.asyncio
    async def test_force_reembeds_everything(self):
        index = MagicMock()
        index.existing_ids = AsyncMock(return_value={1, 2})
        index.upsert = AsyncMock()
        embedder = MagicMock()
        embedder.model = "m"
        embedder.embed_batch = AsyncMock(return_value=[[0.1, 0.2, 0.3], [0.3, 0.2, 0.1]])
        movies = self._movies([make_movie(1), make_movie(2)])

        stats = await EmbeddingService(embedder, index, movies).vectorize_catalog(force=True)

        assert stats["processed"] == 2
        index.existing_ids.assert_not_awaited()

    def test_movie_text(self):
        movie = make_movie(1, title="Alien", overview="In space no one can hear you scream", genres=["Horror", "Science Fiction"])
        assert build_movie_text(movie) == "Alien. In space no one can hear you scream. Genres: Horror, Science Fiction"


class TestRetriever:

    @pytest.mark.asyncio
    async def test_embedding_failure_is_reported_not_raised(self):
        enhancer = MagicMock()
        enhancer.enhance = AsyncMock(return_value="expanded")
        embedder = MagicMock()
        embedder.embed = AsyncMock(side_effect=UpstreamUnavailableError("down"))
        index = MagicMock()
        index.search = AsyncMock()

        outcome = await Retriever(enhancer, embedder, index).retrieve("space")

        assert outcome.failed is True
        assert outcome.hits == []
        assert outcome.enhanced_query == "expanded"
        index.search.assert_not_awaited()
