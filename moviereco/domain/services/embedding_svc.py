# moviereco/domain/services/embedding_svc.py

from __future__ import annotations
from itertools import islice
from typing import Iterable, List, Optional
import logging
import math
import time

from openai import AsyncOpenAI

from moviereco.domain.errors import UpstreamUnavailableError
from moviereco.domain.models.movie import Movie
from moviereco.domain.repositories.movie_repo import MovieRepo
from moviereco.domain.repositories.vector_cache_repo import VectorCacheRepo
from moviereco.domain.repositories.vector_index_repo import VectorIndexRepo
from moviereco.domain.services.constants import EMBEDDING_BATCH_SIZE, EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)


def build_movie_text(movie: Movie) -> str:
    """Embedding representation of a movie: 'title. overview. Genres: a, b'."""
    parts = [movie.title]
    if movie.overview:
        parts.append(movie.overview)
    if movie.genres:
        parts.append(f"Genres: {', '.join(movie.genres)}")
    return ". ".join(parts)


def _chunks(seq, n):
    it = iter(seq)
    while True:
        batch = list(islice(it, n))
        if not batch:
            break
        yield batch


class EmbeddingClient:
    """
    text -> 1536-dim vector through the OpenAI embeddings API.
    Fails loudly (UpstreamUnavailableError) instead of ever returning a zero/short vector.
    Query vectors are cached in Redis when a cache is given.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str,
        dimensions: int = EMBEDDING_DIMENSIONS,
        cache: Optional[VectorCacheRepo] = None,
        cache_ttl: int = 24 * 3600,
    ):
        self.client = client
        self.model = model
        self.dimensions = dimensions
        self.cache = cache
        self.cache_ttl = cache_ttl

    def _check(self, vec) -> List[float]:
        if not vec or len(vec) != self.dimensions:
            raise UpstreamUnavailableError(
                f"Embedding has {len(vec) if vec else 0} dimensions, expected {self.dimensions}"
            )
        if not all(math.isfinite(x) for x in vec) or not any(vec):
            raise UpstreamUnavailableError("Embedding service returned a degenerate vector")
        return list(vec)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            resp = await self.client.embeddings.create(model=self.model, input=texts)
        except Exception as e:
            raise UpstreamUnavailableError(f"Embedding request failed: {e}") from e
        data = sorted(resp.data or [], key=lambda d: getattr(d, "index", 0))
        if len(data) != len(texts):
            raise UpstreamUnavailableError(f"batch_mismatch expected={len(texts)} got={len(data)}")
        return [self._check(d.embedding) for d in data]

    async def embed(self, text: str) -> List[float]:
        cache_key = self.cache.key(text, self.model) if self.cache else None
        if cache_key:
            try:
                if vec := await self.cache.get(cache_key):
                    logger.debug(f"Query embedding cache hit key={cache_key}")
                    return vec
            except Exception as e:
                logger.warning(f"Query embedding cache read failed key={cache_key}: {e}")

        logger.info(f"Requesting embedding from OpenAI model={self.model} chars={len(text)}")
        vec = (await self.embed_batch([text]))[0]

        if cache_key:
            try:
                await self.cache.set(cache_key, vec, ttl=self.cache_ttl)
            except Exception as e:
                logger.warning(f"Query embedding cache write failed key={cache_key}: {e}")
        return vec


class EmbeddingService:
    """Batch job that fills the vector index from the catalog."""

    def __init__(self, embedder: EmbeddingClient, index: VectorIndexRepo, movies: MovieRepo):
        self.embedder = embedder
        self.index = index
        self.movies = movies

    async def vectorize_catalog(
        self,
        *,
        force: bool = False,
        batch_size: int = EMBEDDING_BATCH_SIZE,
        limit: Optional[int] = None,
    ) -> dict:
        """
        Embed every movie with an overview that is not yet indexed (all of them when force=True).
        A failed batch is counted and skipped; the job keeps going.
        """
        start_ts = time.perf_counter()
        existing = set() if force else await self.index.existing_ids()

        to_process: List[Movie] = []
        skipped = 0
        async for movie in self.movies.iter_for_embedding():
            if movie.movie_id in existing:
                skipped += 1
                continue
            to_process.append(movie)
            if limit and len(to_process) >= limit:
                break

        logger.info(f"[vectorize] start to_process={len(to_process)} skipped={skipped} force={force}")
        processed = 0
        failed = 0
        errors: List[str] = []
        total_batches = (len(to_process) + batch_size - 1) // batch_size

        for b_index, batch in enumerate(_chunks(to_process, batch_size), start=1):
            try:
                vectors = await self.embedder.embed_batch([build_movie_text(m) for m in batch])
                for movie, vec in zip(batch, vectors):
                    await self.index.upsert(movie.movie_id, vec, model=self.embedder.model)
                processed += len(batch)
                logger.info(f"[vectorize] batch={b_index}/{total_batches} processed={processed}/{len(to_process)}")
            except Exception as e:
                failed += len(batch)
                errors.append(f"batch {b_index}: {e}")
                logger.error(f"[vectorize] batch={b_index}/{total_batches} failed: {e}")

        elapsed_ms = (time.perf_counter() - start_ts) * 1000.0
        logger.info(
            f"[vectorize] done processed={processed} skipped={skipped} failed={failed} time_ms={elapsed_ms:.1f}"
        )
        return {
            "processed": processed,
            "skipped": skipped,
            "failed": failed,
            "errors": errors,
            "processing_time_ms": elapsed_ms,
        }
