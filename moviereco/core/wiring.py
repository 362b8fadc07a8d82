# moviereco/core/wiring.py
"""
Explicit construction of the service graph, in dependency order.
Built once at startup (see lifespan.py) and shared by every request.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from openai import AsyncOpenAI
from redis.asyncio import Redis

from moviereco.core.config import Settings
from moviereco.domain.repositories.enrichment_repo import EnrichmentCacheRepo
from moviereco.domain.repositories.movie_repo import MovieRepo
from moviereco.domain.repositories.vector_cache_repo import VectorCacheRepo
from moviereco.domain.repositories.vector_index_repo import VectorIndexRepo
from moviereco.domain.services.candidate_assembler import CandidateAssembler
from moviereco.domain.services.compare_svc import CompareService
from moviereco.domain.services.embedding_svc import EmbeddingClient, EmbeddingService
from moviereco.domain.services.enrichment_svc import BackfillScheduler, EnrichmentService
from moviereco.domain.services.llm_client import ReasoningClient
from moviereco.domain.services.pipeline_svc import RecommendationPipeline
from moviereco.domain.services.preferences_svc import PreferenceService
from moviereco.domain.services.query_enhancer import QueryEnhancer
from moviereco.domain.services.retrieval import Retriever


@dataclass
class Services:
    movies: MovieRepo
    vector_index: VectorIndexRepo
    enrichments: EnrichmentCacheRepo
    embeddings: EmbeddingService
    backfill: BackfillScheduler
    pipeline: RecommendationPipeline
    preferences: PreferenceService
    compare: CompareService


def build_services(
    db: AsyncIOMotorDatabase,
    redis: Optional[Redis],
    settings: Settings,
    openai_client: Optional[AsyncOpenAI] = None,
) -> Services:
    openai_client = openai_client or AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY, timeout=settings.openai_timeout_s
    )

    # Stores
    movies = MovieRepo(db)
    vector_index = VectorIndexRepo(db, mode=settings.vector_search_mode)
    enrichments = EnrichmentCacheRepo(db)
    vector_cache = VectorCacheRepo(redis, prefix=settings.query_vector_cache_prefix) if redis else None

    # External clients
    # ReasoningClient owns the retry policy for completions; SDK retries would multiply it
    llm = ReasoningClient(
        openai_client.with_options(max_retries=0),
        model_full=settings.OPENAI_MODEL_FULL,
        model_mini=settings.OPENAI_MODEL_MINI,
        timeout_s=settings.openai_timeout_s,
        max_attempts=settings.llm_max_attempts,
        retry_delay_s=settings.llm_retry_delay_s,
    )
    embedder = EmbeddingClient(
        openai_client,
        model=settings.OPENAI_EMBEDDING_MODEL,
        cache=vector_cache,
        cache_ttl=settings.query_vector_cache_ttl,
    )

    # Pipeline pieces
    enhancer = QueryEnhancer(llm)
    retriever = Retriever(enhancer, embedder, vector_index)
    assembler = CandidateAssembler(movies, enrichments)
    enrichment = EnrichmentService(llm, enrichments, redis=redis, lock_ttl=settings.enrichment_lock_ttl)
    backfill = BackfillScheduler(enrichment)

    return Services(
        movies=movies,
        vector_index=vector_index,
        enrichments=enrichments,
        embeddings=EmbeddingService(embedder, vector_index, movies),
        backfill=backfill,
        pipeline=RecommendationPipeline(
            retriever=retriever,
            index=vector_index,
            assembler=assembler,
            movies=movies,
            llm=llm,
            backfill=backfill,
        ),
        preferences=PreferenceService(movies, llm),
        compare=CompareService(movies, enrichments, llm, backfill),
    )
