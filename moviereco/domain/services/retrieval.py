import logging
from typing import List, Optional

from pydantic import BaseModel

from moviereco.domain.models.movie import VectorHit
from moviereco.domain.repositories.vector_index_repo import VectorIndexRepo
from moviereco.domain.services.constants import RETRIEVAL_K
from moviereco.domain.services.embedding_svc import EmbeddingClient
from moviereco.domain.services.query_enhancer import QueryEnhancer

logger = logging.getLogger(__name__)


class RetrievalOutcome(BaseModel):
    hits: List[VectorHit] = []
    enhanced_query: str
    error: Optional[str] = None  # set when embedding or vector search failed

    @property
    def failed(self) -> bool:
        return self.error is not None


class Retriever:
    """enhance -> embed -> top-k cosine search."""

    def __init__(self, enhancer: QueryEnhancer, embedder: EmbeddingClient, index: VectorIndexRepo):
        self.enhancer = enhancer
        self.embedder = embedder
        self.index = index

    async def retrieve(self, query: str, k: int = RETRIEVAL_K) -> RetrievalOutcome:
        """
        Never raises for upstream trouble: a failed embedding or vector search is reported
        in `error` so the caller can degrade.
        """
        enhanced = await self.enhancer.enhance(query)
        try:
            vec = await self.embedder.embed(enhanced)
            hits = await self.index.search(vec, k)
        except Exception as e:
            logger.error(f"Vector retrieval failed for query={query!r}: {e}")
            return RetrievalOutcome(enhanced_query=enhanced, error=str(e))

        logger.info(
            f"Retrieved {len(hits)} candidates (k={k}) "
            f"top_similarity={hits[0].similarity if hits else None}"
        )
        return RetrievalOutcome(hits=hits, enhanced_query=enhanced)
