# moviereco/api/v1/routers/movies.py
from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging

from moviereco.api.deps import services_dep
from moviereco.api.v1.schemas.reco import VectorizeResult
from moviereco.core.wiring import Services
from moviereco.domain.services.constants import EMBEDDING_BATCH_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/movies", tags=["movies"])


@router.post("/vectorize", summary="Embed catalog movies into the vector index", response_model=VectorizeResult)
async def vectorize_movies(
    force: bool = Query(False, description="Re-embed movies that are already indexed"),
    limit: Optional[int] = Query(None, ge=1, description="Max number of movies to process"),
    batch_size: int = Query(EMBEDDING_BATCH_SIZE, ge=1, le=2048, description="Max inputs per OpenAI call"),
    services: Services = Depends(services_dep),
):
    """
    Scans the 'movies' collection for movies with an overview and writes their embeddings.
    Runs in batches; a failed batch is reported in `errors` and the job continues.
    """
    await services.vector_index.ensure_indexes()
    stats = await services.embeddings.vectorize_catalog(force=force, batch_size=batch_size, limit=limit)
    return VectorizeResult(**stats)
