# moviereco/api/v1/routers/recommend.py
from fastapi import APIRouter, Depends
import time
import logging

from moviereco.api.deps import services_dep
from moviereco.api.v1.schemas.reco import RecommendRequest
from moviereco.core.wiring import Services
from moviereco.domain.services.constants import CATALOG_SAMPLE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommend", tags=["recommend"])


@router.post("")
async def recommend(body: RecommendRequest, services: Services = Depends(services_dep)):
    """
    Natural-language query -> ranked, explained recommendations.
    Pipeline: guardrail -> enhance -> embed -> vector retrieval (50) -> LLM rank (30 shown) -> validate.
    """
    logger.info("Request: recommend query_len=%s, limit=%s", len(body.query), body.limit)
    start_time = time.perf_counter()

    res = await services.pipeline.recommend(body.query, body.limit)

    logger.info(
        "Response: recommend count=%s, elapsed_time=%.4fs",
        len(res.recommendations), time.perf_counter() - start_time,
    )
    return res.model_dump()


@router.get("/movies")
async def list_movies(services: Services = Depends(services_dep)):
    """Popularity sample of the catalog (most-rated first)."""
    movies = await services.movies.list_sample(CATALOG_SAMPLE_SIZE)
    return [m.model_dump() for m in movies]
