# moviereco/api/v1/routers/compare.py
from fastapi import APIRouter, Depends
import logging

from moviereco.api.deps import services_dep
from moviereco.api.v1.schemas.reco import CompareRequest
from moviereco.core.wiring import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/compare", tags=["compare"])


@router.post("")
async def compare_movies(body: CompareRequest, services: Services = Depends(services_dep)):
    logger.info("Request: compare movie_ids=%s", body.movie_ids)
    res = await services.compare.compare(body.movie_ids)
    return res.model_dump()
