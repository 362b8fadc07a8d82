# moviereco/api/v1/routers/preferences.py
from fastapi import APIRouter, Depends, Query
import logging

from moviereco.api.deps import services_dep
from moviereco.core.wiring import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.get("")
async def list_users(
    limit: int = Query(20, ge=1, le=200),
    services: Services = Depends(services_dep),
):
    return {"user_ids": await services.preferences.list_user_ids(limit)}


@router.get("/{user_id}")
async def user_preferences(user_id: int, services: Services = Depends(services_dep)):
    """Taste profile built from the user's rating history."""
    logger.info("Request: preferences user_id=%s", user_id)
    res = await services.preferences.summarize(user_id)
    return res.model_dump()
