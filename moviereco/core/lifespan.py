# moviereco/core/lifespan.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from moviereco.db import mongo, redis as r
from moviereco.core.config import get_settings
from moviereco.core.wiring import build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    # Mongo is required: catalog, vector index and enrichment cache all live there
    await mongo.connect()

    # Redis is optional
    await r.connect()

    services = build_services(mongo.get_db(), r.get_redis(), settings)
    try:
        await services.enrichments.ensure_indexes()
    except Exception as e:
        logger.warning(f"Could not ensure enrichment indexes: {e}")
    app.state.services = services

    # Application runs
    yield

    # --- Shutdown ---
    await services.backfill.shutdown()

    try:
        await r.disconnect()
    except Exception as e:
        logger.warning(f"Redis disconnect failed: {e}")

    await mongo.disconnect()
    logger.info("Mongo disconnected")
