from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from moviereco.core.config import get_settings
from moviereco.core.lifespan import lifespan
from moviereco.core.logging import configure_logging
from moviereco.api.v1.routers.health import router as health_router
from moviereco.api.v1.routers.recommend import router as recommend_router
from moviereco.api.v1.routers.preferences import router as preferences_router
from moviereco.api.v1.routers.compare import router as compare_router
from moviereco.api.v1.routers.movies import router as movies_router
from moviereco.domain.errors import (
    InvalidRequestError,
    MovieRecoError,
    NotFoundError,
    OutputValidationError,
    UpstreamUnavailableError,
)

settings = get_settings()
configure_logging(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    colored=settings.APP_ENV == "development",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS is a CSV list, e.g. "https://movies.example.com,http://localhost:3000"
allowed_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["http://localhost:3000"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

# ------- Errors -------
_STATUS = {
    InvalidRequestError: 400,
    NotFoundError: 404,
    OutputValidationError: 502,
    UpstreamUnavailableError: 503,
}


@app.exception_handler(MovieRecoError)
async def domain_error_handler(request: Request, exc: MovieRecoError):
    status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    body = {"error": str(exc)}
    if isinstance(exc, OutputValidationError) and exc.errors:
        body["details"] = exc.errors
    return JSONResponse(status_code=status, content=body)


# ------- Routes -------
app.include_router(health_router)
app.include_router(recommend_router, prefix=settings.api_prefix)
app.include_router(preferences_router, prefix=settings.api_prefix)
app.include_router(compare_router, prefix=settings.api_prefix)
app.include_router(movies_router, prefix=settings.api_prefix)
