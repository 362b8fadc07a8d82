# moviereco/api/v1/routers/health.py
import time
import subprocess
from fastapi import APIRouter, Request
from moviereco.core.config import get_settings
from moviereco.db import mongo
from moviereco.db.redis import get_redis  # returns Redis instance or None

router = APIRouter()
START_TIME = time.time()


def _git_sha(short: bool = True) -> str:
    try:
        cmd = ["git", "rev-parse", "--short" if short else "HEAD"]
        return subprocess.check_output(cmd).decode().strip()
    except Exception:
        return "unknown"


def _is_ok(v) -> bool:
    return v in ("ok", "skipped") or v is True


@router.get("/health")
async def health(request: Request):
    """
    Tolerant health check:
    - Mongo ping, Redis 'skipped' when not configured
    - vector index state (missing / empty / ready), informative only
    """
    settings = get_settings()
    checks: dict[str, object] = {
        "app_name": settings.APP_NAME,
        "env": settings.APP_ENV,
        "debug": settings.DEBUG,
        "version": settings.GIT_SHA if settings.GIT_SHA != "unknown" else _git_sha(),
        "uptime_seconds": int(time.time() - START_TIME),
    }

    try:
        db = mongo.get_db()
        await db.command("ping")
        checks["mongodb"] = "ok"
    except Exception as e:
        checks["mongodb"] = f"error: {e}"

    try:
        r = get_redis()
        if r:
            await r.ping()
            checks["redis"] = "ok"
        else:
            checks["redis"] = "skipped"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    checks["openai_api_key_set"] = bool(settings.OPENAI_API_KEY)

    services = getattr(request.app.state, "services", None)
    if services is not None:
        try:
            checks["vector_index"] = await services.vector_index.state()
        except Exception as e:
            checks["vector_index"] = f"error: {e}"
        checks["pending_enrichments"] = services.backfill.pending

    # Only real health checks decide the global status
    health_keys = ("mongodb", "redis", "openai_api_key_set")
    status = "ok" if all(_is_ok(checks.get(k)) for k in health_keys) else "error"

    return {"status": status, "checks": checks, "timestamp": int(time.time())}
