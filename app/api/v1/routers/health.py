# app/api/v1/routers/health.py
import subprocess
import time

from fastapi import APIRouter, Request

from app.core.config import get_settings
from app.db import mongo
from app.db.redis import get_redis

router = APIRouter(tags=["health"])
START_TIME = time.time()


def _git_sha(short: bool = True) -> str:
    try:
        cmd = ["git", "rev-parse", "--short" if short else "HEAD"]
        return subprocess.check_output(cmd, stderr=subprocess.DEVNULL).decode().strip()
    except Exception:
        return "unknown"


def _is_ok(v) -> bool:
    return v in ("ok", "skipped") or v is True


@router.get("/health")
async def health(request: Request):
    """
    Tolerant health check:
    - Mongo ping via Motor
    - Redis 'skipped' when not configured
    - LLM key presence only (no network call); a missing key means fallback-only mode
    """
    settings = get_settings()
    checks: dict[str, object] = {
        "app_name": settings.APP_NAME,
        "env": settings.APP_ENV,
        "debug": settings.DEBUG,
        "version": settings.GIT_SHA or _git_sha(),
        "uptime_seconds": int(time.time() - START_TIME),
    }

    # --- Mongo ---
    try:
        await mongo.get_db().command("ping")
        checks["mongodb"] = "ok"
    except Exception as e:
        checks["mongodb"] = f"error: {e}"

    # --- Redis ---
    try:
        r = get_redis()
        if r:
            await r.ping()
            checks["redis"] = "ok"
        else:
            checks["redis"] = "skipped"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    # --- LLM ---
    deps = getattr(request.app.state, "upsell_deps", None)
    checks["llm_api_key_set"] = bool(deps.llm.configured) if deps else bool(settings.LLM_API_KEY)
    checks["reco_cache"] = type(deps.cache).__name__ if deps else "uninitialized"

    status = "ok" if all(_is_ok(checks.get(k)) for k in ("mongodb", "redis")) else "error"
    return {"status": status, "checks": checks, "timestamp": int(time.time())}
