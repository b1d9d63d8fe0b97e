"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.swiftship.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies(request: Request) -> dict:
    """Check the knowledge store and LLM configuration. Returns check results dict."""
    checks: dict = {"agents": "ok", "knowledge": "ok", "litellm": "ok"}

    if getattr(request.app.state, "dispatcher", None) is None:
        checks["agents"] = "error"

    store = getattr(request.app.state, "knowledge_store", None)
    if store is None:
        checks["knowledge"] = "unavailable"
    else:
        try:
            exists = await asyncio.to_thread(store.client.collection_exists, store.collection)
            checks["knowledge"] = "ok" if exists else "empty"
        except Exception as e:
            checks["knowledge"] = "error"
            checks["knowledge_error"] = str(e)

    checks["litellm"] = "ok" if get_settings().llm_configured else "no_keys"
    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 when agents are wired, 503 otherwise.

    A missing knowledge collection or LLM key degrades answers but does not
    stop the service from accepting traffic.
    """
    checks = await _check_dependencies(request)
    ready = checks["agents"] == "ok" and checks["knowledge"] != "error"

    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
