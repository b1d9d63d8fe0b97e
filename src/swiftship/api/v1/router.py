"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.swiftship.api.v1 import agents, health

router = APIRouter()

router.include_router(health.router)
router.include_router(agents.router)
