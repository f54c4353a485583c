"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from sketchworld.models.responses import HealthResponse
from sketchworld.world.kinds import get_kind_registry

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        kinds_registered=len(get_kind_registry().all()),
    )


@router.get("/styles")
async def styles() -> list[str]:
    from sketchworld.catalog import get_catalog

    return [style.id for style in get_catalog().visual_styles]
