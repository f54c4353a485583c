"""POST /api/generate, pool pre-generation, and the polling endpoints for
animated requests.

The polling endpoints are plain functions; FastAPI runs them in its
threadpool, which keeps their disk reads off the event loop.
"""

from __future__ import annotations

import base64

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from sketchworld.api.http_errors import blocked_response, to_http_error
from sketchworld.dependencies import get_coordinator
from sketchworld.errors import SketchWorldError
from sketchworld.generation.coordinator import GenerationCoordinator
from sketchworld.models.media import AnimatedResult, BlockedContent
from sketchworld.models.requests import GenerateRequest, PoolRequest
from sketchworld.models.responses import BlockedResponse, FramesResponse, GenerateResponse, PoolResponse

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse | BlockedResponse)
async def generate(
    req: GenerateRequest,
    coordinator: GenerationCoordinator = Depends(get_coordinator),
) -> GenerateResponse | BlockedResponse:
    try:
        result = await coordinator.generate(req.to_generation_request())
    except SketchWorldError as e:
        raise to_http_error(e) from e

    if isinstance(result, BlockedContent):
        return blocked_response(result)
    if isinstance(result, AnimatedResult):
        return GenerateResponse(image=base64.b64encode(result.image).decode("ascii"), hash=result.hash)
    return GenerateResponse(image=base64.b64encode(result).decode("ascii"))


@router.post("/pool", response_model=PoolResponse | BlockedResponse)
async def pool(
    req: PoolRequest,
    coordinator: GenerationCoordinator = Depends(get_coordinator),
) -> PoolResponse | BlockedResponse:
    """Fill the Imagen variant pool for a type ahead of play."""
    blocked = coordinator.check_blocked(req.prompt)
    if blocked:
        return blocked_response(blocked)
    try:
        written = await coordinator.fill_pool(req.prompt, req.style)
    except SketchWorldError as e:
        raise to_http_error(e) from e
    return PoolResponse(type=req.prompt, style=req.style, written=written, pool_size=coordinator.cache.pool_size)


@router.get("/frames/{job}", response_model=FramesResponse)
def frames(job: str, coordinator: GenerationCoordinator = Depends(get_coordinator)) -> FramesResponse:
    status = coordinator.frame_status(job)
    return FramesResponse(ready=status.ready, progress=status.progress, total=status.total)


@router.get("/frames/{job}/loop")
def loop(job: str, coordinator: GenerationCoordinator = Depends(get_coordinator)) -> Response:
    data = coordinator.loop_animation(job)
    if data is None:
        raise HTTPException(status_code=404, detail="Animation not ready")
    return Response(content=data, media_type="image/gif")


@router.get("/errors/{job}")
def errors(job: str, coordinator: GenerationCoordinator = Depends(get_coordinator)) -> dict:
    marker = coordinator.error_status(job)
    if marker is None:
        raise HTTPException(status_code=404, detail="No error recorded")
    return marker
