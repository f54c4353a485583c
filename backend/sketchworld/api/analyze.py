"""POST /api/analyze — classify a sketch into a type plus attributes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sketchworld.api.http_errors import blocked_response, to_http_error
from sketchworld.dependencies import get_coordinator
from sketchworld.errors import SketchWorldError
from sketchworld.generation.coordinator import GenerationCoordinator
from sketchworld.models.media import BlockedContent
from sketchworld.models.requests import AnalyzeRequest
from sketchworld.models.responses import AnalyzeResponse, BlockedResponse

router = APIRouter()


@router.post("/analyze", response_model=AnalyzeResponse | BlockedResponse)
async def analyze(
    req: AnalyzeRequest,
    coordinator: GenerationCoordinator = Depends(get_coordinator),
) -> AnalyzeResponse | BlockedResponse:
    try:
        result = await coordinator.classify(req.image_bytes())
    except SketchWorldError as e:
        raise to_http_error(e) from e

    if isinstance(result, BlockedContent):
        return blocked_response(result)
    return AnalyzeResponse(type=result.type, attributes=result.attributes)
