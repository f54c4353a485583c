"""POST /api/command — free text to a (verb, target) pair."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sketchworld.api.http_errors import to_http_error
from sketchworld.dependencies import get_coordinator
from sketchworld.errors import SketchWorldError
from sketchworld.generation.coordinator import GenerationCoordinator
from sketchworld.models.requests import CommandRequest
from sketchworld.models.responses import CommandResponse

router = APIRouter()


@router.post("/command", response_model=CommandResponse)
async def command(
    req: CommandRequest,
    coordinator: GenerationCoordinator = Depends(get_coordinator),
) -> CommandResponse:
    try:
        result = await coordinator.text_to_command(req.command, req.targets)
    except SketchWorldError as e:
        raise to_http_error(e) from e
    return CommandResponse(verb=result.verb, target=result.target)
