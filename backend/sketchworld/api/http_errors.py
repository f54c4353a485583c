"""Map domain errors onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import HTTPException

from sketchworld.errors import ClassificationError, GenerationError, GenerationErrorKind, SketchWorldError
from sketchworld.models.media import BlockedContent
from sketchworld.models.responses import BlockedResponse

logger = logging.getLogger(__name__)


def to_http_error(e: SketchWorldError) -> HTTPException:
    if isinstance(e, ClassificationError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, GenerationError):
        status = 429 if e.kind is GenerationErrorKind.RATE_LIMITED else 502
        return HTTPException(status_code=status, detail={"kind": e.kind.value, "message": str(e)})
    logger.error("Unmapped domain error: %s", e)
    return HTTPException(status_code=500, detail=str(e))


def blocked_response(blocked: BlockedContent) -> BlockedResponse:
    return BlockedResponse(reason=blocked.reason, message=blocked.message)
