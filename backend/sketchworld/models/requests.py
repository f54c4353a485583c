"""API request models."""

from __future__ import annotations

import base64
import binascii

from pydantic import BaseModel, Field

from sketchworld.errors import ClassificationError
from sketchworld.models.media import Backend, GenerationRequest


def decode_image(payload: str) -> bytes:
    """Accept raw base64 or a ``data:image/...;base64,`` URL."""
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ClassificationError(f"Image is not valid base64: {e}") from e
    if not data:
        raise ClassificationError("Image payload is empty")
    return data


class AnalyzeRequest(BaseModel):
    image: str = Field(..., description="Sketch PNG as base64 or a data URL")

    def image_bytes(self) -> bytes:
        return decode_image(self.image)


class GenerateRequest(BaseModel):
    prompt: str = Field(..., description="Object type to render")
    image: str | None = Field(default=None, description="Optional sketch (base64 or data URL), used by gemini")
    backend: Backend = Field(default=Backend.IMAGEN, description="imagen, gemini or veo")
    style: str = Field(default="realistic", description="Visual style id")

    def image_bytes(self) -> bytes | None:
        return decode_image(self.image) if self.image else None

    def to_generation_request(self) -> GenerationRequest:
        return GenerationRequest(self.prompt, self.style, self.backend, self.image_bytes())


class PoolRequest(BaseModel):
    prompt: str = Field(..., description="Object type whose Imagen pool to fill")
    style: str = Field(default="realistic", description="Visual style id")


class CommandRequest(BaseModel):
    command: str = Field(..., description="Free-text player command")
    targets: list[str] = Field(
        default_factory=list,
        description="Names and attributes currently present in the scene",
    )
