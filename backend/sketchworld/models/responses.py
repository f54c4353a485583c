"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    kinds_registered: int = 0


class AnalyzeResponse(BaseModel):
    type: str
    attributes: list[str] = Field(default_factory=list)


class BlockedResponse(BaseModel):
    blocked: bool = True
    reason: str = "content_blocked"
    message: str = ""


class GenerateResponse(BaseModel):
    image: str
    hash: str | None = None


class FramesResponse(BaseModel):
    ready: bool = False
    progress: int = 0
    total: int = 4


class CommandResponse(BaseModel):
    verb: str = ""
    target: str = ""


class PoolResponse(BaseModel):
    type: str
    style: str
    written: int = 0
    pool_size: int = 0
