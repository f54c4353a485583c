"""Capabilities the coordinator consumes. Real implementations talk to Google
and ffmpeg; tests plug in in-memory fakes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class VideoHandle:
    """Opaque long-running operation. ``poll`` may replace ``operation`` in place."""

    name: str
    operation: Any = None


@dataclass
class VideoPoll:
    done: bool
    video_uri: str | None = None


class ImageGenerator(Protocol):
    async def generate(self, prompt: str, style: str, input_image: bytes | None = None) -> bytes: ...


class VideoGenerator(Protocol):
    async def generate(self, image: bytes, prompt: str) -> VideoHandle: ...

    async def poll(self, handle: VideoHandle) -> VideoPoll: ...

    async def download(self, video_uri: str) -> bytes: ...


class FrameExtractor(Protocol):
    async def extract(self, video: bytes, timestamps: list[float]) -> list[bytes]: ...
