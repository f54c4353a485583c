"""Google generative backends: Imagen and Gemini for still images, Veo for video.

All three share one ``google.genai`` client. Vertex AI is used when a cloud
project is configured, the public API key otherwise. SDK errors are mapped onto
:class:`GenerationError` kinds; safety refusals become ``content_blocked``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sketchworld.config import settings
from sketchworld.errors import GenerationError, GenerationErrorKind
from sketchworld.generation.interfaces import VideoHandle, VideoPoll

logger = logging.getLogger(__name__)

_client: Any = None


def get_genai_client():
    """Shared google-genai client, created on first use."""
    global _client
    if _client is None:
        from google import genai

        if settings.google_cloud_project:
            _client = genai.Client(
                vertexai=True,
                project=settings.google_cloud_project,
                location=settings.google_cloud_location,
            )
        elif settings.google_api_key:
            _client = genai.Client(api_key=settings.google_api_key)
        else:
            raise GenerationError(
                GenerationErrorKind.AUTH_FAILED,
                "Google generation not configured, set GOOGLE_API_KEY or GOOGLE_CLOUD_PROJECT in .env",
            )
    return _client


def _map_api_error(e: Exception) -> GenerationError:
    code = getattr(e, "code", None)
    message = getattr(e, "message", None) or str(e)
    if "safety" in message.lower() or "blocked" in message.lower():
        return GenerationError(GenerationErrorKind.CONTENT_BLOCKED, message)
    return GenerationError.from_status(code if isinstance(code, int) else None, message)


class ImagenGenerator:
    """Text-to-image via Imagen. The input sketch is ignored."""

    def __init__(self, model: str | None = None, client: Any = None) -> None:
        self.model = model or settings.model_imagen
        self._client = client

    async def generate(self, prompt: str, style: str, input_image: bytes | None = None) -> bytes:
        from google.genai import errors, types

        client = self._client or get_genai_client()
        logger.debug("Imagen request (%s): %.80s", style, prompt)
        try:
            response = await client.aio.models.generate_images(
                model=self.model,
                prompt=prompt,
                config=types.GenerateImagesConfig(number_of_images=1, aspect_ratio="1:1"),
            )
        except errors.APIError as e:
            raise _map_api_error(e) from e

        images = response.generated_images or []
        if not images or images[0].image is None or not images[0].image.image_bytes:
            reason = images[0].rai_filtered_reason if images else None
            if reason or not images:
                raise GenerationError(GenerationErrorKind.CONTENT_BLOCKED, reason or "No image returned")
            raise GenerationError(GenerationErrorKind.UNKNOWN, "Empty image returned")
        return images[0].image.image_bytes


class GeminiImageGenerator:
    """Sketch-guided image generation via Gemini's image output modality."""

    def __init__(self, model: str | None = None, client: Any = None) -> None:
        self.model = model or settings.model_gemini_image
        self._client = client

    async def generate(self, prompt: str, style: str, input_image: bytes | None = None) -> bytes:
        from google.genai import errors, types

        client = self._client or get_genai_client()
        contents: list[Any] = []
        if input_image:
            contents.append(types.Part.from_bytes(data=input_image, mime_type="image/png"))
        contents.append(prompt)

        logger.debug("Gemini image request (%s, sketch=%s): %.80s", style, bool(input_image), prompt)
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
            )
        except errors.APIError as e:
            raise _map_api_error(e) from e

        if not response.candidates or not response.candidates[0].content:
            feedback = getattr(response, "prompt_feedback", None)
            if feedback is not None and getattr(feedback, "block_reason", None):
                raise GenerationError(GenerationErrorKind.CONTENT_BLOCKED, str(feedback.block_reason))
            raise GenerationError(GenerationErrorKind.UNKNOWN, "No response data")

        for part in response.candidates[0].content.parts or []:
            if part.inline_data is not None and part.inline_data.data:
                return part.inline_data.data

        finish = str(getattr(response.candidates[0], "finish_reason", "") or "")
        if "SAFETY" in finish.upper():
            raise GenerationError(GenerationErrorKind.CONTENT_BLOCKED, finish)
        raise GenerationError(GenerationErrorKind.UNKNOWN, "No image data found in response")


class VeoGenerator:
    """Image-to-video via Veo, as a long-running operation."""

    def __init__(
        self,
        model: str | None = None,
        client: Any = None,
        duration_s: float | None = None,
    ) -> None:
        self.model = model or settings.model_veo
        self._client = client
        self.duration_s = duration_s or settings.video_duration_s

    async def generate(self, image: bytes, prompt: str) -> VideoHandle:
        from google.genai import errors, types

        client = self._client or get_genai_client()
        try:
            operation = await client.aio.models.generate_videos(
                model=self.model,
                prompt=prompt,
                image=types.Image(image_bytes=image, mime_type="image/png"),
                config=types.GenerateVideosConfig(
                    aspect_ratio="9:16",
                    number_of_videos=1,
                    duration_seconds=int(self.duration_s),
                ),
            )
        except errors.APIError as e:
            raise _map_api_error(e) from e
        logger.info("Veo operation started: %s", operation.name)
        return VideoHandle(name=operation.name or "", operation=operation)

    async def poll(self, handle: VideoHandle) -> VideoPoll:
        from google.genai import errors

        client = self._client or get_genai_client()
        try:
            handle.operation = await client.aio.operations.get(handle.operation)
        except errors.APIError as e:
            raise _map_api_error(e) from e

        op = handle.operation
        if not op.done:
            return VideoPoll(done=False)
        if op.error:
            raise GenerationError(GenerationErrorKind.UNKNOWN, str(op.error))

        videos = (op.response.generated_videos if op.response else None) or []
        if not videos or videos[0].video is None or not videos[0].video.uri:
            raise GenerationError(GenerationErrorKind.CONTENT_BLOCKED, "No video was generated")
        return VideoPoll(done=True, video_uri=videos[0].video.uri)

    async def download(self, video_uri: str) -> bytes:
        params = {"key": settings.google_api_key} if settings.google_api_key else None
        async with httpx.AsyncClient(follow_redirects=True) as h:
            r = await h.get(video_uri, params=params, timeout=60)
            if r.status_code >= 400:
                raise GenerationError.from_status(r.status_code, f"Failed to download video: {r.status_code}")
            data = r.content
        if not data:
            raise GenerationError(GenerationErrorKind.UNKNOWN, "Downloaded video is empty")
        logger.debug("Downloaded video (%d bytes)", len(data))
        return data
