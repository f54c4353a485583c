"""GenerationCoordinator — classification, cached image generation and the
background animation pipeline.

Every generation path consults :class:`MediaCache` before calling a model and
populates it afterwards, so re-requesting an already cached (type, style,
backend) never reaches the external generator. Work for one cache key is
serialized by an advisory ``asyncio.Lock``.

Animated requests answer immediately with a static placeholder taken from the
Imagen pool (creating slot 0 when the pool is empty) and continue in a
background task: frame cache, else video generation, polling, download, frame
extraction and post-processing. Any failure there writes a durable error
marker for the hash instead of propagating.

Cache and job-store disk access runs in worker threads so a slow disk never
stalls the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from sketchworld.cache.jobs import JobStore, new_hash
from sketchworld.cache.media_cache import MediaCache
from sketchworld.catalog import Catalog
from sketchworld.errors import ExtractionError, GenerationError, GenerationErrorKind
from sketchworld.generation.classifier import SketchClassifier
from sketchworld.generation.frames import frame_timestamps
from sketchworld.generation.image_processing import (
    ImageProcessingError,
    build_loop_animation,
    pad_to_portrait,
    process_sprite,
)
from sketchworld.generation.interfaces import FrameExtractor, ImageGenerator, VideoGenerator
from sketchworld.models.media import (
    AnalysisResult,
    AnimatedResult,
    Backend,
    BlockedContent,
    CommandResult,
    FrameStatus,
    GenerationRequest,
    MediaKind,
)

logger = logging.getLogger(__name__)

# (hash, ready, frames_ready)
ProgressCallback = Callable[[str, bool, int], None]

_STATIC_PROMPTS = {
    Backend.IMAGEN: "imagen_generation",
    Backend.GEMINI: "gemini_generation",
}
_PREGEN_PROMPT = "imagen_pregen_object"
_VIDEO_PROMPT = "veo_generation"


class GenerationCoordinator:
    def __init__(
        self,
        catalog: Catalog,
        cache: MediaCache,
        jobs: JobStore,
        classifier: SketchClassifier,
        image_generators: dict[Backend, ImageGenerator],
        video_generator: VideoGenerator | None = None,
        frame_extractor: FrameExtractor | None = None,
        *,
        thumbnail_size: int = 64,
        video_duration_s: float = 5.0,
        frame_epsilon_s: float = 0.05,
        poll_delay_s: float = 10.0,
        poll_max_attempts: int = 30,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.catalog = catalog
        self.cache = cache
        self.jobs = jobs
        self.classifier = classifier
        self.image_generators = image_generators
        self.video_generator = video_generator
        self.frame_extractor = frame_extractor
        self.thumbnail_size = thumbnail_size
        self.video_duration_s = video_duration_s
        self.frame_epsilon_s = frame_epsilon_s
        self.poll_delay_s = poll_delay_s
        self.poll_max_attempts = poll_max_attempts
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()

    # -- Content safety ------------------------------------------------------

    def check_blocked(self, text: str) -> BlockedContent | None:
        if text and self.catalog.is_inappropriate(text):
            logger.info("Blocked inappropriate content: %r", text)
            return BlockedContent()
        return None

    # -- Classification ------------------------------------------------------

    async def classify(self, sketch: bytes) -> AnalysisResult | BlockedContent:
        """Two-phase classification. Refusals come back as :class:`BlockedContent`."""
        try:
            result = await self.classifier.classify(sketch)
        except GenerationError as e:
            if e.blocked:
                return BlockedContent()
            raise
        return self.check_blocked(result.type) or result

    async def text_to_command(self, text: str, current_targets: list[str] | None = None) -> CommandResult:
        return await self.classifier.text_to_command(text, current_targets)

    # -- Static images -------------------------------------------------------

    async def generate(
        self,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
    ) -> bytes | AnimatedResult | BlockedContent:
        """Run one request on its backend: veo is animated, the others static."""
        if request.backend is Backend.VEO:
            return await self.generate_animated(request.object_type, request.style, on_progress)
        return await self.generate_static(request.object_type, request.style, request.backend, request.sketch)

    async def generate_static(
        self,
        object_type: str,
        style: str = "realistic",
        backend: Backend = Backend.IMAGEN,
        sketch: bytes | None = None,
    ) -> bytes | BlockedContent:
        """Cached thumbnail for (type, style, backend), generating it on a miss."""
        blocked = self.check_blocked(object_type)
        if blocked:
            return blocked
        try:
            image, _ = await self._static_with_source(object_type, style, backend, sketch)
        except GenerationError as e:
            if e.blocked:
                return BlockedContent()
            raise
        return image

    async def _static_with_source(
        self,
        object_type: str,
        style: str,
        backend: Backend,
        sketch: bytes | None = None,
    ) -> tuple[bytes, bytes]:
        """Return (thumbnail, full-size source image for video input).

        On a pool hit the source is the raw model output stored beside the
        slot; slots cached without one fall back to the thumbnail.
        """
        backend = Backend(backend)
        if backend not in _STATIC_PROMPTS:
            raise GenerationError(GenerationErrorKind.INVALID_REQUEST, f"Unsupported static backend: {backend.value}")
        kind = MediaKind(backend.value)

        async with self._lock(self.cache.key(object_type, style, kind)):
            slot = await asyncio.to_thread(self.cache.pick_slot, object_type, style, kind)
            if slot is not None:
                cached = await asyncio.to_thread(self.cache.get, object_type, style, kind, slot)
                if cached is not None:
                    source = await asyncio.to_thread(self.cache.get_source, object_type, style, kind, slot)
                    return cached, source or cached

            raw = await self._generate_raw(_STATIC_PROMPTS[backend], object_type, style, backend, sketch)
            image = await self._post_process(raw)
            await asyncio.to_thread(self.cache.put, object_type, style, kind, image, None, raw)
            logger.info("Generated %s image for %s/%s", backend.value, object_type, style)
            return image, raw

    async def fill_pool(self, object_type: str, style: str = "realistic") -> int:
        """Pre-generate Imagen variants until the key's pool is full. Returns slots written."""
        if self.check_blocked(object_type):
            return 0
        kind = MediaKind.IMAGEN
        written = 0
        async with self._lock(self.cache.key(object_type, style, kind)):
            while len(await asyncio.to_thread(self.cache.pool_indices, object_type, style, kind)) < self.cache.pool_size:
                raw = await self._generate_raw(_PREGEN_PROMPT, object_type, style, Backend.IMAGEN)
                image = await self._post_process(raw)
                result = await asyncio.to_thread(self.cache.put, object_type, style, kind, image, None, raw)
                if not result.success:
                    break
                written += 1
        logger.info("Filled %d pool slot(s) for %s/%s", written, object_type, style)
        return written

    async def _generate_raw(
        self,
        prompt_id: str,
        object_type: str,
        style: str,
        backend: Backend,
        sketch: bytes | None = None,
    ) -> bytes:
        generator = self.image_generators.get(backend)
        if generator is None:
            raise GenerationError(GenerationErrorKind.INVALID_REQUEST, f"No generator for backend {backend.value}")
        prompt = self.catalog.build_prompt(
            prompt_id,
            {"type": object_type, "visualStyle": self.catalog.style_prompt(style)},
        )
        return await generator.generate(prompt, style, sketch if backend is Backend.GEMINI else None)

    async def _post_process(self, raw: bytes) -> bytes:
        try:
            return await asyncio.to_thread(process_sprite, raw, self.thumbnail_size)
        except ImageProcessingError as e:
            raise GenerationError(GenerationErrorKind.UNKNOWN, str(e)) from e

    # -- Animated ------------------------------------------------------------

    async def generate_animated(
        self,
        object_type: str,
        style: str = "realistic",
        on_progress: ProgressCallback | None = None,
    ) -> AnimatedResult | BlockedContent:
        """Serve the Imagen placeholder now and schedule frame production."""
        blocked = self.check_blocked(object_type)
        if blocked:
            return blocked
        try:
            image, source = await self._static_with_source(object_type, style, Backend.IMAGEN)
        except GenerationError as e:
            if e.blocked:
                return BlockedContent()
            raise

        job = new_hash(object_type, style)
        await asyncio.to_thread(self.jobs.write_static, job, image)
        self._spawn(self.produce_frames(job, object_type, style, source, on_progress))
        logger.info("Scheduled frame production %s for %s/%s", job, object_type, style)
        return AnimatedResult(hash=job, image=image)

    async def produce_frames(
        self,
        job: str,
        object_type: str,
        style: str,
        source: bytes,
        on_progress: ProgressCallback | None = None,
    ) -> bool:
        """Background half of an animated request. Never raises."""
        try:
            frames = await asyncio.to_thread(self.cache.get_frames, object_type, style)
            if frames is None:
                async with self._lock(self.cache.key(object_type, style, MediaKind.VEO_FRAMES)):
                    frames = await asyncio.to_thread(self.cache.get_frames, object_type, style)
                    if frames is None:
                        frames = await self._render_frames(source)
                        await asyncio.to_thread(self.cache.put_frames, object_type, style, frames)
            else:
                logger.info("Frame cache hit for %s/%s, skipping video model", object_type, style)

            await asyncio.to_thread(self.jobs.write_frames, job, frames)
            loop = await asyncio.to_thread(build_loop_animation, frames)
            await asyncio.to_thread(self.jobs.write_loop, job, loop)
        except Exception as e:
            logger.exception("Frame production failed for %s", job)
            progress = await self._record_failure(job, str(e))
            _notify(on_progress, job, False, progress)
            return False

        logger.info("Frames ready for %s", job)
        _notify(on_progress, job, True, len(frames))
        return True

    async def _record_failure(self, job: str, message: str) -> int:
        """Write the error marker; returns how many frames made it to disk."""
        try:
            await asyncio.to_thread(self.jobs.write_error, job, message)
            return (await asyncio.to_thread(self.jobs.frame_status, job)).progress
        except OSError:
            logger.error("Could not record failure for %s", job, exc_info=True)
            return 0

    async def _render_frames(self, source: bytes) -> list[bytes]:
        if self.video_generator is None or self.frame_extractor is None:
            raise GenerationError(GenerationErrorKind.INVALID_REQUEST, "Video backend not configured")

        try:
            padded = await asyncio.to_thread(pad_to_portrait, source)
        except ImageProcessingError as e:
            raise GenerationError(GenerationErrorKind.UNKNOWN, str(e)) from e

        handle = await self.video_generator.generate(padded, self.catalog.prompts.get(_VIDEO_PROMPT, ""))
        video_uri = await self._await_video(handle)
        video = await self.video_generator.download(video_uri)

        timestamps = frame_timestamps(self.jobs.frame_count, self.video_duration_s, self.frame_epsilon_s)
        raw_frames = await self.frame_extractor.extract(video, timestamps)
        if len(raw_frames) != len(timestamps):
            raise ExtractionError(f"Expected {len(timestamps)} frames, got {len(raw_frames)}")

        processed: list[bytes] = []
        for i, frame in enumerate(raw_frames):
            try:
                processed.append(await asyncio.to_thread(process_sprite, frame, self.thumbnail_size))
            except ImageProcessingError as e:
                raise ExtractionError(f"Frame {i} is unreadable: {e}") from e
        return processed

    async def _await_video(self, handle) -> str:
        for attempt in range(1, self.poll_max_attempts + 1):
            status = await self.video_generator.poll(handle)
            if status.done:
                if not status.video_uri:
                    raise GenerationError(GenerationErrorKind.UNKNOWN, "No video URI in response")
                return status.video_uri
            logger.debug("Video %s not ready (attempt %d/%d)", handle.name, attempt, self.poll_max_attempts)
            await self._sleep(self.poll_delay_s)
        raise GenerationError(
            GenerationErrorKind.UNKNOWN,
            f"Video generation timed out after {self.poll_max_attempts} polls",
        )

    # -- Status --------------------------------------------------------------

    def frame_status(self, job: str) -> FrameStatus:
        return self.jobs.frame_status(job)

    def error_status(self, job: str) -> dict | None:
        return self.jobs.read_error(job)

    def loop_animation(self, job: str) -> bytes | None:
        path = self.jobs.loop_path(job)
        return path.read_bytes() if path.exists() else None

    # -- Internals -----------------------------------------------------------

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled background task to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def _notify(callback: ProgressCallback | None, job: str, ready: bool, frames_ready: int) -> None:
    if callback is None:
        return
    try:
        callback(job, ready, frames_ready)
    except Exception:
        logger.warning("Progress callback for %s failed", job, exc_info=True)
