"""FastAPI dependency injection."""

from __future__ import annotations

from functools import lru_cache

from sketchworld.config import settings
from sketchworld.generation.coordinator import GenerationCoordinator


def get_settings():
    return settings


@lru_cache(maxsize=1)
def get_coordinator() -> GenerationCoordinator:
    """Coordinator wired to the Google backends, ffmpeg and the on-disk cache."""
    from sketchworld.cache.jobs import JobStore
    from sketchworld.cache.media_cache import MediaCache
    from sketchworld.catalog import get_catalog
    from sketchworld.generation.classifier import SketchClassifier
    from sketchworld.generation.frames import FfmpegFrameExtractor
    from sketchworld.generation.google_backends import GeminiImageGenerator, ImagenGenerator, VeoGenerator
    from sketchworld.models.media import Backend

    catalog = get_catalog()
    return GenerationCoordinator(
        catalog=catalog,
        cache=MediaCache(settings.cache_dir / "cache", settings.cache_pool_size, settings.frame_count),
        jobs=JobStore(settings.cache_dir / "jobs", settings.frame_count),
        classifier=SketchClassifier(catalog),
        image_generators={
            Backend.IMAGEN: ImagenGenerator(),
            Backend.GEMINI: GeminiImageGenerator(),
        },
        video_generator=VeoGenerator(),
        frame_extractor=FfmpegFrameExtractor(),
        thumbnail_size=settings.thumbnail_size,
        video_duration_s=settings.video_duration_s,
        frame_epsilon_s=settings.frame_epsilon_s,
        poll_delay_s=settings.video_poll_delay_s,
        poll_max_attempts=settings.video_poll_max_attempts,
    )
