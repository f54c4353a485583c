"""Shared test fixtures."""

from __future__ import annotations

import io
import random

import pytest
from PIL import Image

from sketchworld.cache.jobs import JobStore
from sketchworld.cache.media_cache import MediaCache
from sketchworld.catalog import load_catalog
from sketchworld.generation.classifier import SketchClassifier
from sketchworld.generation.coordinator import GenerationCoordinator
from sketchworld.generation.interfaces import VideoHandle, VideoPoll
from sketchworld.models.media import Backend
from sketchworld.world.effects import RecordingEffectSink
from sketchworld.world.session import SessionCallbacks, SessionOrchestrator


def make_png(color: tuple[int, int, int] = (200, 60, 60), size: tuple[int, int] = (32, 32)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


SKETCH_PNG = make_png((255, 255, 255))


class FakeImageGenerator:
    """Returns a distinct PNG per call and remembers every call."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, str, bytes | None]] = []
        self.error = error

    async def generate(self, prompt: str, style: str, input_image: bytes | None = None) -> bytes:
        self.calls.append((prompt, style, input_image))
        if self.error is not None:
            raise self.error
        n = len(self.calls)
        return make_png(((n * 50) % 256, 120, 180))


class FakeVideoGenerator:
    """Finishes after ``polls_until_done`` polls, or never when it is ``None``."""

    def __init__(self, polls_until_done: int | None = 1) -> None:
        self.polls_until_done = polls_until_done
        self.generate_calls: list[str] = []
        self.poll_calls = 0
        self.downloads: list[str] = []

    async def generate(self, image: bytes, prompt: str) -> VideoHandle:
        self.generate_calls.append(prompt)
        return VideoHandle(name=f"operations/fake-{len(self.generate_calls)}")

    async def poll(self, handle: VideoHandle) -> VideoPoll:
        self.poll_calls += 1
        done = self.polls_until_done is not None and self.poll_calls >= self.polls_until_done
        return VideoPoll(done=done, video_uri="https://example.invalid/video.mp4" if done else None)

    async def download(self, video_uri: str) -> bytes:
        self.downloads.append(video_uri)
        return b"\x00\x00\x00\x18ftypmp42fake-video"


class FakeFrameExtractor:
    def __init__(self, drop_last: bool = False) -> None:
        self.calls: list[list[float]] = []
        self.drop_last = drop_last

    async def extract(self, video: bytes, timestamps: list[float]) -> list[bytes]:
        self.calls.append(list(timestamps))
        frames = [make_png((40 * i, 200, 40 * i)) for i in range(len(timestamps))]
        return frames[:-1] if self.drop_last else frames


class FakeLLM:
    """Scripted vision/text answers, consumed in order."""

    def __init__(self, vision: list | None = None, text: list | None = None) -> None:
        self.vision_answers = list(vision or [])
        self.text_answers = list(text or [])
        self.vision_prompts: list[str] = []
        self.text_prompts: list[str] = []

    async def ask_vision(self, image: bytes, prompt: str) -> dict:
        self.vision_prompts.append(prompt)
        return _next_answer(self.vision_answers)

    async def ask_text(self, prompt: str) -> dict:
        self.text_prompts.append(prompt)
        return _next_answer(self.text_answers)


def _next_answer(answers: list):
    answer = answers.pop(0)
    if isinstance(answer, Exception):
        raise answer
    return answer


async def no_sleep(delay: float) -> None:
    return None


class RecordingCallbacks:
    def __init__(self) -> None:
        self.goals: list[str | None] = []
        self.game_overs: list[str] = []
        self.progress: list[tuple[str, bool, int]] = []

    def as_callbacks(self) -> SessionCallbacks:
        return SessionCallbacks(
            on_goal_reached=self.goals.append,
            on_game_over=self.game_overs.append,
            on_generation_progress=lambda job, ready, n: self.progress.append((job, ready, n)),
        )


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def media_cache(tmp_path):
    return MediaCache(tmp_path / "cache", pool_size=3)


@pytest.fixture
def job_store(tmp_path):
    return JobStore(tmp_path / "jobs")


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def image_generator():
    return FakeImageGenerator()


@pytest.fixture
def video_generator():
    return FakeVideoGenerator()


@pytest.fixture
def frame_extractor():
    return FakeFrameExtractor()


@pytest.fixture
def make_coordinator(catalog, media_cache, job_store, llm, image_generator, video_generator, frame_extractor):
    """Factory so a test can swap any collaborator before building."""

    def build(**overrides) -> GenerationCoordinator:
        gemini = overrides.pop("gemini_generator", image_generator)
        kwargs = dict(
            catalog=catalog,
            cache=media_cache,
            jobs=job_store,
            classifier=SketchClassifier(catalog, llm.ask_vision, llm.ask_text),
            image_generators={Backend.IMAGEN: image_generator, Backend.GEMINI: gemini},
            video_generator=video_generator,
            frame_extractor=frame_extractor,
            poll_delay_s=0.0,
            poll_max_attempts=5,
            sleep=no_sleep,
        )
        kwargs.update(overrides)
        return GenerationCoordinator(**kwargs)

    return build


@pytest.fixture
def coordinator(make_coordinator):
    return make_coordinator()


@pytest.fixture
def effects():
    return RecordingEffectSink()


@pytest.fixture
def recorder():
    return RecordingCallbacks()


@pytest.fixture
def session(coordinator, recorder, effects):
    orchestrator = SessionOrchestrator(
        coordinator,
        recorder.as_callbacks(),
        effects=effects,
        rng=random.Random(7),
    )
    orchestrator.load_scene()
    return orchestrator
