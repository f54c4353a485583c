"""Value objects for the generation pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class Backend(str, enum.Enum):
    GEMINI = "gemini"
    IMAGEN = "imagen"
    VEO = "veo"


class MediaKind(str, enum.Enum):
    """Which generator produced a cache entry."""

    IMAGEN = "imagen"
    GEMINI = "gemini"
    VEO_FRAMES = "veo-frames"


@dataclass
class AnalysisResult:
    """Classifier output: the object type and the attribute names that apply."""

    type: str
    attributes: list[str] = field(default_factory=list)


@dataclass
class CommandResult:
    verb: str = ""
    target: str = ""


@dataclass
class GenerationRequest:
    """One sketch-to-media request. Lives only as long as the request."""

    object_type: str
    style: str = "realistic"
    backend: Backend = Backend.IMAGEN
    sketch: bytes | None = None

    def __post_init__(self) -> None:
        self.backend = Backend(self.backend)


@dataclass
class AnimatedResult:
    """Immediate answer for an animated request; frames follow in the background."""

    hash: str
    image: bytes


@dataclass
class FrameStatus:
    ready: bool
    progress: int
    total: int


@dataclass
class BlockedContent:
    """Expected outcome when the classifier or generator refuses the content."""

    reason: str = "content_blocked"
    message: str = "This drawing can't be brought to life. Try drawing something else!"
