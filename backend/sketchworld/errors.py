"""Error taxonomy shared by the generation pipeline and the world engine.

Cache and physics errors are soft: they are raised close to the failure and
absorbed (logged) by the caller. Classification and generation errors abort the
current sketch-processing attempt and propagate to the session/HTTP layer.
"""

from __future__ import annotations

import enum


class SketchWorldError(Exception):
    """Base class for all domain errors."""


class ClassificationError(SketchWorldError):
    """Empty/malformed sketch input or an unparseable model answer."""


class GenerationErrorKind(str, enum.Enum):
    RATE_LIMITED = "rate_limited"
    INVALID_REQUEST = "invalid_request"
    AUTH_FAILED = "auth_failed"
    CONTENT_BLOCKED = "content_blocked"
    UNKNOWN = "unknown"


_STATUS_KINDS = {
    429: GenerationErrorKind.RATE_LIMITED,
    400: GenerationErrorKind.INVALID_REQUEST,
    401: GenerationErrorKind.AUTH_FAILED,
    403: GenerationErrorKind.AUTH_FAILED,
}

_KIND_MESSAGES = {
    GenerationErrorKind.RATE_LIMITED: "Rate limit exceeded. Please try again later.",
    GenerationErrorKind.INVALID_REQUEST: "Invalid request parameters.",
    GenerationErrorKind.AUTH_FAILED: "Authentication failed. Please check your credentials.",
}


class GenerationError(SketchWorldError):
    """A generator or model call failed."""

    def __init__(self, kind: GenerationErrorKind, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or _KIND_MESSAGES.get(kind, "Generation failed"))

    @classmethod
    def from_status(cls, code: int | None, message: str = "") -> GenerationError:
        """Map an HTTP-like status code onto a generation error kind."""
        kind = _STATUS_KINDS.get(code or 0, GenerationErrorKind.UNKNOWN)
        if kind is not GenerationErrorKind.UNKNOWN:
            message = _KIND_MESSAGES[kind]
        return cls(kind, message)

    @property
    def blocked(self) -> bool:
        return self.kind is GenerationErrorKind.CONTENT_BLOCKED


class ExtractionError(SketchWorldError):
    """A requested video frame is empty, missing or unreadable."""


class CacheWriteError(SketchWorldError):
    """A media cache write failed. Always absorbed by the cache itself."""


class PhysicsIntegrityError(SketchWorldError):
    """A world object is missing state the physics layer needs (e.g. its body)."""
