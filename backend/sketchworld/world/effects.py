"""Scoped visual-effect handles.

The renderer is external. Objects ask an :class:`EffectSink` to start a named
effect and get back an :class:`EffectHandle` whose ``release()`` is safe to call
any number of times. Each object keeps its handles in one :class:`EffectSet`
(at most one live handle per kind), and every teardown path goes through
``EffectSet.release_all()``.
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class EffectKind(str, enum.Enum):
    FIRE = "fire"
    EXPLOSION = "explosion"
    DRIPS = "drips"
    STEAM = "steam"
    MAGNETIC_FIELD = "magnetic_field"
    WIND = "wind"
    FADE = "fade"
    SPLASH = "splash"


class EffectSink(Protocol):
    def start(self, kind: EffectKind, owner: str, params: dict[str, Any]) -> Any: ...

    def stop(self, token: Any) -> None: ...


class LoggingEffectSink:
    """Default sink: no renderer attached, effects are only logged."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    def start(self, kind: EffectKind, owner: str, params: dict[str, Any]) -> int:
        token = next(self._ids)
        logger.debug("Effect %s #%d started on %s %s", kind.value, token, owner, params or "")
        return token

    def stop(self, token: Any) -> None:
        logger.debug("Effect #%s stopped", token)


@dataclass
class RecordedEffect:
    kind: EffectKind
    owner: str
    params: dict[str, Any]
    active: bool = True


class RecordingEffectSink:
    """Keeps every effect it was asked to start. Handy for headless runs and tests."""

    def __init__(self) -> None:
        self.effects: list[RecordedEffect] = []

    def start(self, kind: EffectKind, owner: str, params: dict[str, Any]) -> int:
        self.effects.append(RecordedEffect(kind, owner, dict(params)))
        return len(self.effects) - 1

    def stop(self, token: Any) -> None:
        self.effects[token].active = False

    def started(self, kind: EffectKind, owner: str | None = None) -> list[RecordedEffect]:
        return [e for e in self.effects if e.kind is kind and (owner is None or e.owner == owner)]

    def active(self, owner: str | None = None) -> list[RecordedEffect]:
        return [e for e in self.effects if e.active and (owner is None or e.owner == owner)]


@dataclass
class EffectHandle:
    kind: EffectKind
    sink: EffectSink
    token: Any
    released: bool = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        try:
            self.sink.stop(self.token)
        except Exception:
            logger.warning("Failed to stop %s effect", self.kind.value, exc_info=True)


@dataclass
class EffectSet:
    owner: str
    sink: EffectSink
    handles: dict[EffectKind, EffectHandle] = field(default_factory=dict)

    def acquire(self, kind: EffectKind, **params: Any) -> EffectHandle:
        """Start ``kind``, replacing any live handle of the same kind."""
        self.release(kind)
        handle = EffectHandle(kind, self.sink, self.sink.start(kind, self.owner, params))
        self.handles[kind] = handle
        return handle

    def release(self, kind: EffectKind) -> None:
        handle = self.handles.pop(kind, None)
        if handle is not None:
            handle.release()

    def release_all(self) -> None:
        for kind in list(self.handles):
            self.release(kind)

    def is_active(self, kind: EffectKind) -> bool:
        handle = self.handles.get(kind)
        return handle is not None and not handle.released
