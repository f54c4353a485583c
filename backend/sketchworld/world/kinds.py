"""Kind registry — data-driven descriptors for every world object variant.

A kind seeds an object's texture, attribute overrides and geometry, and names
an optional per-tick hook. Nothing subclasses :class:`WorldObject`; new kinds
are one ``register_kind`` call.

Usage:
    register_kind(KindDescriptor(id="boat", overrides={"floats": True}, float_offset_ratio=-0.4))
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from sketchworld.models.attributes import AttributeSet

logger = logging.getLogger(__name__)

USER_KIND = "user"


@dataclass(frozen=True, eq=False)
class KindDescriptor:
    id: str
    texture: str = ""
    overrides: Mapping[str, Any] = field(default_factory=dict)
    update_hook: str | None = None
    is_key: bool = False
    # float_offset = ratio * height
    float_offset_ratio: float | None = None
    life_range: tuple[int, int] | None = None
    static: bool = False
    size: tuple[float, float] | None = None
    melts: bool = False
    rusted_texture: str | None = None
    clean_texture: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "overrides", MappingProxyType(dict(self.overrides)))
        if not self.texture:
            object.__setattr__(self, "texture", self.id)

    def build_attributes(self) -> AttributeSet:
        """Fresh attribute set for a new object of this kind."""
        return AttributeSet.defaults().merged(self.overrides)


class KindRegistry:
    """Registry of all known kinds."""

    def __init__(self) -> None:
        self._kinds: dict[str, KindDescriptor] = {}

    def register(self, kind: KindDescriptor) -> None:
        if kind.id in self._kinds:
            raise ValueError(f"Duplicate kind ID: {kind.id}")
        self._kinds[kind.id] = kind
        logger.debug("Registered kind %s", kind.id)

    def get(self, kind_id: str) -> KindDescriptor:
        try:
            return self._kinds[kind_id]
        except KeyError:
            raise KeyError(f"Unknown kind: {kind_id}") from None

    def __contains__(self, kind_id: str) -> bool:
        return kind_id in self._kinds

    def all(self) -> list[KindDescriptor]:
        return sorted(self._kinds.values(), key=lambda k: k.id)


_registry = KindRegistry()


def get_kind_registry() -> KindRegistry:
    return _registry


def register_kind(kind: KindDescriptor) -> KindDescriptor:
    _registry.register(kind)
    return kind


for _kind in (
    KindDescriptor(USER_KIND, texture=""),
    KindDescriptor("boat", overrides={"floats": True, "drives": False, "wooden": True}, float_offset_ratio=-0.4),
    KindDescriptor("bomb", overrides={"explodes": True, "timer": True}, life_range=(100, 200)),
    KindDescriptor("bricks", overrides={"heavy": True}),
    KindDescriptor(
        "cloud",
        overrides={"hovers": True, "falls": False, "solid": False},
        update_hook="drift",
        size=(128, 128),
    ),
    KindDescriptor(
        "cloud_rainy",
        overrides={"hovers": True, "falls": False, "drips": True, "solid": False},
        size=(128, 128),
    ),
    KindDescriptor("fire", overrides={"burns": True}),
    KindDescriptor("ice", overrides={"floats": True, "ice": True}, float_offset_ratio=0.25),
    KindDescriptor("tofu"),
    KindDescriptor("tree", overrides={"floats": True, "wooden": True}),
    KindDescriptor("magnet", overrides={"heavy": True, "magnetic": True}),
    KindDescriptor("metal", overrides={"heavy": True, "metal": True}),
    KindDescriptor("key", overrides={"metal": True}, is_key=True, rusted_texture="rustedkey"),
    KindDescriptor("icekey", overrides={"floats": True, "ice": True}, is_key=True, float_offset_ratio=0.25),
    KindDescriptor(
        "rustedkey",
        overrides={"metal": True, "rusted": True},
        is_key=True,
        rusted_texture="rustedkey",
        clean_texture="key",
    ),
    KindDescriptor("fan", overrides={"heavy": True, "blows": True}),
    KindDescriptor("lightning", overrides={"lightning": True}),
    KindDescriptor("icewall", static=True, melts=True),
    KindDescriptor("metalwall", static=True),
    KindDescriptor("bridge", static=True, update_hook="bridge_burn"),
):
    register_kind(_kind)
