"""SketchWorld attribute-driven world engine."""

from sketchworld.world.effects import EffectKind, EffectSink
from sketchworld.world.kinds import KindDescriptor, get_kind_registry, register_kind
from sketchworld.world.physics import Body, PhysicsWorld
from sketchworld.world.objects import WorldContext, WorldObject
from sketchworld.world.water import WaterConfig, WaterSurface
from sketchworld.world.interactions import InteractionResolver
from sketchworld.world.session import SceneConfig, SessionCallbacks, SessionOrchestrator

__all__ = [
    "EffectKind",
    "EffectSink",
    "KindDescriptor",
    "get_kind_registry",
    "register_kind",
    "Body",
    "PhysicsWorld",
    "WorldContext",
    "WorldObject",
    "WaterConfig",
    "WaterSurface",
    "InteractionResolver",
    "SceneConfig",
    "SessionCallbacks",
    "SessionOrchestrator",
]
