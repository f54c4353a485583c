"""WorldObject — an AttributeSet coupled to a physics body.

Reactive state is a set of orthogonal flags (burning, exploded, rusted,
floating, generating) driven by the interaction resolver and by the object's
own per-tick :meth:`WorldObject.update`. ``life`` counts down while burning or
exploding: below 0 the explosion fires once, below -200 the object is removed.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from sketchworld.errors import PhysicsIntegrityError
from sketchworld.models.attributes import AttributeSet
from sketchworld.world.effects import EffectKind, EffectSet, EffectSink, LoggingEffectSink
from sketchworld.world.kinds import KindDescriptor
from sketchworld.world.physics import Body, PhysicsWorld

if TYPE_CHECKING:
    from sketchworld.world.session import SceneSignals

logger = logging.getLogger(__name__)

DEFAULT_LIFE = 100
EXPLODED_LIFE = -200
OFFSTAGE = (-1000.0, 0.0)

MAGNET_CONSTANT = 0.012
MAGNET_CONSTANT_VOID = 0.0001
BLOW_CONSTANT = 300.0

HEAVY_MASS = 1.0
LIGHT_MASS = 0.1
EXPLODED_MASS = 0.0001
PROPELLED_AIR_FRICTION = 150.0
LIGHTNING_DECAY = 5
# Fraction of gravity that flying/hovering objects push against each tick.
LIFT = 0.28

RAIN_ZONE_WIDTH = 64.0


@dataclass
class WorldContext:
    """Everything an object needs from its scene, passed in explicitly."""

    physics: PhysicsWorld
    signals: SceneSignals
    effects: EffectSink = field(default_factory=LoggingEffectSink)
    void_space: bool = False
    friction_air: float = 0.01
    friction_water: float = 0.1
    stage_height: float = 600.0
    visual_style: str = "realistic"
    rng: random.Random = field(default_factory=random.Random)


@dataclass(eq=False)
class RainZone:
    """Sensor hanging under a dripping object."""

    source: WorldObject
    body: Body


_UPDATE_HOOKS: dict[str, Callable[[WorldObject], None]] = {}


def update_hook(hook_id: str):
    """Register a per-tick hook that kinds can name in ``update_hook``."""

    def decorator(fn: Callable[[WorldObject], None]) -> Callable[[WorldObject], None]:
        _UPDATE_HOOKS[hook_id] = fn
        return fn

    return decorator


@update_hook("drift")
def _drift(obj: WorldObject) -> None:
    obj.move_to(obj.x + 0.1, obj.y)


@update_hook("bridge_burn")
def _bridge_burn(obj: WorldObject) -> None:
    # A burning bridge explodes. Fire and explosion share one countdown.
    if obj.b_catch_fire:
        obj.attrs.explodes = True


class WorldObject:
    def __init__(
        self,
        name: str,
        kind: KindDescriptor,
        context: WorldContext,
        x: float,
        y: float,
        width: float = 64.0,
        height: float = 64.0,
        attributes: AttributeSet | None = None,
        texture: str | None = None,
    ) -> None:
        self.name = name
        self.kind = kind
        self.context = context
        self._x = float(x)
        self._y = float(y)
        self.width, self.height = (float(v) for v in (kind.size or (width, height)))
        self.texture = texture or kind.texture
        self.alpha = 1.0

        self.life = DEFAULT_LIFE
        self.b_catch_fire = False
        self.b_exploded = False
        self.destroyed = False
        self.frame_counter = 0

        self.body: Body | None = None
        self.rain_zone: RainZone | None = None
        self.effects = EffectSet(name, context.effects)
        self.media: bytes | None = None
        self.animation_hash: str | None = None
        self.animation_ready = False

        self.attrs = AttributeSet.defaults()
        self.apply_attributes(attributes if attributes is not None else kind.build_attributes())
        if kind.life_range:
            self.life = context.rng.randint(*kind.life_range)

    def __repr__(self) -> str:
        return f"WorldObject({self.name!r}, kind={self.kind.id!r}, life={self.life})"

    # -- Geometry ------------------------------------------------------------

    @property
    def x(self) -> float:
        return float(self.body.position[0]) if self.body is not None else self._x

    @property
    def y(self) -> float:
        return float(self.body.position[1]) if self.body is not None else self._y

    def move_to(self, x: float, y: float) -> None:
        self._x, self._y = float(x), float(y)
        if self.body is not None:
            self.body.position = np.array([self._x, self._y])

    def resize(self, width: float, height: float) -> None:
        self.width, self.height = float(width), float(height)
        if self.body is not None:
            self.body.size = np.array([self.width, self.height])

    def set_velocity(self, vx: float | None = None, vy: float | None = None) -> None:
        if self.body is not None:
            self.body.set_velocity(vx, vy)

    # -- Capabilities --------------------------------------------------------

    @property
    def is_key(self) -> bool:
        return self.kind.is_key

    @property
    def can_set_fire(self) -> bool:
        return self.attrs.burns or self.attrs.lightning or self.b_catch_fire

    # -- Setup ---------------------------------------------------------------

    def apply_attributes(self, attributes: AttributeSet, texture: str | None = None) -> None:
        """(Re)configure the object from an attribute set, resetting reactive state."""
        self.clear_effects()
        if texture:
            self.texture = texture

        self.attrs = attributes.copy()
        if self.kind.float_offset_ratio is not None:
            self.attrs.float_offset = self.kind.float_offset_ratio * self.height
        self.life = DEFAULT_LIFE
        self.frame_counter = 0
        self.b_catch_fire = False
        self.b_exploded = False

        ctx = self.context
        if self.attrs.burns:
            self.effects.acquire(EffectKind.FIRE, style=ctx.visual_style)

        self._remove_rain_zone()
        if self.attrs.drips and not ctx.void_space:
            self.effects.acquire(EffectKind.DRIPS, style=ctx.visual_style)
            self._create_rain_zone()

        if self.attrs.generating:
            self.effects.acquire(EffectKind.FADE)

        self._remove_body()
        if self.attrs.solid:
            self._create_body()
        elif ctx.void_space and not self.attrs.generating:
            self.void()

    def _create_body(self) -> None:
        ctx = self.context
        friction = ctx.friction_air * (PROPELLED_AIR_FRICTION if self.attrs.propelled else 1.0)
        self.body = ctx.physics.add(
            Body.box(
                self._x,
                self._y,
                self.width,
                self.height,
                mass=HEAVY_MASS if self.attrs.heavy else LIGHT_MASS,
                is_static=self.kind.static,
                ignore_gravity=not self.attrs.falls,
                friction_air=friction,
                owner=self,
            )
        )
        if self.attrs.magnetic:
            self._install_magnet()
        if self.attrs.blows and not ctx.void_space:
            self.body.attractors.append(self._blow_attractor)
            self.effects.acquire(EffectKind.WIND)

    def _remove_body(self) -> None:
        if self.body is not None:
            self._x, self._y = float(self.body.position[0]), float(self.body.position[1])
            self.context.physics.remove(self.body)
            self.body = None

    def _create_rain_zone(self) -> None:
        height = self.context.stage_height
        body = Body.box(
            self._x,
            self._y + height / 2,
            RAIN_ZONE_WIDTH,
            height,
            is_static=True,
            is_sensor=True,
        )
        self.rain_zone = RainZone(source=self, body=body)
        body.owner = self.rain_zone
        self.context.physics.add(body)

    def _remove_rain_zone(self) -> None:
        if self.rain_zone is not None:
            self.context.physics.remove(self.rain_zone.body)
            self.rain_zone = None

    # -- Force fields --------------------------------------------------------

    def _install_magnet(self) -> None:
        if self.body is None:
            raise PhysicsIntegrityError(f"{self.name} has no body to magnetize")
        if self._magnet_attractor not in self.body.attractors:
            self.body.attractors.append(self._magnet_attractor)
        self.effects.acquire(EffectKind.MAGNETIC_FIELD, style=self.context.visual_style)

    def _magnet_attractor(self, a: Body, b: Body) -> None:
        other = b.owner
        if not isinstance(other, WorldObject) or not other.attrs.metal or other.attrs.rusted:
            return
        k = MAGNET_CONSTANT_VOID if self.context.void_space else MAGNET_CONSTANT
        delta = b.position - a.position
        distance = float(np.linalg.norm(delta))
        distance_sq = distance * distance if distance > 0.001 else 1e10
        normal = delta / distance if distance > 0 else np.zeros(2)
        force = normal * (k * a.mass * b.mass / distance_sq)
        a.apply_force(force)
        b.apply_force(-force)

    def _blow_attractor(self, a: Body, b: Body) -> None:
        other = b.owner
        if not isinstance(other, WorldObject) or other.attrs.heavy:
            return
        delta = b.position - a.position
        distance_sq = float(delta @ delta) or 0.0001
        normal = delta / math.sqrt(distance_sq)
        force = normal * (BLOW_CONSTANT * a.mass * b.mass / distance_sq)
        force[1] = 0.0
        if abs(a.position[1] - b.position[1]) > self.height * 2:
            force[0] = 0.0
        b.apply_force(force)

    # -- Reactions -----------------------------------------------------------

    def add_fire(self, force: bool = False) -> None:
        """Ignite a wooden (or forced) object; melt an icy one."""
        if (self.attrs.wooden or force) and not self.b_catch_fire:
            self.b_catch_fire = True
            self.effects.acquire(EffectKind.FIRE, style=self.context.visual_style)
            logger.debug("%s caught fire", self.name)
        elif self.attrs.ice:
            self.attrs.ice = False
            self.effects.acquire(EffectKind.STEAM, burst=1000)
            self.life = -1
            self.move_to(*OFFSTAGE)
            logger.debug("%s melted", self.name)
            if self.is_key:
                self.context.signals.game_over("key_destroyed")

    def add_wet(self) -> None:
        """Douse fire; rust metal. Anything else is unaffected."""
        if self.can_set_fire and not self.attrs.lightning:
            self.b_catch_fire = False
            self.attrs.burns = False
            self.effects.release(EffectKind.FIRE)
            self.effects.acquire(EffectKind.STEAM, burst=100)
        if self.attrs.metal and not self.attrs.rusted:
            self.attrs.rusted = True
            if self.kind.rusted_texture:
                self.texture = self.kind.rusted_texture
            logger.debug("%s rusted", self.name)

    def add_explosion(self) -> None:
        self.effects.acquire(EffectKind.EXPLOSION, burst=400)
        if self.body is not None:
            self.body.mass = EXPLODED_MASS
        self.life = EXPLODED_LIFE
        self.b_exploded = True
        logger.debug("%s exploded", self.name)
        if self.is_key:
            self.context.signals.game_over("key_destroyed")

    def clear_rust(self) -> None:
        if not self.attrs.rusted:
            return
        self.attrs.rusted = False
        if self.kind.clean_texture:
            self.texture = self.kind.clean_texture
        elif self.kind.rusted_texture and self.texture == self.kind.rusted_texture:
            self.texture = self.kind.texture
        logger.debug("%s rust cleared", self.name)

    def magnetize(self) -> None:
        self.attrs.metal = True
        self.attrs.magnetic = True
        if self.body is None:
            logger.warning("Cannot magnetize %s: no physics body", self.name)
            self.effects.acquire(EffectKind.MAGNETIC_FIELD, style=self.context.visual_style)
            return
        self._install_magnet()

    def explode_together(self, explosive: WorldObject) -> None:
        """Chain reaction: an already exploded neighbour detonates this one next tick."""
        if explosive.attrs.explodes and explosive.life <= 0:
            self.life = 1
            self.attrs.explodes = True

    def melt(self) -> None:
        """One tick of heat on a meltable wall: sink half a pixel, lose one of height."""
        self.move_to(self.x, self.y + 0.5)
        self.resize(self.width, self.height - 1)
        if self.height <= 0:
            logger.debug("%s melted away", self.name)
            if self.is_key:
                self.context.signals.game_over("key_destroyed")
            self.destroy()

    def void(self) -> None:
        """Terminal removal in void-space: marked exploded and parked off-stage."""
        self.attrs.explodes = True
        self.b_exploded = True
        self.life = 0
        self.move_to(*OFFSTAGE)

    # -- Tick ----------------------------------------------------------------

    def update(self) -> None:
        if self.destroyed:
            return
        self.frame_counter = (self.frame_counter + 1) % 240
        if self.attrs.generating:
            return

        hook = _UPDATE_HOOKS.get(self.kind.update_hook or "")
        if hook is not None:
            hook(self)

        self._apply_motion()

        if self.b_catch_fire or self.attrs.explodes:
            self.life -= 1
            if self.life < 0:
                if not self.b_exploded:
                    self.add_explosion()
                if self.life < EXPLODED_LIFE:
                    self.destroy()
                    return

        if self.attrs.lightning:
            self.life -= LIGHTNING_DECAY
            if self.life < 0:
                self.destroy()

    def _apply_motion(self) -> None:
        a = self.attrs
        fc = self.frame_counter
        gravity = float(self.context.physics.gravity[1])
        rng = self.context.rng
        if a.walks:
            self.set_velocity(vx=0.5)
        if a.drives:
            self.set_velocity(vx=1.0)
        if a.flies:
            disp = 2 - (fc % 30) / 15
            self.set_velocity(1.5, -gravity * LIFT * disp)
        if a.hovers:
            wobble = rng.randint(-100, 100) / 100
            self.set_velocity(math.sin((fc % 30) / 15 * math.pi * wobble), -gravity * LIFT)
        if a.propelled:
            wobble = rng.randint(-200, 200) / 100
            self.set_velocity(vx=math.sin(fc * math.pi / 120 * wobble))

    # -- Teardown ------------------------------------------------------------

    def clear_effects(self) -> None:
        """Single teardown path for every emitter and tween the object owns."""
        self.effects.release_all()
        self.alpha = 1.0

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.clear_effects()
        self._remove_body()
        self._remove_rain_zone()
        self.destroyed = True
        logger.debug("%s destroyed", self.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.id,
            "texture": self.texture,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "life": self.life,
            "burning": self.b_catch_fire,
            "exploded": self.b_exploded,
            "attributes": self.attrs.true_flags(),
        }
