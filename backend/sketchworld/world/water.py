"""Deformable water surface: a row of spring columns plus a sensor body.

Floating objects are not simulated as fluids. Each tick they are pinned to
the surface height of their nearest column plus their ``float_offset``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from sketchworld.world.effects import EffectKind
from sketchworld.world.objects import WorldObject
from sketchworld.world.physics import Body, PhysicsWorld

logger = logging.getLogger(__name__)


@dataclass
class WaterConfig:
    x: float = 0.0
    y: float = 0.0
    w: float = 100.0
    h: float = 100.0
    depth: float = 50.0
    tension: float = 0.01
    dampening: float = 0.1
    spread: float = 0.25
    column_spacing: float = 20.0


@dataclass
class WaterColumn:
    x: float
    y: float
    target_y: float = field(init=False)
    speed: float = 0.5

    def __post_init__(self) -> None:
        self.target_y = self.y

    def update(self, dampening: float, tension: float) -> None:
        displacement = self.target_y - self.y
        self.speed += tension * displacement - self.speed * dampening
        self.y += self.speed


class WaterSurface:
    def __init__(self, physics: PhysicsWorld, config: WaterConfig | None = None) -> None:
        self.config = config or WaterConfig()
        cfg = self.config
        cfg.depth = min(cfg.depth, cfg.h)

        surface_y = cfg.h - cfg.depth
        count = max(int(math.ceil(cfg.w / cfg.column_spacing)), 1)
        xs = [min(i * cfg.column_spacing, cfg.w) for i in range(count)] + [cfg.w]
        self.columns = [WaterColumn(x, surface_y) for x in xs]

        self.sensor = physics.add(
            Body.box(
                cfg.x + cfg.w / 2,
                cfg.y + cfg.h - cfg.depth / 2,
                cfg.w,
                cfg.depth,
                is_static=True,
                is_sensor=True,
                owner=self,
            )
        )
        self.floating: list[WorldObject] = []

    def column_index(self, world_x: float) -> int:
        """First column at or right of ``world_x``, clamped to the surface."""
        local_x = world_x - self.config.x
        for i, column in enumerate(self.columns):
            if i > 0 and column.x >= local_x:
                return i
        return len(self.columns) - 1

    def column_at(self, world_x: float) -> WaterColumn:
        return self.columns[self.column_index(world_x)]

    def surface_y(self, world_x: float) -> float:
        return self.config.y + self.column_at(world_x).y

    def splash(self, obj: WorldObject, friction: float) -> None:
        """Disturb the surface where ``obj`` crosses it and switch its drag."""
        column = self.column_at(obj.x)
        speed = obj.body.speed if obj.body is not None else 0.0
        column.speed = speed * 3
        if obj.body is not None:
            obj.body.friction_air = friction
        droplets = math.ceil(speed) * 5
        if droplets:
            obj.effects.acquire(EffectKind.SPLASH, burst=droplets)

    def add_floating(self, obj: WorldObject) -> None:
        if obj.attrs.floats and obj not in self.floating:
            self.floating.append(obj)

    def remove_floating(self, obj: WorldObject) -> None:
        if obj in self.floating:
            self.floating.remove(obj)

    def update(self) -> None:
        cfg = self.config
        for column in self.columns:
            column.update(cfg.dampening, cfg.tension)

        n = len(self.columns)
        left = [0.0] * n
        right = [0.0] * n
        for j in range(n - 1):
            if j > 0:
                left[j] = cfg.spread * (self.columns[j].y - self.columns[j - 1].y)
                self.columns[j - 1].speed += left[j]
            right[j] = cfg.spread * (self.columns[j].y - self.columns[j + 1].y)
            self.columns[j + 1].speed += right[j]
        for j in range(n - 1):
            if j > 0:
                self.columns[j - 1].y += left[j]
            self.columns[j + 1].y += right[j]

        self.floating = [obj for obj in self.floating if not obj.destroyed]
        for obj in self.floating:
            obj.move_to(obj.x, self.surface_y(obj.x) + obj.attrs.float_offset)
            obj.set_velocity(vy=0.0)
            obj.attrs.angle = 0.0
