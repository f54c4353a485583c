"""Minimal 2D rigid-body world: axis-aligned boxes, per-body attractors and
collision start/active/end pair tracking.

Units follow the usual 60 fps sandbox convention: positions in pixels,
velocities in pixels per tick, y pointing down. Forces are scaled by the
squared tick length the way position-Verlet engines do, so force constants
tuned for such engines carry over.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

TICK_MS = 1000.0 / 60.0
_FORCE_SCALE = TICK_MS * TICK_MS
_GRAVITY_SCALE = 0.001

_ids = itertools.count(1)

Attractor = Callable[["Body", "Body"], None]


@dataclass(eq=False)
class Body:
    position: np.ndarray
    size: np.ndarray
    mass: float = 0.1
    is_static: bool = False
    is_sensor: bool = False
    ignore_gravity: bool = False
    friction_air: float = 0.01
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))
    force: np.ndarray = field(default_factory=lambda: np.zeros(2))
    attractors: list[Attractor] = field(default_factory=list)
    owner: Any = None
    id: int = field(default_factory=lambda: next(_ids))

    @classmethod
    def box(cls, x: float, y: float, width: float, height: float, **kwargs: Any) -> Body:
        return cls(
            position=np.array([x, y], dtype=float),
            size=np.array([width, height], dtype=float),
            **kwargs,
        )

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def apply_force(self, force: np.ndarray) -> None:
        if not self.is_static:
            self.force += force

    def set_velocity(self, vx: float | None = None, vy: float | None = None) -> None:
        if vx is not None:
            self.velocity[0] = vx
        if vy is not None:
            self.velocity[1] = vy

    def overlaps(self, other: Body) -> bool:
        delta = np.abs(self.position - other.position)
        reach = (self.size + other.size) / 2.0
        return bool(np.all(delta < reach))


@dataclass
class CollisionEvents:
    start: list[tuple[Body, Body]] = field(default_factory=list)
    active: list[tuple[Body, Body]] = field(default_factory=list)
    end: list[tuple[Body, Body]] = field(default_factory=list)


class PhysicsWorld:
    def __init__(self, gravity_y: float = 1.0) -> None:
        self.gravity = np.array([0.0, gravity_y])
        self.bodies: list[Body] = []
        self._contacts: dict[tuple[int, int], tuple[Body, Body]] = {}

    def add(self, body: Body) -> Body:
        self.bodies.append(body)
        return body

    def remove(self, body: Body) -> None:
        if body in self.bodies:
            self.bodies.remove(body)
        for key in [k for k in self._contacts if body.id in k]:
            del self._contacts[key]

    def step(self) -> CollisionEvents:
        """Advance one tick and report contact changes."""
        bodies = list(self.bodies)
        for a in bodies:
            for attractor in a.attractors:
                for b in bodies:
                    if b is not a:
                        attractor(a, b)

        for body in bodies:
            if body.is_static or body.is_sensor:
                body.force[:] = 0.0
                continue
            accel = body.force / max(body.mass, 1e-9) * _FORCE_SCALE
            if not body.ignore_gravity:
                accel = accel + self.gravity * _GRAVITY_SCALE * _FORCE_SCALE
            body.velocity = (body.velocity + accel) * (1.0 - min(body.friction_air, 1.0))
            body.position = body.position + body.velocity
            body.force[:] = 0.0

        return self._detect(bodies)

    def _detect(self, bodies: list[Body]) -> CollisionEvents:
        events = CollisionEvents()
        current: dict[tuple[int, int], tuple[Body, Body]] = {}
        for a, b in itertools.combinations(bodies, 2):
            if a.is_static and b.is_static:
                continue
            if a.overlaps(b):
                key = (a.id, b.id) if a.id < b.id else (b.id, a.id)
                current[key] = (a, b)

        for key, pair in current.items():
            if key in self._contacts:
                events.active.append(pair)
            else:
                events.start.append(pair)
        for key, pair in self._contacts.items():
            if key not in current:
                events.end.append(pair)

        self._contacts = current
        return events
