"""InteractionResolver — the collision rule table.

Every rule is written as "``first`` acts on ``second``" and evaluated for both
orderings of each pair, so it never matters which body the physics layer
reports as A. All matching rules fire within one event; the only thing that
stops a repeat is an object-level guard such as ``b_exploded``.

Signals:
    start   one-shot transitions: water entry, sinking, lightning strikes, goal
    active  continuous effects: ignition, rust clearing, rain, melting, chains
    end     reverts: leaving water restores air drag and stops buoyancy
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sketchworld.world.effects import EffectKind
from sketchworld.world.objects import RainZone, WorldContext, WorldObject
from sketchworld.world.physics import Body, CollisionEvents
from sketchworld.world.water import WaterSurface

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class GoalZone:
    target: WorldObject
    next_level: str | None
    body: Body


def _live(owner: Any) -> WorldObject | None:
    if isinstance(owner, WorldObject) and not owner.destroyed:
        return owner
    return None


class InteractionResolver:
    def __init__(self, context: WorldContext, water: WaterSurface | None = None) -> None:
        self.context = context
        self.water = water
        self.goals: list[GoalZone] = []
        self.chains: list[tuple[WorldObject, WorldObject]] = []

    # -- Scene wiring --------------------------------------------------------

    def add_goal(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        target: WorldObject,
        next_level: str | None = None,
    ) -> GoalZone:
        body = Body.box(x, y, width, height, is_static=True, is_sensor=True)
        goal = GoalZone(target=target, next_level=next_level, body=body)
        body.owner = goal
        self.context.physics.add(body)
        self.goals.append(goal)
        return goal

    def link_explosives(self, target: WorldObject, explosive: WorldObject) -> None:
        """Let ``explosive`` set off ``target`` on contact once it has blown."""
        self.chains.append((target, explosive))

    # -- Dispatch ------------------------------------------------------------

    def dispatch(self, events: CollisionEvents) -> None:
        self.on_collision_start(events.start)
        self.on_collision_active(events.active)
        self.on_collision_end(events.end)

    def on_collision_start(self, pairs: list[tuple[Body, Body]]) -> None:
        for a, b in pairs:
            for first, second in ((a, b), (b, a)):
                self._start_rules(first, second)

    def on_collision_active(self, pairs: list[tuple[Body, Body]]) -> None:
        for a, b in pairs:
            for first, second in ((a, b), (b, a)):
                self._active_rules(first, second)

    def on_collision_end(self, pairs: list[tuple[Body, Body]]) -> None:
        for a, b in pairs:
            for first, second in ((a, b), (b, a)):
                self._end_rules(first, second)

    # -- Rules ---------------------------------------------------------------

    def _start_rules(self, first: Body, second: Body) -> None:
        other = _live(second.owner)
        if other is None:
            return

        if self.water is not None and first is self.water.sensor:
            self.water.splash(other, self.context.friction_water)
            self.water.add_floating(other)
            other.add_wet()
            logger.debug("%s entered water", other.name)

        if isinstance(first.owner, GoalZone) and first.owner.target is other:
            logger.info("Goal reached by %s", other.name)
            self.context.signals.goal_reached(first.owner.next_level)

        actor = _live(first.owner)
        if actor is None:
            return

        if actor.attrs.heavy:
            if self.water is not None:
                self.water.remove_floating(other)
            other.attrs.floats = False

        if actor.attrs.lightning:
            actor.effects.acquire(EffectKind.EXPLOSION, burst=100)
            other.clear_rust()

    def _active_rules(self, first: Body, second: Body) -> None:
        other = _live(second.owner)
        if other is None:
            return

        if isinstance(first.owner, RainZone) and first.owner.source is not other:
            other.add_wet()

        actor = _live(first.owner)
        if actor is None:
            return

        if actor.can_set_fire and (other.attrs.wooden or other.attrs.ice):
            other.add_fire()
        if actor.attrs.lightning and other.attrs.rusted:
            other.clear_rust()
        if other.kind.melts and actor.can_set_fire:
            other.melt()
        if (other, actor) in self.chains:
            other.explode_together(actor)

    def _end_rules(self, first: Body, second: Body) -> None:
        other = _live(second.owner)
        if other is None or self.water is None or first is not self.water.sensor:
            return
        self.water.splash(other, self.context.friction_air)
        self.water.remove_floating(other)
        logger.debug("%s left water", other.name)
