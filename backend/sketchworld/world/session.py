"""SessionOrchestrator — sketches and commands in, world objects and scene
signals out.

The presentation layer hands in a :class:`SessionCallbacks`; every object and
the resolver reach it only through the scene's :class:`SceneSignals`, which
drops calls from scenes that are no longer current and fires each terminal
transition (goal, game over) at most once per scene.
"""

from __future__ import annotations

import itertools
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field

from sketchworld.errors import ClassificationError, GenerationError, SketchWorldError
from sketchworld.generation.coordinator import GenerationCoordinator
from sketchworld.models.attributes import AttributeSet
from sketchworld.models.media import AnimatedResult, Backend, BlockedContent, CommandResult, GenerationRequest
from sketchworld.world.effects import EffectSink, LoggingEffectSink
from sketchworld.world.interactions import GoalZone, InteractionResolver
from sketchworld.world.kinds import USER_KIND, KindRegistry, get_kind_registry
from sketchworld.world.objects import WorldContext, WorldObject
from sketchworld.world.physics import PhysicsWorld
from sketchworld.world.water import WaterConfig, WaterSurface

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXTURE = "placeholder"
SETFIRE_LIFE = (100, 300)


def _noop(*args, **kwargs) -> None:
    return None


@dataclass
class SessionCallbacks:
    """Outbound, fire-and-forget signals to the presentation layer."""

    on_goal_reached: Callable[[str | None], None] = _noop
    on_game_over: Callable[[str], None] = _noop
    on_generation_progress: Callable[[str, bool, int], None] = _noop


class SceneSignals:
    """Per-scene gate in front of :class:`SessionCallbacks`."""

    def __init__(self, callbacks: SessionCallbacks, scene_id: int, is_current: Callable[[int], bool]) -> None:
        self.callbacks = callbacks
        self.scene_id = scene_id
        self._is_current = is_current
        self._terminal: str | None = None

    @property
    def stale(self) -> bool:
        return not self._is_current(self.scene_id)

    @property
    def terminal(self) -> str | None:
        return self._terminal

    def goal_reached(self, next_level: str | None) -> None:
        if self._claim("goal"):
            logger.info("Scene %d complete, next=%s", self.scene_id, next_level)
            self.callbacks.on_goal_reached(next_level)

    def game_over(self, reason: str) -> None:
        if self._claim("game_over"):
            logger.info("Scene %d game over: %s", self.scene_id, reason)
            self.callbacks.on_game_over(reason)

    def generation_progress(self, job: str, ready: bool, frames_ready: int) -> None:
        if self.stale:
            logger.warning("Dropping progress for %s from stale scene %d", job, self.scene_id)
            return
        self.callbacks.on_generation_progress(job, ready, frames_ready)

    def _claim(self, transition: str) -> bool:
        if self.stale:
            logger.warning("Dropping %s from stale scene %d", transition, self.scene_id)
            return False
        if self._terminal is not None:
            return False
        self._terminal = transition
        return True


@dataclass
class SceneConfig:
    name: str = "sandbox"
    next_level: str | None = None
    void_space: bool = False
    width: float = 800.0
    height: float = 600.0
    gravity_y: float = 1.0
    friction_air: float = 0.01
    friction_water: float = 0.1
    water: WaterConfig | None = None


@dataclass
class Scene:
    id: int
    config: SceneConfig
    context: WorldContext
    resolver: InteractionResolver
    water: WaterSurface | None = None
    objects: list[WorldObject] = field(default_factory=list)

    @property
    def signals(self) -> SceneSignals:
        return self.context.signals


class SessionOrchestrator:
    def __init__(
        self,
        coordinator: GenerationCoordinator,
        callbacks: SessionCallbacks | None = None,
        *,
        registry: KindRegistry | None = None,
        effects: EffectSink | None = None,
        style: str = "realistic",
        backend: Backend = Backend.IMAGEN,
        rng: random.Random | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.callbacks = callbacks or SessionCallbacks()
        self.registry = registry or get_kind_registry()
        self.effects = effects or LoggingEffectSink()
        self.style = style
        self.backend = Backend(backend)
        self.rng = rng or random.Random()
        self.scene: Scene | None = None
        self.targets_history: list[str] = []
        self._scene_ids = itertools.count(1)
        self._names = itertools.count(1)

    # -- Scene lifecycle -----------------------------------------------------

    def load_scene(self, config: SceneConfig | None = None) -> Scene:
        """Tear down the current scene (if any) and build a fresh one."""
        config = config or SceneConfig()
        self.teardown()

        scene_id = next(self._scene_ids)
        physics = PhysicsWorld(gravity_y=config.gravity_y)
        context = WorldContext(
            physics=physics,
            signals=SceneSignals(self.callbacks, scene_id, self._is_current),
            effects=self.effects,
            void_space=config.void_space,
            friction_air=config.friction_air,
            friction_water=config.friction_water,
            stage_height=config.height,
            visual_style=self.style,
            rng=self.rng,
        )
        water = WaterSurface(physics, config.water) if config.water is not None else None
        self.scene = Scene(
            id=scene_id,
            config=config,
            context=context,
            resolver=InteractionResolver(context, water),
            water=water,
        )
        self.targets_history = []
        logger.info("Loaded scene %d (%s)", scene_id, config.name)
        return self.scene

    def teardown(self) -> None:
        """Stop every effect first, then destroy every object."""
        scene = self.scene
        if scene is None:
            return
        for obj in scene.objects:
            obj.clear_effects()
        for obj in scene.objects:
            obj.destroy()
        scene.objects.clear()
        self.scene = None
        logger.info("Tore down scene %d", scene.id)

    def _is_current(self, scene_id: int) -> bool:
        return self.scene is not None and self.scene.id == scene_id

    def _require_scene(self) -> Scene:
        if self.scene is None:
            raise SketchWorldError("No scene loaded")
        return self.scene

    # -- Objects -------------------------------------------------------------

    def spawn(
        self,
        kind_id: str,
        x: float,
        y: float,
        width: float = 64.0,
        height: float = 64.0,
        attributes: AttributeSet | None = None,
        name: str | None = None,
    ) -> WorldObject:
        scene = self._require_scene()
        kind = self.registry.get(kind_id)
        obj = WorldObject(
            name or (kind.id if kind.id != USER_KIND else f"user{next(self._names)}"),
            kind,
            scene.context,
            x,
            y,
            width,
            height,
            attributes=attributes,
        )
        scene.objects.append(obj)
        return obj

    def add_goal(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        target: WorldObject,
    ) -> GoalZone:
        scene = self._require_scene()
        return scene.resolver.add_goal(x, y, width, height, target, scene.config.next_level)

    def objects(self, **flags: bool) -> list[WorldObject]:
        """Live objects, optionally filtered by attribute values."""
        scene = self.scene
        if scene is None:
            return []
        return [
            obj
            for obj in scene.objects
            if not obj.destroyed and all(getattr(obj.attrs, k, None) == v for k, v in flags.items())
        ]

    def last_created(self) -> WorldObject | None:
        created = [obj for obj in self.objects() if obj.attrs.user_generated_obj]
        return created[-1] if created else None

    # -- Sketch pipeline -----------------------------------------------------

    async def process_sketch(self, sketch: bytes, x: float, y: float) -> WorldObject | BlockedContent | None:
        """Drop a generating placeholder, classify, fetch media, then materialize.

        Returns ``None`` when the scene changed while work was in flight.
        Classification and generation errors clean up the placeholder and
        propagate.
        """
        scene = self._require_scene()
        placeholder_attrs = AttributeSet.defaults().merged({"solid": False, "generating": True})
        obj = self.spawn(USER_KIND, x, y, attributes=placeholder_attrs)

        try:
            analysis = await self.coordinator.classify(sketch)
            if self.scene is not scene:
                return self._stale(obj)
            if isinstance(analysis, BlockedContent):
                obj.destroy()
                return analysis

            attrs = AttributeSet.from_names(analysis.attributes)
            attrs.user_generated_obj = True
            if analysis.type in self.registry:
                ratio = self.registry.get(analysis.type).float_offset_ratio
                if ratio is not None:
                    attrs.float_offset = ratio * obj.height

            request = GenerationRequest(analysis.type, self.style, self.backend, sketch)
            media = await self.coordinator.generate(request, on_progress=self._progress_handler(scene, obj))
            if self.scene is not scene:
                return self._stale(obj)
            if isinstance(media, BlockedContent):
                obj.destroy()
                return media
        except (ClassificationError, GenerationError):
            logger.exception("Sketch processing failed")
            self._fall_back(obj)
            raise

        if isinstance(media, AnimatedResult):
            obj.media = media.image
            obj.animation_hash = media.hash
            texture = media.hash
        else:
            obj.media = media
            texture = analysis.type
        obj.apply_attributes(attrs, texture=texture)

        self.targets_history.append(analysis.type)
        self.targets_history.extend(attrs.true_flags())
        logger.info("Materialized %s as %s %s", obj.name, analysis.type, attrs.true_flags())
        return obj

    def _progress_handler(self, scene: Scene, obj: WorldObject) -> Callable[[str, bool, int], None]:
        def handle(job: str, ready: bool, frames_ready: int) -> None:
            if scene.signals.stale or obj.destroyed:
                logger.warning("Frames for %s arrived after their object went away", job)
                return
            obj.animation_ready = ready
            scene.signals.generation_progress(job, ready, frames_ready)

        return handle

    def _stale(self, obj: WorldObject) -> None:
        logger.warning("Scene changed while %s was generating; dropping result", obj.name)
        obj.destroy()
        return None

    def _fall_back(self, obj: WorldObject) -> None:
        obj.clear_effects()
        attrs = obj.attrs.copy()
        attrs.generating = False
        obj.apply_attributes(attrs, texture=PLACEHOLDER_TEXTURE)

    # -- Commands ------------------------------------------------------------

    def resolve_targets(self, target: str) -> list[WorldObject]:
        target = (target or "").strip().lower()
        if not target:
            return []
        if target == "all":
            return self.objects()
        if target in ("last_created", "last_object"):
            last = self.last_created()
            return [last] if last else []

        found = [obj for obj in self.objects() if obj.name.lower() == target]
        for obj in self.objects():
            if obj.attrs.is_set(target) and obj not in found:
                found.append(obj)
        return found

    def apply_command(self, verb: str, target: str) -> list[WorldObject]:
        verb = (verb or "").strip().lower()
        targets = self.resolve_targets(target)
        logger.info("Command %s on %r hits %d object(s)", verb, target, len(targets))

        for obj in targets:
            if verb == "destroy":
                obj.clear_effects()
                obj.add_fire(True)
                obj.attrs.explodes = True
                obj.life = 0
            elif verb == "setfire":
                obj.clear_effects()
                obj.add_fire(True)
                obj.attrs.explodes = True
                obj.life = self.rng.randint(*SETFIRE_LIFE)
            elif verb == "douse":
                obj.add_wet()
            elif verb == "magnetize":
                obj.magnetize()
            elif verb == "electrify":
                obj.clear_rust()
            else:
                logger.warning("Unknown command verb %r", verb)
                return []
        if targets and target not in self.targets_history:
            self.targets_history.append(target)
        return targets

    async def run_command(self, text: str) -> CommandResult:
        command = await self.coordinator.text_to_command(text, self.current_targets())
        self.apply_command(command.verb, command.target)
        return command

    def current_targets(self) -> list[str]:
        targets: list[str] = []
        for obj in self.objects():
            for name in [obj.name, *obj.attrs.true_flags()]:
                if name not in targets:
                    targets.append(name)
        return targets + self.targets_history

    # -- Tick ----------------------------------------------------------------

    def tick(self) -> None:
        """One frame: physics, collision rules, object updates, water."""
        scene = self.scene
        if scene is None:
            return
        events = scene.context.physics.step()
        scene.resolver.dispatch(events)
        for obj in list(scene.objects):
            obj.update()
        if scene.water is not None:
            scene.water.update()
        scene.objects = [obj for obj in scene.objects if not obj.destroyed]
