"""Tests for SessionOrchestrator: sketch pipeline, commands, signals and teardown."""

from __future__ import annotations

import asyncio
import random

import pytest

from sketchworld.errors import ClassificationError, GenerationError, GenerationErrorKind, SketchWorldError
from sketchworld.models.media import AnalysisResult, Backend, BlockedContent
from sketchworld.world.effects import EffectKind
from sketchworld.world.session import SceneConfig, SessionOrchestrator
from sketchworld.world.water import WaterConfig
from tests.conftest import SKETCH_PNG, FakeImageGenerator


def test_sketch_becomes_boat(session, llm, image_generator):
    llm.vision_answers.append({"type": "boat"})
    obj = asyncio.run(session.process_sketch(SKETCH_PNG, 100, 100))

    assert obj.name == "user1"
    assert obj.kind.id == "user"
    assert obj.texture == "boat"
    assert obj.media is not None
    assert obj.attrs.floats and obj.attrs.wooden and not obj.attrs.drives
    assert obj.attrs.user_generated_obj
    assert not obj.attrs.generating
    assert obj.attrs.float_offset == pytest.approx(-0.4 * obj.height)
    assert obj.body is not None
    assert len(image_generator.calls) == 1
    assert "boat" in session.targets_history


def test_boat_sketch_floats_on_water(session, llm):
    session.load_scene(SceneConfig(water=WaterConfig(x=0, y=400, w=200, h=200, depth=100)))
    llm.vision_answers.append({"type": "boat"})
    boat = asyncio.run(session.process_sketch(SKETCH_PNG, 100, 520))

    water = session.scene.water
    for _ in range(3):
        session.tick()
    assert boat in water.floating
    assert boat.y == pytest.approx(water.surface_y(boat.x) - boat.height * 0.4)


def test_unknown_sketch_keeps_only_truthy_attributes(session, llm):
    llm.vision_answers.extend([{"type": "none"}, {"type": "blorp"}])
    llm.text_answers.append({"attributes": {"wooden": 1, "metal": 0}})
    obj = asyncio.run(session.process_sketch(SKETCH_PNG, 100, 100))

    assert obj.texture == "blorp"
    assert obj.attrs.true_flags() == ["wooden"]
    assert obj.attrs.float_offset == 0.0
    assert obj.body is None


def test_placeholder_while_generating(session):
    seen = {}

    class PeekingCoordinator:
        async def classify(self, sketch):
            (placeholder,) = session.objects()
            seen["generating"] = placeholder.attrs.generating
            seen["fading"] = placeholder.effects.is_active(EffectKind.FADE)
            seen["body"] = placeholder.body
            return AnalysisResult(type="boat", attributes=["floats", "solid"])

        async def generate(self, request, on_progress=None):
            seen["request"] = (request.object_type, request.backend, request.sketch)
            return b"png"

    session.coordinator = PeekingCoordinator()
    obj = asyncio.run(session.process_sketch(SKETCH_PNG, 100, 100))

    assert seen.pop("request") == ("boat", Backend.IMAGEN, SKETCH_PNG)
    assert seen == {"generating": True, "fading": True, "body": None}
    assert not obj.effects.is_active(EffectKind.FADE)
    assert obj.media == b"png"


def test_blocked_sketch_removes_placeholder(session, llm):
    llm.vision_answers.extend([{"type": "none"}, {"type": "gun"}])
    llm.text_answers.append({"attributes": {}})
    result = asyncio.run(session.process_sketch(SKETCH_PNG, 100, 100))

    assert isinstance(result, BlockedContent)
    assert session.objects() == []


def test_classification_failure_falls_back_to_placeholder(session, llm, effects):
    llm.vision_answers.append(ClassificationError("model said nothing useful"))
    with pytest.raises(ClassificationError):
        asyncio.run(session.process_sketch(SKETCH_PNG, 100, 100))

    (obj,) = session.objects()
    assert obj.texture == "placeholder"
    assert not obj.attrs.generating
    assert obj.alpha == 1.0
    assert effects.active(owner=obj.name) == []


def test_generation_failure_falls_back_to_placeholder(make_coordinator, recorder, effects, llm):
    generator = FakeImageGenerator(GenerationError(GenerationErrorKind.AUTH_FAILED))
    coordinator = make_coordinator(image_generators={Backend.IMAGEN: generator})
    session = SessionOrchestrator(coordinator, recorder.as_callbacks(), effects=effects)
    session.load_scene()
    llm.vision_answers.append({"type": "boat"})

    with pytest.raises(GenerationError):
        asyncio.run(session.process_sketch(SKETCH_PNG, 100, 100))
    assert session.objects()[0].texture == "placeholder"


def test_scene_change_drops_late_result(session, recorder):
    class SlowCoordinator:
        async def classify(self, sketch):
            session.load_scene(SceneConfig(name="next"))
            return AnalysisResult(type="boat", attributes=["floats"])

    session.coordinator = SlowCoordinator()
    assert asyncio.run(session.process_sketch(SKETCH_PNG, 100, 100)) is None
    assert session.objects() == []


def test_veo_backend_reports_animation_progress(coordinator, recorder, effects, llm):
    session = SessionOrchestrator(
        coordinator, recorder.as_callbacks(), effects=effects, backend=Backend.VEO
    )
    session.load_scene()
    llm.vision_answers.append({"type": "fire"})

    async def run():
        obj = await session.process_sketch(SKETCH_PNG, 100, 100)
        await coordinator.drain()
        return obj

    obj = asyncio.run(run())
    assert obj.animation_hash
    assert obj.texture == obj.animation_hash
    assert obj.animation_ready
    assert recorder.progress == [(obj.animation_hash, True, 4)]


def test_progress_from_old_scene_is_dropped(coordinator, recorder, effects, llm):
    session = SessionOrchestrator(
        coordinator, recorder.as_callbacks(), effects=effects, backend=Backend.VEO
    )
    session.load_scene()
    llm.vision_answers.append({"type": "fire"})

    async def run():
        obj = await session.process_sketch(SKETCH_PNG, 100, 100)
        session.load_scene(SceneConfig(name="next"))
        await coordinator.drain()
        return obj

    obj = asyncio.run(run())
    assert recorder.progress == []
    assert not obj.animation_ready
    assert coordinator.frame_status(obj.animation_hash).ready


# -- Commands ----------------------------------------------------------------


def test_setfire_on_attribute_target(session):
    tree = session.spawn("tree", 0, 0)
    boat = session.spawn("boat", 100, 0)
    metal = session.spawn("metal", 200, 0)

    hit = session.apply_command("setfire", "wooden")
    assert hit == [tree, boat]
    assert tree.b_catch_fire and tree.attrs.explodes
    assert 100 <= tree.life <= 300
    assert not metal.b_catch_fire
    assert "wooden" in session.current_targets()


def test_destroy_by_name(session):
    bomb = session.spawn("bomb", 0, 0)
    session.apply_command("Destroy", "BOMB")
    assert bomb.life == 0 and bomb.attrs.explodes and bomb.b_catch_fire
    session.tick()
    assert bomb.b_exploded


def test_douse_magnetize_electrify(session):
    metal = session.spawn("metal", 0, 0)
    tofu = session.spawn("tofu", 100, 0)

    session.apply_command("douse", "metal")
    assert metal.attrs.rusted
    session.apply_command("electrify", "rusted")
    assert not metal.attrs.rusted
    session.apply_command("magnetize", "tofu")
    assert tofu.attrs.magnetic and tofu.attrs.metal


def test_last_created_targets_newest_user_object(session, llm):
    session.spawn("tree", 0, 0)
    llm.vision_answers.extend([{"type": "boat"}, {"type": "key"}])
    first = asyncio.run(session.process_sketch(SKETCH_PNG, 100, 100))
    second = asyncio.run(session.process_sketch(SKETCH_PNG, 200, 100))

    assert session.resolve_targets("LAST_CREATED") == [second]
    assert session.resolve_targets("last_object") == [second]
    assert first is not second


def test_empty_target_and_unknown_verb_do_nothing(session):
    tree = session.spawn("tree", 0, 0)
    assert session.apply_command("setfire", "") == []
    assert session.apply_command("sing", "tree") == []
    assert not tree.b_catch_fire


def test_all_hits_everything(session):
    objs = [session.spawn("tofu", i * 100, 0) for i in range(3)]
    assert session.apply_command("douse", "all") == objs


def test_run_command_uses_text_model(session, llm):
    tree = session.spawn("tree", 0, 0)
    llm.text_answers.append({"setfire": "tree"})
    command = asyncio.run(session.run_command("burn it"))

    assert (command.verb, command.target) == ("setfire", "tree")
    assert tree.b_catch_fire
    assert "tree" in llm.text_prompts[0]


# -- Scene lifecycle -----------------------------------------------------------


def test_game_over_fires_once_per_scene(session, recorder):
    key = session.spawn("key", 0, 0)
    key.add_explosion()
    key.add_explosion()
    assert recorder.game_overs == ["key_destroyed"]

    session.load_scene()
    session.spawn("key", 0, 0).add_explosion()
    assert recorder.game_overs == ["key_destroyed", "key_destroyed"]


def test_stale_scene_signals_are_dropped(session, recorder):
    old_signals = session.scene.signals
    session.load_scene()
    old_signals.game_over("key_destroyed")
    old_signals.goal_reached("level2")
    assert recorder.game_overs == []
    assert recorder.goals == []


def test_teardown_stops_effects_before_destroying(session, effects):
    fire = session.spawn("fire", 0, 0)
    cloud = session.spawn("cloud_rainy", 100, 0)
    magnet = session.spawn("magnet", 200, 0)
    assert effects.active()

    session.load_scene()
    assert effects.active() == []
    assert all(obj.destroyed for obj in (fire, cloud, magnet))
    assert session.scene.context.physics.bodies == []


def test_tick_prunes_destroyed_objects(session):
    bolt = session.spawn("lightning", 0, 0)
    for _ in range(21):
        session.tick()
    assert bolt.destroyed
    assert bolt not in session.scene.objects


def test_spawn_requires_scene(coordinator):
    session = SessionOrchestrator(coordinator, rng=random.Random(1))
    with pytest.raises(SketchWorldError):
        session.spawn("tofu", 0, 0)
