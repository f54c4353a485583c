"""Tests for WorldObject reactions, countdowns and force fields."""

from __future__ import annotations

import pytest

from sketchworld.models.attributes import AttributeSet
from sketchworld.world.effects import EffectKind
from sketchworld.world.kinds import KindDescriptor, KindRegistry, get_kind_registry
from sketchworld.world.objects import EXPLODED_LIFE, OFFSTAGE
from sketchworld.world.session import SceneConfig


def test_kind_overrides_seed_attributes(session):
    boat = session.spawn("boat", 100, 100, 64, 64)
    assert boat.attrs.floats and boat.attrs.wooden and not boat.attrs.drives
    assert boat.attrs.float_offset == pytest.approx(-0.4 * 64)
    assert boat.texture == "boat"
    assert boat.body is not None


def test_objects_never_share_attribute_sets(session):
    a = session.spawn("tofu", 0, 0)
    b = session.spawn("tofu", 200, 0)
    a.attrs.metal = True
    assert not b.attrs.metal


def test_registry_rejects_duplicates():
    registry = KindRegistry()
    registry.register(KindDescriptor("lamp", overrides={"metal": True}))
    with pytest.raises(ValueError):
        registry.register(KindDescriptor("lamp"))
    with pytest.raises(KeyError):
        registry.get("blorp")
    assert registry.get("lamp").build_attributes().metal


def test_key_capability_is_a_flag():
    registry = get_kind_registry()
    assert {k.id for k in registry.all() if k.is_key} == {"key", "icekey", "rustedkey"}


def test_bomb_life_is_randomized(session):
    bomb = session.spawn("bomb", 0, 0)
    assert 100 <= bomb.life <= 200


def test_explosion_fires_once(session, effects):
    tofu = session.spawn("tofu", 0, 0)
    tofu.attrs.explodes = True
    tofu.life = 1

    tofu.update()
    assert not tofu.b_exploded
    tofu.update()
    assert tofu.b_exploded
    assert tofu.life == EXPLODED_LIFE

    tofu.update()
    assert tofu.destroyed
    tofu.update()
    assert len(effects.started(EffectKind.EXPLOSION, owner="tofu")) == 1


def test_burning_counts_down(session):
    tree = session.spawn("tree", 0, 0)
    tree.add_fire()
    assert tree.b_catch_fire
    tree.update()
    assert tree.life == 99


def test_burning_bridge_turns_explosive(session):
    bridge = session.spawn("bridge", 0, 0, 200, 20)
    bridge.add_fire(True)
    bridge.update()
    assert bridge.attrs.explodes
    assert bridge.life == 99


def test_douse_clears_fire_and_rusts_metal(session, effects):
    metal = session.spawn("metal", 0, 0)
    metal.add_fire(True)
    metal.add_wet()

    assert not metal.b_catch_fire
    assert not metal.attrs.burns
    assert metal.attrs.rusted
    assert not metal.effects.is_active(EffectKind.FIRE)
    assert effects.started(EffectKind.STEAM, owner="metal")


def test_douse_does_nothing_to_plain_objects(session):
    tofu = session.spawn("tofu", 0, 0)
    before = tofu.attrs.copy()
    tofu.add_wet()
    assert tofu.attrs == before


def test_rust_swaps_texture_and_back(session):
    key = session.spawn("key", 0, 0)
    key.add_wet()
    assert key.attrs.rusted
    assert key.texture == "rustedkey"
    key.clear_rust()
    assert not key.attrs.rusted
    assert key.texture == "key"


def test_rusted_key_cleans_to_plain_key(session):
    key = session.spawn("rustedkey", 0, 0)
    key.clear_rust()
    assert key.texture == "key"


def test_ice_melts_under_fire(session, recorder):
    ice = session.spawn("ice", 100, 100)
    ice.add_fire()
    assert not ice.attrs.ice
    assert ice.life == -1
    assert (ice.x, ice.y) == OFFSTAGE
    assert recorder.game_overs == []


def test_ice_key_game_over_is_signalled_once(session, recorder):
    key = session.spawn("icekey", 100, 100)
    key.add_fire()
    key.add_explosion()
    assert recorder.game_overs == ["key_destroyed"]


def test_exploding_key_ends_the_game(session, recorder):
    key = session.spawn("key", 0, 0)
    key.add_explosion()
    assert recorder.game_overs == ["key_destroyed"]


def test_lightning_burns_out(session):
    bolt = session.spawn("lightning", 0, 0)
    for _ in range(20):
        bolt.update()
    assert not bolt.destroyed
    bolt.update()
    assert bolt.destroyed


def test_magnet_pulls_clean_metal_only(session):
    magnet = session.spawn("magnet", 0, 0)
    metal = session.spawn("metal", 100, 0)
    metal.attrs.rusted = True

    session.scene.context.physics.step()
    assert metal.body.velocity[0] == 0.0

    metal.clear_rust()
    session.scene.context.physics.step()
    assert metal.body.velocity[0] < 0.0
    assert magnet.body.velocity[0] > 0.0


def test_magnetize_installs_field(session, effects):
    tofu = session.spawn("tofu", 0, 0)
    metal = session.spawn("metal", 100, 0)
    tofu.magnetize()
    assert tofu.attrs.metal and tofu.attrs.magnetic
    assert effects.started(EffectKind.MAGNETIC_FIELD, owner="tofu")

    session.scene.context.physics.step()
    assert metal.body.velocity[0] < 0.0


def test_fan_blows_light_objects(session):
    session.spawn("fan", 0, 0)
    tofu = session.spawn("tofu", 100, 0)
    bricks = session.spawn("bricks", -100, 0)
    session.scene.context.physics.step()
    assert tofu.body.velocity[0] > 0.0
    assert bricks.body.velocity[0] == 0.0


def test_no_wind_in_void_space(session, effects):
    session.load_scene(SceneConfig(void_space=True))
    fan = session.spawn("fan", 0, 0)
    tofu = session.spawn("tofu", 100, 0)
    session.scene.context.physics.step()
    assert tofu.body.velocity[0] == 0.0
    assert not fan.effects.is_active(EffectKind.WIND)


def test_non_solid_objects_are_voided(session):
    session.load_scene(SceneConfig(void_space=True))
    cloud = session.spawn("cloud", 300, 100)
    assert cloud.b_exploded
    assert cloud.life == 0
    assert cloud.x == OFFSTAGE[0]


def test_generating_placeholder_is_not_voided(session, effects):
    session.load_scene(SceneConfig(void_space=True))
    attrs = AttributeSet.defaults().merged({"solid": False, "generating": True})
    obj = session.spawn("user", 300, 100, attributes=attrs)
    assert not obj.b_exploded
    assert obj.effects.is_active(EffectKind.FADE)

    obj.update()
    assert obj.life == 100


def test_rain_cloud_owns_a_rain_zone(session):
    cloud = session.spawn("cloud_rainy", 100, 100)
    assert cloud.body is None
    assert cloud.rain_zone is not None
    assert cloud.rain_zone.body in session.scene.context.physics.bodies

    cloud.destroy()
    assert cloud.rain_zone is None


def test_walkers_and_drivers_move(session):
    walker = session.spawn("tofu", 0, 0, attributes=AttributeSet.defaults().merged({"walks": True}))
    car = session.spawn("tofu", 200, 0, attributes=AttributeSet.defaults().merged({"drives": True}))
    walker.update()
    car.update()
    assert walker.body.velocity[0] == 0.5
    assert car.body.velocity[0] == 1.0


def test_destroy_is_idempotent(session, effects):
    fire = session.spawn("fire", 0, 0)
    fire.destroy()
    fire.destroy()
    assert fire.destroyed
    assert fire.body is None
    assert effects.active(owner="fire") == []


def test_to_dict(session):
    boat = session.spawn("boat", 10, 20)
    data = boat.to_dict()
    assert data["kind"] == "boat"
    assert data["attributes"] == ["floats", "falls", "solid", "wooden"]
    assert (data["x"], data["y"]) == (10.0, 20.0)
