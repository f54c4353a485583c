"""Tests for the write-once pooled media cache."""

from __future__ import annotations

from sketchworld.cache.media_cache import MediaCache, normalize
from sketchworld.models.media import MediaKind


def test_miss_then_hit(media_cache):
    assert media_cache.get("lamp", "realistic", MediaKind.IMAGEN) is None
    result = media_cache.put("lamp", "realistic", MediaKind.IMAGEN, b"png-1")
    assert result.success and result.pool_index == 0
    assert media_cache.get("lamp", "realistic", MediaKind.IMAGEN) == b"png-1"


def test_keys_are_case_folded(media_cache):
    media_cache.put("Lamp", "Realistic", MediaKind.IMAGEN, b"png-1")
    assert media_cache.get("lamp ", "REALISTIC", MediaKind.IMAGEN) == b"png-1"
    assert normalize("LAMP") == "lamp"
    assert normalize("  Rusted   Key ") == normalize("rusted key")
    assert normalize("   ") == "unknown"


def test_non_ascii_types_get_distinct_entries(media_cache):
    media_cache.put("ボート", "realistic", MediaKind.IMAGEN, b"boat")
    media_cache.put("café", "realistic", MediaKind.IMAGEN, b"cafe")

    assert media_cache.get("ランプ", "realistic", MediaKind.IMAGEN) is None
    assert media_cache.get("caf", "realistic", MediaKind.IMAGEN) is None
    assert media_cache.get("ボート", "realistic", MediaKind.IMAGEN) == b"boat"
    assert media_cache.get("CAFÉ", "realistic", MediaKind.IMAGEN) == b"cafe"
    assert len({normalize(t) for t in ("ボート", "ランプ", "???", "!!!", "rusted key", "rusted-key")}) == 6


def test_kinds_do_not_share_entries(media_cache):
    media_cache.put("lamp", "realistic", MediaKind.IMAGEN, b"imagen")
    assert media_cache.get("lamp", "realistic", MediaKind.GEMINI) is None


def test_taken_slot_is_never_overwritten(media_cache):
    media_cache.put("lamp", "realistic", MediaKind.IMAGEN, b"first", pool_index=0)
    result = media_cache.put("lamp", "realistic", MediaKind.IMAGEN, b"second", pool_index=0)
    assert result.success and result.pool_index == 1
    assert media_cache.get("lamp", "realistic", MediaKind.IMAGEN, pool_index=0) == b"first"
    assert media_cache.get("lamp", "realistic", MediaKind.IMAGEN, pool_index=1) == b"second"


def test_pool_is_bounded(media_cache):
    results = [
        media_cache.put("lamp", "realistic", MediaKind.IMAGEN, f"png-{i}".encode())
        for i in range(media_cache.pool_size + 1)
    ]
    assert [r.success for r in results] == [True, True, True, False]
    assert results[-1].error == "pool full"
    assert media_cache.pool_indices("lamp", "realistic", MediaKind.IMAGEN) == [0, 1, 2]
    assert len(list(media_cache.root.glob("lamp__realistic__imagen__*.png"))) == 3


def test_pool_reads_rotate(media_cache):
    for i in range(3):
        media_cache.put("lamp", "realistic", MediaKind.IMAGEN, f"png-{i}".encode())
    reads = {media_cache.get("lamp", "realistic", MediaKind.IMAGEN) for _ in range(3)}
    assert reads == {b"png-0", b"png-1", b"png-2"}


def test_frames_need_the_full_set(media_cache):
    frames = [f"frame-{i}".encode() for i in range(4)]
    assert media_cache.put_frames("lamp", "realistic", frames).success
    assert media_cache.get_frames("Lamp", "realistic") == frames

    media_cache.frame_path("lamp", "realistic", 2).unlink()
    assert media_cache.get_frames("lamp", "realistic") is None


def test_partial_frame_set_is_refused(media_cache):
    result = media_cache.put_frames("lamp", "realistic", [b"a", b"b", b"c"])
    assert not result.success
    assert media_cache.get_frames("lamp", "realistic") is None


def test_write_failure_is_soft(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")
    cache = MediaCache(blocker / "cache")

    result = cache.put("lamp", "realistic", MediaKind.IMAGEN, b"png")
    assert not result.success
    assert cache.get("lamp", "realistic", MediaKind.IMAGEN) is None


def test_empty_payload_is_not_cached(media_cache):
    assert not media_cache.put("lamp", "realistic", MediaKind.IMAGEN, b"").success
    assert media_cache.pool_indices("lamp", "realistic", MediaKind.IMAGEN) == []


def test_source_image_is_kept_beside_its_slot(media_cache):
    result = media_cache.put("lamp", "realistic", MediaKind.IMAGEN, b"thumb", source=b"full-size")
    assert media_cache.get_source("lamp", "realistic", MediaKind.IMAGEN, result.pool_index) == b"full-size"
    assert media_cache.get("lamp", "realistic", MediaKind.IMAGEN, pool_index=result.pool_index) == b"thumb"
    assert media_cache.pool_indices("lamp", "realistic", MediaKind.IMAGEN) == [0]

    media_cache.put("lamp", "realistic", MediaKind.IMAGEN, b"thumb-2")
    assert media_cache.get_source("lamp", "realistic", MediaKind.IMAGEN, 1) is None
