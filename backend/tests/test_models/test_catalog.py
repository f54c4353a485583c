"""Tests for the game catalog and prompt templates."""

from __future__ import annotations

from sketchworld.catalog import Catalog


def test_build_prompt_substitutes_placeholders(catalog):
    prompt = catalog.build_prompt("imagen_generation", {"type": "lamp", "visualStyle": "pixel art"})
    assert "a lamp" in prompt
    assert "pixel art" in prompt
    assert "{{" not in prompt


def test_build_prompt_unknown_id_is_empty(catalog):
    assert catalog.build_prompt("no_such_prompt", {"type": "lamp"}) == ""
    assert catalog.build_prompt("", {}) == ""


def test_missing_values_become_empty():
    catalog = Catalog.model_validate({"prompts": {"p": "a {{type}} in {{ place }}"}})
    assert catalog.build_prompt("p", {"type": "boat"}) == "a boat in "


def test_match_type_is_substring(catalog):
    assert catalog.match_type("A small wooden Boat").is_ == "boat"
    assert catalog.match_type("blorp") is None


def test_attribute_synonyms(catalog):
    targets = {a.key: a.target for a in catalog.attributes}
    assert targets["on_fire"] == "burns"
    assert targets["electric"] == "lightning"
    assert targets["wooden"] == "wooden"


def test_style_prompt_falls_back_to_id(catalog):
    assert catalog.style_prompt("pixellated") == "16-bit pixel art"
    assert catalog.style_prompt("watercolour") == "watercolour"


def test_blocked_terms(catalog):
    assert catalog.is_inappropriate("Big GUN")
    assert not catalog.is_inappropriate("lamp")
