"""Game catalog — known types, attribute vocabulary, verbs, styles and prompt templates.

Loaded from ``data/ai_config.json`` (or ``settings.ai_config_path``) into
pydantic models. Prompt templates use ``{{name}}`` placeholders.
"""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

from sketchworld.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path(__file__).parent / "data" / "ai_config.json"

_TEMPLATE_RE = re.compile(r"{{\s?([^{}\s]*)\s?}}")


class CatalogType(BaseModel):
    is_: str = Field(..., alias="is")
    attributes: list[str] = Field(default_factory=list)


class CatalogAttribute(BaseModel):
    key: str
    maps_to: str | None = Field(default=None, alias="mapsTo")

    @property
    def target(self) -> str:
        """The AttributeSet field this vocabulary entry sets."""
        return self.maps_to or self.key


class CatalogVerb(BaseModel):
    key: str


class VisualStyle(BaseModel):
    id: str
    prompt: str = ""


class Catalog(BaseModel):
    prompts: dict[str, str] = Field(default_factory=dict)
    types: list[CatalogType] = Field(default_factory=list)
    attributes: list[CatalogAttribute] = Field(default_factory=list)
    verbs: list[CatalogVerb] = Field(default_factory=list)
    visual_styles: list[VisualStyle] = Field(default_factory=list, alias="visualStyles")
    blocked_terms: list[str] = Field(default_factory=list, alias="blockedTerms")

    def build_prompt(self, prompt_id: str, values: dict[str, str]) -> str:
        """Fill ``{{name}}`` placeholders. Unknown prompt ids give ``""``."""
        template = self.prompts.get(prompt_id, "") if prompt_id else ""
        if not template:
            return ""
        return _TEMPLATE_RE.sub(lambda m: str(values.get(m.group(1), "")), template)

    def type_list(self) -> str:
        return ", ".join(f"'{t.is_}'" for t in self.types)

    def attribute_list(self) -> str:
        return ", ".join(f"'{a.key}'" for a in self.attributes)

    def verb_list(self) -> str:
        return ", ".join(f"'{v.key}'" for v in self.verbs)

    def match_type(self, guess: str) -> CatalogType | None:
        """First catalog type whose name is a substring of the guess."""
        guess = guess.lower()
        for t in self.types:
            if t.is_ in guess:
                return t
        return None

    def style_prompt(self, style_id: str) -> str:
        for style in self.visual_styles:
            if style.id == style_id:
                return style.prompt or style.id
        return style_id

    def is_inappropriate(self, text: str) -> bool:
        lowered = text.lower()
        return any(term in lowered for term in self.blocked_terms)


def load_catalog(path: Path | None = None) -> Catalog:
    path = path or _DEFAULT_PATH
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    catalog = Catalog.model_validate(data)
    logger.debug(
        "Loaded catalog from %s: %d types, %d attributes, %d verbs",
        path,
        len(catalog.types),
        len(catalog.attributes),
        len(catalog.verbs),
    )
    return catalog


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    return load_catalog(settings.ai_config_path)
