"""Sketch classification and free-text command parsing.

Classification runs in two phases. The cheap first pass asks the vision model
to pick from the catalog's known types; a substring match against the catalog
settles it. When nothing matches, an open-ended "what is this" guess is
followed by a text-only attribute-inference call over the catalog's attribute
vocabulary (honouring ``mapsTo`` synonyms).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sketchworld.catalog import Catalog
from sketchworld.errors import ClassificationError
from sketchworld.llm.client import ask_text_json, ask_vision_json
from sketchworld.models.media import AnalysisResult, CommandResult

logger = logging.getLogger(__name__)

VisionCall = Callable[[bytes, str], Awaitable[dict]]
TextCall = Callable[[str], Awaitable[dict]]

COMMAND_TARGET_ALIASES = ("LAST_OBJECT", "LAST_CREATED")


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no")
    return bool(value)


class SketchClassifier:
    def __init__(
        self,
        catalog: Catalog,
        ask_vision: VisionCall = ask_vision_json,
        ask_text: TextCall = ask_text_json,
    ) -> None:
        self.catalog = catalog
        self._ask_vision = ask_vision
        self._ask_text = ask_text

    async def classify(self, image: bytes) -> AnalysisResult:
        if not image:
            raise ClassificationError("No image data provided")

        prompt = self.catalog.build_prompt("analysis_initialGuess", {"types": self.catalog.type_list()})
        initial = await self._ask_vision(image, prompt)
        guess = str(initial.get("type") or "")
        logger.debug("Initial guess: %r", guess)

        match = self.catalog.match_type(guess)
        if match is not None:
            logger.info("Matched catalog type %s", match.is_)
            return AnalysisResult(type=match.is_, attributes=list(match.attributes))

        logger.debug("No catalog type matched, asking for a generic guess")
        generic = await self._ask_vision(image, self.catalog.prompts.get("analysis_genericGuess", ""))
        generic_type = str(generic.get("type") or "").strip()
        if not generic_type:
            raise ClassificationError("Generic guess returned no type")

        attributes = await self.infer_attributes(generic_type)
        logger.info("Generic guess %r with attributes %s", generic_type, attributes)
        return AnalysisResult(type=generic_type, attributes=attributes)

    async def infer_attributes(self, object_type: str) -> list[str]:
        """Ask which vocabulary attributes hold for ``object_type``; keep only truthy ones."""
        prompt = self.catalog.build_prompt(
            "analysis_attributesGuess",
            {"type": object_type, "attributes": self.catalog.attribute_list()},
        )
        answer = await self._ask_text(prompt)
        values = answer.get("attributes") if isinstance(answer.get("attributes"), dict) else answer

        result: list[str] = []
        for attribute in self.catalog.attributes:
            if _truthy(values.get(attribute.key)) and attribute.target not in result:
                result.append(attribute.target)
        return result

    async def text_to_command(self, text: str, current_targets: list[str] | None = None) -> CommandResult:
        targets = [a.key for a in self.catalog.attributes] + list(COMMAND_TARGET_ALIASES)
        for name in current_targets or []:
            if name not in targets:
                targets.append(name)

        prompt = self.catalog.build_prompt(
            "analysis_textToCommand",
            {
                "text": text or "",
                "verbs": self.catalog.verb_list(),
                "targets": ", ".join(targets),
            },
        )
        answer = await self._ask_text(prompt)
        command = normalize_command(answer)
        logger.debug("Command %r -> %s", text, command)
        return command


def normalize_command(answer: dict) -> CommandResult:
    """Accept ``{verb, target}``, ``{verb: target}``, or a nested single-key object in either field."""
    verb: Any = answer.get("verb", "")
    target: Any = answer.get("target", "")

    if not ("verb" in answer and "target" in answer) and len(answer) == 1:
        ((verb, target),) = answer.items()

    if isinstance(verb, dict) and len(verb) == 1:
        ((verb, target),) = verb.items()
    elif isinstance(target, dict) and len(target) == 1:
        ((verb, target),) = target.items()

    return CommandResult(
        verb=str(verb or "").strip().lower(),
        target=str(target or "").strip(),
    )
