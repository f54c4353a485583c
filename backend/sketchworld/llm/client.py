"""LangChain ChatAnthropic wrapper for the sketch classifier.

Two entry points: a vision call that shows the sketch alongside a prompt, and
a text-only call. Both ask for a JSON answer and return the parsed dict.
"""

from __future__ import annotations

import base64
import json
import logging
import re

from sketchworld.config import settings
from sketchworld.errors import ClassificationError

logger = logging.getLogger(__name__)


def _make_llm(max_tokens: int = 512):
    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(
        model=settings.model_classifier,
        api_key=settings.anthropic_api_key,
        max_tokens=max_tokens,
    )


async def ask_vision_json(image_png: bytes, prompt: str) -> dict:
    """Send the sketch plus ``prompt`` to the vision model, parse its JSON answer."""
    if not settings.anthropic_api_key:
        raise ClassificationError("LLM not configured, set ANTHROPIC_API_KEY in .env")

    from langchain_core.messages import HumanMessage

    message = HumanMessage(
        content=[
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/png",
                    "data": base64.b64encode(image_png).decode("ascii"),
                },
            },
            {"type": "text", "text": prompt},
        ]
    )
    response = await _make_llm().ainvoke([message])
    return parse_json_response(str(response.content))


async def ask_text_json(prompt: str) -> dict:
    if not settings.anthropic_api_key:
        raise ClassificationError("LLM not configured, set ANTHROPIC_API_KEY in .env")

    from langchain_core.messages import HumanMessage

    response = await _make_llm().ainvoke([HumanMessage(content=prompt)])
    return parse_json_response(str(response.content))


def parse_json_response(text: str) -> dict:
    """Extract a JSON object from model output (fenced or bare)."""
    match = re.search(r"```(?:json)?\s*\n?({[\s\S]*?})\s*\n?```", text)
    candidates = [match.group(1)] if match else []

    match = re.search(r"({[\s\S]*})", text)
    if match:
        candidates.append(match.group(1))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    logger.warning("Unparseable model answer: %.200s", text)
    raise ClassificationError("Model answer was not valid JSON")
