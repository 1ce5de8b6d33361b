"""
Extraction of JSON payloads from free-text language-model output.

Models asked for "JSON only" still wrap answers in markdown fences or add
chatter around them. Each strategy below looks at the raw text and returns
either a candidate JSON string or None; `extract_json` tries an ordered list
of strategies and the first candidate wins. Nothing here is specific to a
model or a prompt.
"""
import json
import re
from typing import Any, Callable, Dict, Optional, Sequence

from crypto_advisor.exceptions import ModelOutputUnparseable

ExtractionStrategy = Callable[[str], Optional[str]]

_TAGGED_FENCE_BLOCK = re.compile(r"```[A-Za-z][\w+-]*[ \t]*\r?\n(.*?)\r?\n[ \t]*```", re.DOTALL)
_TAGGED_FENCE_OPEN = re.compile(r"^```[A-Za-z][\w+-]*")
_FENCE = "```"


def tagged_fence_block(text: str) -> Optional[str]:
    """Interior of the first fenced block opened with a language tag (```json ... ```)."""
    match = _TAGGED_FENCE_BLOCK.search(text)
    if match is None:
        return None
    return match.group(1).strip()


def whole_tagged_fence(text: str) -> Optional[str]:
    """Whole response wrapped in a language-tagged fence, possibly on one line."""
    trimmed = text.strip()
    opening = _TAGGED_FENCE_OPEN.match(trimmed)
    if opening is None or not trimmed.endswith(_FENCE) or len(trimmed) < opening.end() + len(_FENCE):
        return None
    return trimmed[opening.end():-len(_FENCE)].strip()


def whole_generic_fence(text: str) -> Optional[str]:
    """Whole response wrapped in bare ``` fences."""
    trimmed = text.strip()
    if not trimmed.startswith(_FENCE) or not trimmed.endswith(_FENCE) or len(trimmed) < 2 * len(_FENCE):
        return None
    return trimmed[len(_FENCE):-len(_FENCE)].strip()


def whole_text(text: str) -> Optional[str]:
    """The entire trimmed response."""
    trimmed = text.strip()
    return trimmed or None


def first_balanced_object(text: str) -> Optional[str]:
    """
    The first top-level balanced {...} block.

    Braces inside JSON string literals (including escaped quotes) do not
    count towards the balance.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


RECOMMENDATION_STRATEGIES: Sequence[ExtractionStrategy] = (
    tagged_fence_block,
    whole_tagged_fence,
    whole_generic_fence,
    whole_text,
)

SENTIMENT_STRATEGIES: Sequence[ExtractionStrategy] = (
    first_balanced_object,
)


def extract_json(text: str, strategies: Sequence[ExtractionStrategy]) -> str:
    """
    Runs `strategies` in order and returns the first candidate.

    Raises:
        ModelOutputUnparseable: If no strategy produces a candidate.
    """
    for strategy in strategies:
        candidate = strategy(text)
        if candidate is not None:
            return candidate
    raise ModelOutputUnparseable("No JSON found in model output")


def parse_json_object(text: str, strategies: Sequence[ExtractionStrategy]) -> Dict[str, Any]:
    """
    Extracts and strictly parses a JSON object from model output.

    Raises:
        ModelOutputUnparseable: If nothing is found, the candidate is not
            valid JSON, or it is not an object.
    """
    candidate = extract_json(text, strategies)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ModelOutputUnparseable(f"Model output is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ModelOutputUnparseable("Model output JSON is not an object")
    return data
