"""
Response normalizer for vision model output.

The model is asked for pure JSON but regularly wraps it in markdown fences or
surrounds it with commentary. normalize() walks an ordered list of extraction
steps; the first step whose pattern matches is the one that gets parsed, and a
parse failure at that point is final.
"""

import json
import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from pydantic import ValidationError

from lotto_lens.errors import ExtractionError
from lotto_lens.models import ExtractedTicket

TAGGED_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
ANY_FENCE_RE = re.compile(r"```[\s\S]*?```")
FENCE_OPEN_RE = re.compile(r"```[a-z]*\n?", re.IGNORECASE)
FENCE_CLOSE_RE = re.compile(r"```$")
OUTER_BRACES_RE = re.compile(r"\{[\s\S]*\}")

# Model keys reported under their canonical names in error messages
FIELD_NAMES = {
    "bonus_number": "bonusNumber",
    "sanceNumber": "bonusNumber",
    "winning_rows": "winningRows",
    "winningNumbers": "winningRows",
}


class ExtractionStep(NamedTuple):
    name: str
    matcher: Callable[[str], Optional["re.Match[str]"]]
    extractor: Callable[["re.Match[str]"], str]


def _tagged_fence_body(match: "re.Match[str]") -> str:
    return match.group(1)


def _any_fence_body(match: "re.Match[str]") -> str:
    block = FENCE_OPEN_RE.sub("", match.group(0), count=1)
    return FENCE_CLOSE_RE.sub("", block).strip()


def _whole_match(match: "re.Match[str]") -> str:
    return match.group(0)


EXTRACTION_STEPS: List[ExtractionStep] = [
    ExtractionStep("tagged_fence", TAGGED_FENCE_RE.search, _tagged_fence_body),
    ExtractionStep("any_fence", ANY_FENCE_RE.search, _any_fence_body),
    ExtractionStep("outer_braces", OUTER_BRACES_RE.search, _whole_match),
]


def extract_json_text(raw_text: str) -> str:
    """
    Return the candidate JSON text located by the first matching step.

    Raises:
        ExtractionError: if no step matches
    """
    for step in EXTRACTION_STEPS:
        match = step.matcher(raw_text)
        if match:
            return step.extractor(match)
    raise ExtractionError("no JSON found", raw_text=raw_text)


def parse_json_object(raw_text: str) -> Dict[str, Any]:
    """Locate and parse the JSON object in a model response."""
    candidate = extract_json_text(raw_text)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"invalid JSON ({e.msg})", raw_text=raw_text) from e

    if not isinstance(parsed, dict):
        raise ExtractionError("JSON is not an object", raw_text=raw_text)
    return parsed


def _as_text(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _as_row(value: Any) -> Any:
    # Some responses split a row into a list of tokens
    if isinstance(value, list):
        tokens = [f"{v:02d}" if isinstance(v, int) and not isinstance(v, bool) else str(v) for v in value]
        return " ".join(tokens)
    return _as_text(value)


def _coerce_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    coerced = dict(data)
    for key in ("date", "bonusNumber", "bonus_number", "sanceNumber"):
        if key in coerced:
            coerced[key] = _as_text(coerced[key])
    for key in ("winningRows", "winning_rows", "winningNumbers"):
        if isinstance(coerced.get(key), list):
            coerced[key] = [_as_row(row) for row in coerced[key]]
    return coerced


def normalize(raw_text: str) -> ExtractedTicket:
    """
    Turn a free-text model response into an ExtractedTicket.

    Args:
        raw_text: Text exactly as returned by the vision model

    Returns:
        ExtractedTicket with date, bonus number and at least one row

    Raises:
        ExtractionError: no JSON object found, invalid JSON, or required
            fields missing. The raw text is attached to the error.
    """
    data = parse_json_object(raw_text)
    try:
        return ExtractedTicket.model_validate(_coerce_fields(data))
    except ValidationError as e:
        fields = sorted({
            FIELD_NAMES.get(str(err["loc"][0]), str(err["loc"][0]))
            for err in e.errors() if err.get("loc")
        })
        raise ExtractionError(
            f"missing or invalid ticket fields: {', '.join(fields) or 'unknown'}",
            raw_text=raw_text,
        ) from e
