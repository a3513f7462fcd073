"""Tolerant JSON extraction from free-text provider completions.

Models frequently wrap the requested JSON in markdown fences or surround it
with prose. Extraction tries three strategies in order and the first
candidate found is parsed strictly:

1. a fenced block explicitly tagged ``json``;
2. any fenced block;
3. the whole text.

No schema validation happens here beyond successful parsing; the lenient
``PrototypeDocument`` model absorbs missing or mistyped fields.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from protoforge.errors import ExtractionError
from protoforge.utils import scrub_text

from .models import Category, PrototypeDocument, RawCompletion

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SNIPPET_LIMIT = 500

_JSON_FENCE_PATTERN = re.compile(r"```[ \t]*json[^\S\n]*\n?(.*?)```", re.IGNORECASE | re.DOTALL)
_ANY_FENCE_PATTERN = re.compile(r"```[\w+-]*[^\S\n]*\n?(.*?)```", re.DOTALL)


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------

class ExtractionResult(BaseModel):
    """Outcome of ``extract``: either a parsed document or an error."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool = Field(default=True)
    data: Any = Field(default=None, description="The parsed JSON value")
    document: PrototypeDocument | None = Field(default=None)
    error: ExtractionError | None = Field(default=None)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def _candidate(text: str) -> str:
    """Pick the substring to parse according to the ordered strategies."""
    match = _JSON_FENCE_PATTERN.search(text)
    if match:
        return match.group(1)
    match = _ANY_FENCE_PATTERN.search(text)
    if match:
        return match.group(1)
    return text


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        return scrub_text(value)
    if isinstance(value, list):
        return [_scrub(item) for item in value]
    return value


def _scrub_pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    # Objects are decoded innermost first, so nested dicts are already clean.
    return {scrub_text(key): _scrub(value) for key, value in pairs}


def extract_json(text: str) -> Any:
    """Return the JSON value embedded in *text*.

    Raises:
        ExtractionError: If the selected candidate is not valid JSON. The
            error's ``snippet`` holds at most ``SNIPPET_LIMIT`` characters of
            the original text.
    """
    candidate = _candidate(text or "").strip()
    try:
        value = json.loads(
            candidate, parse_constant=_reject_constant, object_pairs_hook=_scrub_pairs
        )
        return _scrub(value)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError, NaN/Infinity, oversized integers, excessive nesting
        reason = exc.msg if isinstance(exc, json.JSONDecodeError) else str(exc)
        snippet = (text or "")[:SNIPPET_LIMIT]
        raise ExtractionError(
            f"Invalid JSON response from AI ({reason}): {snippet}",
            snippet=snippet,
        ) from exc


def extract(
    raw: RawCompletion | str,
    category: Category | str | None = None,
) -> ExtractionResult:
    """Parse a completion into a ``PrototypeDocument``.

    Never raises: failures come back as ``ExtractionResult(success=False)``
    with an ``ExtractionError`` attached.

    Args:
        raw: The provider completion (or its text).
        category: The requested category, used when the document does not
            state a recognised one.
    """
    text = raw.text if isinstance(raw, RawCompletion) else raw
    try:
        data = extract_json(text)
    except ExtractionError as exc:
        logger.warning("Failed to parse AI response as JSON")
        logger.debug("Raw response: %s", exc.snippet)
        return ExtractionResult(success=False, error=exc)

    return ExtractionResult(
        success=True,
        data=data,
        document=PrototypeDocument.from_data(data, category=category),
    )
