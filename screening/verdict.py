"""
Verdict normalization for untrusted model output.

The multimodal model is asked to answer with a JSON object, but nothing
guarantees it will: answers arrive wrapped in prose or markdown fences,
truncated, or with fields that are missing or out of range.  This module
turns that text into a :class:`Verdict` whose fields always respect their
domain, or raises a :class:`~screening.errors.NormalizationError` when no
JSON object can be recovered at all.

Per-field problems never raise.  A missing or unknown verdict becomes
``INCONCLUSIVE``, confidence is defaulted to 0.0 or clamped into [0, 1] and
hints are filtered, trimmed and capped.  Every such correction is recorded in
``Verdict.notes`` so it can be logged, but notes are never sent to clients.
"""

from __future__ import annotations

import json
import math
import re
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from screening.errors import MalformedJson, NoStructuredOutput

MAX_HINTS = 6
MAX_HINT_LENGTH = 200

_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*|\s*```$")
_decoder = json.JSONDecoder()


class VerdictLabel(str, Enum):
    AI_GENERATED = "AI_GENERATED"
    LIKELY_REAL = "LIKELY_REAL"
    INCONCLUSIVE = "INCONCLUSIVE"


class Verdict(BaseModel):
    """Normalized result of one image analysis."""

    verdict: VerdictLabel
    confidence: float = Field(..., ge=0.0, le=1.0)
    hints: List[str] = Field(default_factory=list, max_length=MAX_HINTS)
    notes: List[str] = Field(default_factory=list, exclude=True)

    def to_response(self) -> Dict[str, Any]:
        """Client-facing representation (notes are dropped)."""
        return self.model_dump(mode="json")


def extract_json_object(raw_text: str) -> Dict[str, Any]:
    """Return the outermost well-formed JSON object embedded in ``raw_text``.

    The whole text is tried first (after removing markdown fences).  Failing
    that, a JSON object is decoded at every ``{`` from left to right and the
    first success wins, so an enclosing object is preferred over the objects
    nested inside it.

    Raises
    ------
    NoStructuredOutput
        The text contains no ``{`` at all.
    MalformedJson
        Candidate objects exist but none of them decodes.
    """
    text = _FENCE_RE.sub("", (raw_text or "").strip())
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    start = text.find("{")
    if start == -1:
        raise NoStructuredOutput("model output contains no JSON object")
    while start != -1:
        try:
            candidate, _ = _decoder.raw_decode(text, start)
        except (ValueError, RecursionError):
            candidate = None
        if isinstance(candidate, dict):
            return candidate
        start = text.find("{", start + 1)
    raise MalformedJson("model output contains no well-formed JSON object")


def _normalize_label(value: Any, notes: List[str]) -> VerdictLabel:
    if isinstance(value, str):
        try:
            return VerdictLabel(value)
        except ValueError:
            pass
    notes.append(f"verdict {value!r} not recognised; using INCONCLUSIVE")
    return VerdictLabel.INCONCLUSIVE


def _normalize_confidence(value: Any, notes: List[str]) -> float:
    # bool is an int subclass but not a confidence
    if value is None or isinstance(value, bool) or not isinstance(value, Real):
        notes.append(f"confidence {value!r} is not a number; using 0.0")
        return 0.0
    try:
        confidence = float(value)
    except OverflowError:
        confidence = math.inf if value > 0 else -math.inf
    if math.isnan(confidence):
        notes.append("confidence is NaN; using 0.0")
        return 0.0
    if confidence < 0.0 or confidence > 1.0:
        clamped = min(max(confidence, 0.0), 1.0)
        notes.append(f"confidence {confidence} clamped to {clamped}")
        return clamped
    return confidence


def _normalize_hints(value: Any, notes: List[str]) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        notes.append(f"hints of type {type(value).__name__} ignored")
        return []
    hints = []
    for item in value:
        if not isinstance(item, str):
            continue
        hint = item.strip()[:MAX_HINT_LENGTH].strip()
        if hint:
            hints.append(hint)
    if len(hints) < len(value):
        notes.append(f"dropped {len(value) - len(hints)} empty or non-string hints")
    if len(hints) > MAX_HINTS:
        notes.append(f"truncated {len(hints)} hints to {MAX_HINTS}")
        hints = hints[:MAX_HINTS]
    return hints


def normalize_fields(data: Dict[str, Any]) -> Verdict:
    """Build a :class:`Verdict` from an already-parsed mapping."""
    notes: List[str] = []
    label = _normalize_label(data.get("verdict"), notes)
    confidence = _normalize_confidence(data.get("confidence"), notes)
    hints = _normalize_hints(data.get("hints"), notes)
    return Verdict(verdict=label, confidence=confidence, hints=hints, notes=notes)


def normalize(raw_text: Optional[str]) -> Verdict:
    """Parse raw model text into a :class:`Verdict`.

    Only :class:`~screening.errors.NoStructuredOutput` and
    :class:`~screening.errors.MalformedJson` are raised; any object that can
    be parsed yields a fully valid verdict.
    """
    return normalize_fields(extract_json_object(raw_text or ""))
