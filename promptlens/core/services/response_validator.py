"""Turns a raw LLM response into a canonical ChunkResult.

``validate`` never raises. Responses that cannot be used are replaced by the
neutral zero-value result and flagged as degraded so callers can see how many
chunks were lost instead of having their contribution silently zeroed.
"""

import json
import logging
import math
from collections.abc import Mapping
from typing import Any, Optional, Tuple

from promptlens.domain.models.ai import StructuredAIResponse
from promptlens.domain.models.analysis import ChunkResult, ValidationOutcome

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3
BLOCKQUOTE_MARKER = "> "


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for positives (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def _extract_payload(raw: Any) -> Tuple[Optional[Any], Optional[str]]:
    """Returns (payload, error). Payload is either text or an already-parsed mapping."""
    if raw is None:
        return None, "empty response"
    if isinstance(raw, str):
        return raw, None
    if isinstance(raw, StructuredAIResponse):
        return raw.content, None
    if isinstance(raw, Mapping):
        choices = raw.get("choices")
        if choices is None:
            return raw, None
        try:
            return choices[0]["message"]["content"] or "{}", None
        except (IndexError, KeyError, TypeError):
            return None, "malformed provider envelope"
    # OpenAI SDK ChatCompletion objects
    try:
        return raw.choices[0].message.content or "{}", None
    except (AttributeError, IndexError, TypeError):
        return None, f"unsupported response type {type(raw).__name__}"


def _sanitize_accuracy(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        # JSON integers are unbounded; clamp before any float conversion
        return max(0, min(100, value))
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if not isinstance(value, float) or math.isnan(value):
        return 0
    return round_half_up(max(0.0, min(100.0, value)))


def _sanitize_suggestions(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    kept = []
    for item in value:
        if isinstance(item, str) and len(item) > 0 and item not in kept:
            kept.append(item)
        if len(kept) == MAX_SUGGESTIONS:
            break
    return tuple(kept)


class ResponseValidator:
    """Parses and sanitizes LLM responses into ChunkResults."""

    def validate(self, raw: Any) -> ValidationOutcome:
        """Never raises: anything unusable becomes a degraded outcome."""
        try:
            return self._validate(raw)
        except (TypeError, ValueError, OverflowError, RecursionError) as e:
            return self._degraded(f"unusable response ({type(e).__name__}: {e})")

    def _validate(self, raw: Any) -> ValidationOutcome:
        if isinstance(raw, ChunkResult):
            raw = raw.to_payload()

        payload, error = _extract_payload(raw)
        if error:
            return self._degraded(error)

        if isinstance(payload, str):
            if BLOCKQUOTE_MARKER in payload:
                return self._degraded("blockquotes are unsupported")
            try:
                content = json.loads(payload)
            except (ValueError, RecursionError) as e:
                return self._degraded(f"invalid JSON: {e}")
        else:
            content = payload

        if not isinstance(content, Mapping):
            return self._degraded("response is not a JSON object")

        evaluation = content.get("Evaluation")
        if not isinstance(evaluation, Mapping):
            evaluation = {}
        optimization = content.get("Optimization")
        if not isinstance(optimization, Mapping):
            optimization = {}

        reword = optimization.get("Reword")
        result = ChunkResult(
            accuracy=_sanitize_accuracy(evaluation.get("Accuracy")),
            suggestions=_sanitize_suggestions(evaluation.get("Suggestions")),
            reword=reword.strip() if isinstance(reword, str) else "",
        )
        if not isinstance(reword, str):
            return self._degraded("missing required Reword field", result)
        return ValidationOutcome.ok(result)

    def _degraded(self, reason: str, result: Optional[ChunkResult] = None) -> ValidationOutcome:
        logger.warning(f"LLM response degraded: {reason}")
        if result is None:
            return ValidationOutcome.degraded_with(reason)
        return ValidationOutcome.degraded_with(reason, result)
