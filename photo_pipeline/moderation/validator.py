"""Validates raw parsed classifier JSON and builds a ModerationVerdict."""

from typing import Any

from photo_pipeline.moderation.exceptions import ModerationValidationError
from photo_pipeline.moderation.models import (
    ALLOWANCE_FLAGS,
    ALWAYS_REJECT_CATEGORIES,
    REVIEWABLE_CATEGORIES,
    ModerationVerdict,
)

_SCORED_CATEGORIES = ALWAYS_REJECT_CATEGORIES + REVIEWABLE_CATEGORIES


def validate_and_build(data: dict[str, Any]) -> ModerationVerdict:
    """Validate raw parsed JSON and build a ModerationVerdict.

    Raises:
        ModerationValidationError: on any validation failure.
    """
    flags = {name: _require_bool(data, name) for name in _SCORED_CATEGORIES}
    allowances = {name: _optional_bool(data, name) for name in ALLOWANCE_FLAGS}
    scores = _build_scores(data.get("scores"))
    return ModerationVerdict(**flags, **allowances, scores=scores)


def _require_bool(data: dict[str, Any], name: str) -> bool:
    if name not in data:
        raise ModerationValidationError(f"Missing required field: {name}")
    value = data[name]
    if not isinstance(value, bool):
        raise ModerationValidationError(f"'{name}' must be a boolean")
    return value


def _optional_bool(data: dict[str, Any], name: str) -> bool:
    value = data.get(name, False)
    if not isinstance(value, bool):
        raise ModerationValidationError(f"'{name}' must be a boolean")
    return value


def _build_scores(raw: Any) -> dict[str, float]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ModerationValidationError("'scores' must be an object")
    scores: dict[str, float] = {}
    for name, value in raw.items():
        if name not in _SCORED_CATEGORIES:
            continue
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ModerationValidationError(f"'scores.{name}' must be a number")
        if not 0.0 <= value <= 1.0:
            raise ModerationValidationError(
                f"'scores.{name}' must be between 0 and 1, got {value}"
            )
        scores[name] = float(value)
    return scores
