from dataclasses import dataclass, field
from enum import StrEnum


class ModerationStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVIEW = "needs_review"


ALWAYS_REJECT_CATEGORIES: tuple[str, ...] = ("explicit", "graphic_violence")
REVIEWABLE_CATEGORIES: tuple[str, ...] = ("racy", "violence", "self_harm", "hate_symbols")
ALLOWANCE_FLAGS: tuple[str, ...] = ("newsworthy", "medical", "political")


@dataclass(frozen=True)
class ModerationVerdict:
    """Structured output of the visual classifier."""

    explicit: bool = False
    graphic_violence: bool = False
    racy: bool = False
    violence: bool = False
    self_harm: bool = False
    hate_symbols: bool = False
    newsworthy: bool = False
    medical: bool = False
    political: bool = False
    scores: dict[str, float] = field(default_factory=dict)

    def score(self, category: str) -> float:
        return self.scores.get(category, 0.0)

    def is_flagged(self, category: str) -> bool:
        return bool(getattr(self, category))

    @property
    def has_allowance(self) -> bool:
        return any(getattr(self, flag) for flag in ALLOWANCE_FLAGS)


@dataclass(frozen=True)
class ModerationDecision:
    """Policy outcome for one verdict."""

    status: ModerationStatus
    category: str | None = None
    reason: str = ""
