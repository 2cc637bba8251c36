from dataclasses import dataclass
from typing import ClassVar

from photo_pipeline.moderation.models import (
    ALWAYS_REJECT_CATEGORIES,
    ModerationDecision,
    ModerationStatus,
    ModerationVerdict,
    REVIEWABLE_CATEGORIES,
)


@dataclass(frozen=True)
class ModerationPolicy:
    """Environment-dependent thresholds for turning a verdict into a status.

    Explicit content and graphic violence are rejected whenever flagged at or
    above their thresholds, whatever the contextual allowances say. Other
    flagged categories go to review when an allowance is present and are
    rejected at or above ``reject_threshold`` otherwise. An unflagged verdict
    whose score for any category reaches ``review_threshold`` goes to review.
    """

    name: str
    explicit_threshold: float
    graphic_violence_threshold: float
    reject_threshold: float
    review_threshold: float

    PROFILES: ClassVar[dict[str, dict[str, float]]] = {
        "strict": {
            "explicit_threshold": 0.5,
            "graphic_violence_threshold": 0.6,
            "reject_threshold": 0.5,
            "review_threshold": 0.3,
        },
        "lenient": {
            "explicit_threshold": 0.7,
            "graphic_violence_threshold": 0.8,
            "reject_threshold": 0.8,
            "review_threshold": 0.6,
        },
    }

    @classmethod
    def for_profile(cls, name: str) -> "ModerationPolicy":
        profile = name.lower()
        thresholds = cls.PROFILES.get(profile)
        if thresholds is None:
            raise ValueError(
                f"Unknown moderation profile '{name}'. Choose from: {sorted(cls.PROFILES)}"
            )
        return cls(name=profile, **thresholds)

    def decide(self, verdict: ModerationVerdict) -> ModerationDecision:
        if verdict.explicit and verdict.score("explicit") >= self.explicit_threshold:
            return ModerationDecision(
                status=ModerationStatus.REJECTED,
                category="explicit",
                reason=f"Explicit content score {verdict.score('explicit'):.2f}",
            )
        if (
            verdict.graphic_violence
            and verdict.score("graphic_violence") >= self.graphic_violence_threshold
        ):
            return ModerationDecision(
                status=ModerationStatus.REJECTED,
                category="graphic_violence",
                reason=f"Graphic violence score {verdict.score('graphic_violence'):.2f}",
            )

        flagged = [c for c in REVIEWABLE_CATEGORIES if verdict.is_flagged(c)]
        # below-threshold always-reject flags still warrant a human look
        flagged += [c for c in ALWAYS_REJECT_CATEGORIES if verdict.is_flagged(c)]
        if not flagged:
            return self._review_by_score(verdict)

        top = max(flagged, key=verdict.score)
        if verdict.has_allowance:
            return ModerationDecision(
                status=ModerationStatus.NEEDS_REVIEW,
                category=top,
                reason=f"Flagged '{top}' with contextual allowance",
            )
        if verdict.score(top) >= self.reject_threshold:
            return ModerationDecision(
                status=ModerationStatus.REJECTED,
                category=top,
                reason=f"'{top}' score {verdict.score(top):.2f} >= {self.reject_threshold}",
            )
        return ModerationDecision(
            status=ModerationStatus.NEEDS_REVIEW,
            category=top,
            reason=f"'{top}' score {verdict.score(top):.2f} below rejection threshold",
        )

    def _review_by_score(self, verdict: ModerationVerdict) -> ModerationDecision:
        scored = [
            c
            for c in (*ALWAYS_REJECT_CATEGORIES, *REVIEWABLE_CATEGORIES)
            if verdict.score(c) >= self.review_threshold
        ]
        if not scored:
            return ModerationDecision(status=ModerationStatus.APPROVED)
        top = max(scored, key=verdict.score)
        return ModerationDecision(
            status=ModerationStatus.NEEDS_REVIEW,
            category=top,
            reason=f"Unflagged '{top}' score {verdict.score(top):.2f} >= {self.review_threshold}",
        )
