from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from photo_pipeline.database.models import PhotoRecord
from photo_pipeline.imaging.presets import PhotoPurpose, PhotoType

MAX_CAPTION_LENGTH = 200


@dataclass(frozen=True)
class UploadRequest:
    """One user-submitted image and the form fields that came with it."""

    data: bytes
    declared_mime_type: str
    filename: str
    byte_length: int
    user_id: str
    photo_type: PhotoType
    purpose: PhotoPurpose
    caption: str | None = None
    candidate_id: str | None = None
    post_id: str | None = None

    @classmethod
    def build(
        cls,
        *,
        data: bytes,
        declared_mime_type: str,
        filename: str,
        user_id: str,
        photo_type: PhotoType | str,
        purpose: PhotoPurpose | str = PhotoPurpose.PERSONAL,
        caption: str | None = None,
        candidate_id: str | None = None,
        post_id: str | None = None,
    ) -> "UploadRequest":
        """Normalise raw form values. Captions are stripped and cut to 200 characters."""
        cleaned_caption = caption.strip()[:MAX_CAPTION_LENGTH] if caption else None
        return cls(
            data=data,
            declared_mime_type=declared_mime_type,
            filename=filename,
            byte_length=len(data),
            user_id=user_id,
            photo_type=PhotoType(photo_type),
            purpose=PhotoPurpose(purpose),
            caption=cleaned_caption or None,
            candidate_id=candidate_id or None,
            post_id=post_id or None,
        )


class StageStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageMetric:
    status: StageStatus = StageStatus.PENDING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration_ms: float = 0.0


@dataclass(frozen=True)
class StageError:
    stage: str
    kind: str
    message: str
    fatal: bool
    subkind: str | None = None


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""

    success: bool
    record: PhotoRecord | None = None
    errors: list[StageError] = field(default_factory=list)
    metrics: dict[str, StageMetric] = field(default_factory=dict)
    total_duration_ms: float = 0.0

    def first_fatal_error(self) -> StageError | None:
        return next((e for e in self.errors if e.fatal), None)
