import asyncio

from photo_pipeline.database.models import NewPhoto
from photo_pipeline.database.repositories.ownership_repository import OwnershipRepository
from photo_pipeline.database.repositories.photo_repository import PhotoRepository
from photo_pipeline.imaging.presets import ImageFormat, PhotoPurpose, preset_for
from photo_pipeline.imaging.signatures import detect_format, is_animated
from photo_pipeline.imaging.transformer import ImageTransformer
from photo_pipeline.logging.logger import Log
from photo_pipeline.moderation.base import BaseModerator
from photo_pipeline.moderation.exceptions import ModerationError
from photo_pipeline.moderation.models import ModerationStatus
from photo_pipeline.moderation.policy import ModerationPolicy
from photo_pipeline.pipeline.exceptions import (
    FatalStageError,
    FileTooLargeError,
    FileTooSmallError,
    InvalidFileSignatureError,
    ModerationRejectedError,
    ModerationServiceUnavailableError,
    PermissionDeniedError,
    PipelineError,
    QuotaExceededError,
    StorageWriteFailureError,
    TypeMismatchError,
)
from photo_pipeline.pipeline.pipeline import PipelineContext, PipelineStage
from photo_pipeline.storage.base import BaseObjectStorage
from photo_pipeline.storage.exceptions import StorageError
from photo_pipeline.storage.keys import build_object_key, build_thumbnail_key
from photo_pipeline.storage.writer import write_with_retry

_MIB = 1024 * 1024


class ValidateSignatureStep(PipelineStage):
    name = "validate_signature"

    async def run(self, context: PipelineContext) -> PipelineContext:
        request = context.request
        detected = detect_format(request.data)
        if detected is None:
            raise InvalidFileSignatureError(
                f"File '{request.filename}' is not a supported image (JPEG, PNG, GIF, WEBP)"
            )
        declared = ImageFormat.from_mime_type(request.declared_mime_type)
        if declared is not detected:
            raise TypeMismatchError(
                f"Declared type '{request.declared_mime_type}' does not match "
                f"actual content type '{detected.mime_type}'"
            )
        context.processing.detected_format = detected
        context.processing.animated = is_animated(request.data, detected)
        kind = "animated " if context.processing.animated else ""
        Log.info(
            f"Validated {kind}{detected.value} upload '{request.filename}' for user {request.user_id}"
        )
        return context


class SizeAndQuotaGuardStep(PipelineStage):
    name = "size_and_quota_guard"

    def __init__(
        self,
        photo_repo: PhotoRepository,
        *,
        max_static_bytes: int,
        max_animated_bytes: int,
        min_bytes: int,
        quota_bytes: int,
    ) -> None:
        self._photo_repo = photo_repo
        self._max_static_bytes = max_static_bytes
        self._max_animated_bytes = max_animated_bytes
        self._min_bytes = min_bytes
        self._quota_bytes = quota_bytes

    def precondition(self, context: PipelineContext) -> bool:
        return context.processing.detected_format is not None

    def ceiling_for(self, animated: bool) -> int:
        return self._max_animated_bytes if animated else self._max_static_bytes

    async def run(self, context: PipelineContext) -> PipelineContext:
        processing = context.processing
        if processing.detected_format is None:
            raise ValueError("PipelineContext.processing.detected_format must be set before size check")
        request = context.request
        size = request.byte_length
        if size < self._min_bytes:
            raise FileTooSmallError(f"File too small. Minimum size is {self._min_bytes} bytes")
        ceiling = self.ceiling_for(processing.animated)
        if size > ceiling:
            kind = "animated " if processing.animated else ""
            raise FileTooLargeError(
                f"File too large. Maximum size for {kind}{processing.detected_format.value} "
                f"is {ceiling / _MIB:g}MB"
            )

        used, _count = await self._photo_repo.get_storage_usage(request.user_id)
        if used + size > self._quota_bytes:
            raise QuotaExceededError(
                f"Storage limit exceeded. Current usage: {used // _MIB}MB, "
                f"Limit: {self._quota_bytes // _MIB}MB"
            )
        return context


async def check_candidate_permission(
    ownership_repo: OwnershipRepository,
    *,
    user_id: str,
    purpose: PhotoPurpose,
    candidate_id: str | None,
) -> None:
    """Campaign photos need a candidate profile, and any candidate named must be the user's own.

    Raises:
        PermissionDeniedError: the rule is not met.
    """
    if candidate_id is None:
        if purpose in (PhotoPurpose.CAMPAIGN, PhotoPurpose.BOTH):
            raise PermissionDeniedError(f"Purpose {purpose.value} requires a candidate profile")
        return

    owner = await ownership_repo.get_candidate_owner(candidate_id)
    if owner is None or owner != user_id:
        raise PermissionDeniedError(f"User {user_id} may not use candidate {candidate_id}")


class PermissionGuardStep(PipelineStage):
    name = "permission_guard"

    def __init__(self, ownership_repo: OwnershipRepository) -> None:
        self._ownership_repo = ownership_repo

    async def run(self, context: PipelineContext) -> PipelineContext:
        request = context.request
        await check_candidate_permission(
            self._ownership_repo,
            user_id=request.user_id,
            purpose=request.purpose,
            candidate_id=request.candidate_id,
        )
        return context


class ImageTransformStep(PipelineStage):
    name = "image_transform"

    def __init__(self, transformer: ImageTransformer) -> None:
        self._transformer = transformer

    def precondition(self, context: PipelineContext) -> bool:
        return context.processing.detected_format is not None

    async def run(self, context: PipelineContext) -> PipelineContext:
        request = context.request
        preset = preset_for(request.photo_type)
        transformed = await asyncio.to_thread(self._transformer.transform, request.data, preset)
        context.processing.transformed = transformed
        Log.info(
            f"Transformed upload to {transformed.width}x{transformed.height} "
            f"{transformed.format.value} ({request.byte_length} -> {len(transformed.data)} bytes)"
        )
        return context


class ThumbnailStep(PipelineStage):
    name = "thumbnail"

    def __init__(self, transformer: ImageTransformer) -> None:
        self._transformer = transformer

    def precondition(self, context: PipelineContext) -> bool:
        return context.processing.detected_format is not None

    async def run(self, context: PipelineContext) -> PipelineContext:
        preset = preset_for(context.request.photo_type)
        # built from the original bytes, never from the transformed image
        thumbnail = await asyncio.to_thread(
            self._transformer.thumbnail, context.request.data, preset
        )
        context.processing.thumbnail = thumbnail
        Log.info(f"Generated {thumbnail.width}x{thumbnail.height} thumbnail")
        return context


class ContentModerationStep(PipelineStage):
    """Classifies the transformed image and applies the injected policy.

    Rejections always halt the run. Service failures halt it only when
    ``unavailable_policy`` is ``"fail"``; otherwise the photo is kept with
    status ``pending`` for manual review.
    """

    name = "content_moderation"

    def __init__(
        self,
        moderator: BaseModerator,
        policy: ModerationPolicy,
        *,
        unavailable_policy: str = "pending",
    ) -> None:
        if unavailable_policy not in ("pending", "fail"):
            raise ValueError(
                f"Unknown moderation_unavailable_policy '{unavailable_policy}'. "
                "Choose from: ['fail', 'pending']"
            )
        self._moderator = moderator
        self._policy = policy
        self.fatal = unavailable_policy == "fail"

    def precondition(self, context: PipelineContext) -> bool:
        return context.processing.transformed is not None

    async def run(self, context: PipelineContext) -> PipelineContext:
        transformed = context.processing.transformed
        if transformed is None:
            raise ValueError("PipelineContext.processing.transformed must be set before moderation")

        try:
            verdict = await self._moderator.classify(
                transformed.data,
                transformed.mime_type,
                context.request.photo_type.value,
            )
        except ModerationError as exc:
            context.processing.moderation_status = ModerationStatus.PENDING
            raise ModerationServiceUnavailableError(
                f"Content moderation unavailable: {exc}"
            ) from exc

        decision = self._policy.decide(verdict)
        context.processing.moderation_verdict = verdict
        context.processing.moderation_decision = decision
        context.processing.moderation_status = decision.status
        Log.info(
            f"Moderation decision for user {context.request.user_id}: "
            f"{decision.status.value} ({decision.category or 'clean'})"
        )
        if decision.status is ModerationStatus.REJECTED:
            raise FatalStageError(
                ModerationRejectedError(
                    f"Image rejected by content policy: {decision.reason}",
                    subkind=decision.category,
                )
            )
        return context


class ObjectStorageUploadStep(PipelineStage):
    name = "storage_upload"

    def __init__(
        self,
        storage: BaseObjectStorage,
        *,
        max_attempts: int,
        timeout_seconds: float,
    ) -> None:
        self._storage = storage
        self._max_attempts = max_attempts
        self._timeout_seconds = timeout_seconds

    def precondition(self, context: PipelineContext) -> bool:
        processing = context.processing
        return (
            processing.transformed is not None
            and processing.thumbnail is not None
            and processing.moderation_status is not None
            and processing.moderation_status is not ModerationStatus.REJECTED
        )

    async def run(self, context: PipelineContext) -> PipelineContext:
        processing = context.processing
        if processing.transformed is None or processing.thumbnail is None:
            raise ValueError(
                "PipelineContext.processing.transformed and thumbnail must be set before upload"
            )
        photo_type = context.request.photo_type
        storage_key = build_object_key(photo_type, processing.transformed.format.extension)
        thumbnail_key = build_thumbnail_key(photo_type)

        try:
            await self._write(storage_key, processing.transformed.data, processing.transformed.mime_type)
            processing.storage_key = storage_key
            await self._write(thumbnail_key, processing.thumbnail.data, processing.thumbnail.mime_type)
            processing.thumbnail_key = thumbnail_key
        except StorageError as exc:
            raise StorageWriteFailureError(f"Could not store image: {exc}") from exc

        processing.url = self._storage.public_url(storage_key)
        processing.thumbnail_url = self._storage.public_url(thumbnail_key)
        Log.info(f"Stored {storage_key} and {thumbnail_key}")
        return context

    async def _write(self, key: str, data: bytes, content_type: str) -> None:
        await write_with_retry(
            self._storage,
            key,
            data,
            content_type,
            max_attempts=self._max_attempts,
            timeout_seconds=self._timeout_seconds,
        )


class PersistenceStep(PipelineStage):
    name = "persistence"

    def __init__(self, photo_repo: PhotoRepository, *, quota_bytes: int) -> None:
        self._photo_repo = photo_repo
        self._quota_bytes = quota_bytes

    def precondition(self, context: PipelineContext) -> bool:
        processing = context.processing
        return processing.url is not None and processing.thumbnail_url is not None

    async def run(self, context: PipelineContext) -> PipelineContext:
        request = context.request
        processing = context.processing
        if (
            processing.transformed is None
            or processing.storage_key is None
            or processing.thumbnail_key is None
            or processing.url is None
            or processing.thumbnail_url is None
            or processing.moderation_status is None
        ):
            raise ValueError("PipelineContext.processing storage fields must be set before persist")

        photo = NewPhoto(
            user_id=request.user_id,
            candidate_id=request.candidate_id,
            url=processing.url,
            thumbnail_url=processing.thumbnail_url,
            storage_key=processing.storage_key,
            thumbnail_key=processing.thumbnail_key,
            photo_type=request.photo_type.value,
            purpose=request.purpose.value,
            caption=request.caption,
            original_size=request.byte_length,
            compressed_size=len(processing.transformed.data),
            width=processing.transformed.width,
            height=processing.transformed.height,
            mime_type=processing.transformed.mime_type,
            moderation_status=processing.moderation_status.value,
        )
        try:
            processing.record = await self._photo_repo.create_photo(
                photo,
                quota_bytes=self._quota_bytes,
                post_id=request.post_id,
            )
        except PipelineError:
            Log.warning(
                f"Orphaned objects left for reconciliation: "
                f"{processing.storage_key}, {processing.thumbnail_key}"
            )
            raise
        return context
