import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from photo_pipeline.config.settings import Settings
from photo_pipeline.database.repositories.ownership_repository import OwnershipRepository
from photo_pipeline.database.repositories.photo_repository import PhotoRepository
from photo_pipeline.imaging.transformer import ImageTransformer
from photo_pipeline.logging.logger import Log
from photo_pipeline.moderation.base import BaseModerator
from photo_pipeline.moderation.policy import ModerationPolicy
from photo_pipeline.pipeline.exceptions import (
    FatalStageError,
    PipelineCancelledError,
    PipelineError,
)
from photo_pipeline.pipeline.models import (
    PipelineResult,
    StageError,
    StageMetric,
    StageStatus,
    UploadRequest,
)
from photo_pipeline.pipeline.pipeline import ConcurrentStage, PipelineContext, PipelineStage
from photo_pipeline.pipeline.steps import (
    ContentModerationStep,
    ImageTransformStep,
    ObjectStorageUploadStep,
    PermissionGuardStep,
    PersistenceStep,
    SizeAndQuotaGuardStep,
    ThumbnailStep,
    ValidateSignatureStep,
)
from photo_pipeline.storage.base import BaseObjectStorage

CancelCheck = Callable[[], Awaitable[bool]]


class PipelineExecutor:
    """Runs an ordered list of stages over one upload.

    Pipeline: validate -> size/quota -> permission -> transform + thumbnail
    -> moderation -> storage -> persist.

    Build a fresh executor for every request; it holds no state between runs.
    """

    def __init__(
        self,
        stages: list[PipelineStage],
        cancel_check: CancelCheck | None = None,
    ) -> None:
        self._stages = stages
        self._cancel_check = cancel_check

    async def run(self, request: UploadRequest) -> PipelineResult:
        """Run every stage in order. Typed failures end up in the result, never raised."""
        context = PipelineContext(request=request)
        for stage in self._stages:
            for metric_name in stage.metric_names():
                context.metrics[metric_name] = StageMetric()
        Log.info(
            f"Processing {request.photo_type.value} upload '{request.filename}' "
            f"({request.byte_length} bytes) for user {request.user_id}"
        )

        started = time.perf_counter()
        for stage in self._stages:
            if await self._is_cancelled():
                self._record(
                    context,
                    stage.name,
                    PipelineCancelledError("Upload cancelled by client"),
                    fatal=True,
                )
                break
            if not await self._run_stage(stage, context):
                break

        total_ms = (time.perf_counter() - started) * 1000
        success = not any(e.fatal for e in context.errors)
        if success and context.processing.record is None:
            context.errors.append(
                StageError(
                    stage="executor",
                    kind="InternalError",
                    message="Pipeline finished without a persisted photo",
                    fatal=True,
                )
            )
            success = False

        if success:
            Log.info(f"Upload for user {request.user_id} succeeded in {total_ms:.0f}ms")
        else:
            Log.warning(f"Upload for user {request.user_id} failed in {total_ms:.0f}ms")
        return PipelineResult(
            success=success,
            record=context.processing.record if success else None,
            errors=list(context.errors),
            metrics=context.metrics,
            total_duration_ms=total_ms,
        )

    async def _is_cancelled(self) -> bool:
        if self._cancel_check is None:
            return False
        return await self._cancel_check()

    async def _run_stage(self, stage: PipelineStage, context: PipelineContext) -> bool:
        """Run one stage. Returns False when the run must halt."""
        metric = context.metrics[stage.name]
        if not stage.precondition(context):
            for metric_name in stage.metric_names():
                context.metrics[metric_name].status = StageStatus.SKIPPED
            Log.info(f"Stage {stage.name} skipped: preconditions not met")
            return True

        metric.status = StageStatus.RUNNING
        metric.started_at = datetime.now(UTC)
        t0 = time.perf_counter()
        keep_going = True
        try:
            await stage.run(context)
            metric.status = StageStatus.SUCCEEDED
        except FatalStageError as exc:
            metric.status = StageStatus.FAILED
            self._record(context, stage.name, exc.error, fatal=True)
            keep_going = False
        except PipelineError as exc:
            metric.status = StageStatus.FAILED
            self._record(context, stage.name, exc, fatal=stage.fatal)
            keep_going = not stage.fatal
        except Exception as exc:
            metric.status = StageStatus.FAILED
            Log.error(f"Stage {stage.name} crashed: {exc!r}")
            context.errors.append(
                StageError(stage=stage.name, kind="InternalError", message=str(exc), fatal=True)
            )
            keep_going = False
        finally:
            metric.finished_at = datetime.now(UTC)
            metric.duration_ms = (time.perf_counter() - t0) * 1000
        return keep_going

    @staticmethod
    def _record(
        context: PipelineContext, stage: str, error: PipelineError, *, fatal: bool
    ) -> None:
        context.errors.append(
            StageError(
                stage=stage,
                kind=error.kind,
                message=error.message,
                fatal=fatal,
                subkind=error.subkind,
            )
        )
        if fatal:
            Log.error(f"Stage {stage} failed ({error.kind}): {error.message}")
        else:
            Log.warning(f"Stage {stage} failed, continuing ({error.kind}): {error.message}")


@dataclass(frozen=True)
class PipelineDependencies:
    """Long-lived collaborators shared by all executors. None of them hold per-request state."""

    photo_repo: PhotoRepository
    ownership_repo: OwnershipRepository
    storage: BaseObjectStorage
    moderator: BaseModerator
    transformer: ImageTransformer
    policy: ModerationPolicy


def build_dependencies(
    settings: Settings,
    storage: BaseObjectStorage,
    moderator: BaseModerator,
) -> PipelineDependencies:
    return PipelineDependencies(
        photo_repo=PhotoRepository(),
        ownership_repo=OwnershipRepository(),
        storage=storage,
        moderator=moderator,
        transformer=ImageTransformer(
            output_quality=settings.output_quality,
            thumbnail_quality=settings.thumbnail_quality,
            min_dimension=settings.min_image_dimension,
            max_dimension=settings.max_image_dimension,
        ),
        policy=ModerationPolicy.for_profile(settings.moderation_profile),
    )


def build_stages(settings: Settings, deps: PipelineDependencies) -> list[PipelineStage]:
    """Build the ordered stage list from settings."""
    return [
        ValidateSignatureStep(),
        SizeAndQuotaGuardStep(
            deps.photo_repo,
            max_static_bytes=settings.max_static_file_bytes,
            max_animated_bytes=settings.max_animated_file_bytes,
            min_bytes=settings.min_file_bytes,
            quota_bytes=settings.user_storage_quota_bytes,
        ),
        PermissionGuardStep(deps.ownership_repo),
        ConcurrentStage(
            "transform_and_thumbnail",
            [ImageTransformStep(deps.transformer), ThumbnailStep(deps.transformer)],
        ),
        ContentModerationStep(
            deps.moderator,
            deps.policy,
            unavailable_policy=settings.moderation_unavailable_policy,
        ),
        ObjectStorageUploadStep(
            deps.storage,
            max_attempts=settings.storage_max_attempts,
            timeout_seconds=settings.storage_timeout_seconds,
        ),
        PersistenceStep(deps.photo_repo, quota_bytes=settings.user_storage_quota_bytes),
    ]


def build_executor(
    settings: Settings,
    deps: PipelineDependencies,
    cancel_check: CancelCheck | None = None,
) -> PipelineExecutor:
    """Build a PipelineExecutor for one request."""
    return PipelineExecutor(build_stages(settings, deps), cancel_check=cancel_check)
