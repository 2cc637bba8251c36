import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime

from photo_pipeline.database.models import PhotoRecord
from photo_pipeline.imaging.models import TransformedImage
from photo_pipeline.imaging.presets import ImageFormat
from photo_pipeline.moderation.models import (
    ModerationDecision,
    ModerationStatus,
    ModerationVerdict,
)
from photo_pipeline.pipeline.models import StageError, StageMetric, StageStatus, UploadRequest


@dataclass(slots=True)
class ProcessingState:
    """Fields filled in progressively by the stages."""

    detected_format: ImageFormat | None = None
    animated: bool = False
    transformed: TransformedImage | None = None
    thumbnail: TransformedImage | None = None
    moderation_verdict: ModerationVerdict | None = None
    moderation_decision: ModerationDecision | None = None
    moderation_status: ModerationStatus | None = None
    storage_key: str | None = None
    thumbnail_key: str | None = None
    url: str | None = None
    thumbnail_url: str | None = None
    record: PhotoRecord | None = None


@dataclass(slots=True)
class PipelineContext:
    request: UploadRequest
    processing: ProcessingState = field(default_factory=ProcessingState)
    metrics: dict[str, StageMetric] = field(default_factory=dict)
    errors: list[StageError] = field(default_factory=list)


class PipelineStage(ABC):
    name: str = "stage"
    fatal: bool = True

    def precondition(self, context: PipelineContext) -> bool:
        """Return False to skip this stage because its inputs are missing."""
        return True

    def metric_names(self) -> list[str]:
        """Names this stage reports timings under."""
        return [self.name]

    @abstractmethod
    async def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError


class ConcurrentStage(PipelineStage):
    """Runs independent stages at the same time. Every member must succeed.

    The group and each member get their own metric entry.
    """

    def __init__(self, name: str, stages: list[PipelineStage]) -> None:
        self.name = name
        self.fatal = any(stage.fatal for stage in stages)
        self._stages = stages

    def precondition(self, context: PipelineContext) -> bool:
        return all(stage.precondition(context) for stage in self._stages)

    def metric_names(self) -> list[str]:
        return [self.name, *(stage.name for stage in self._stages)]

    async def run(self, context: PipelineContext) -> PipelineContext:
        # members write disjoint fields of the shared context
        results = await asyncio.gather(
            *(self._run_member(stage, context) for stage in self._stages),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return context

    @staticmethod
    async def _run_member(stage: PipelineStage, context: PipelineContext) -> PipelineContext:
        metric = context.metrics.setdefault(stage.name, StageMetric())
        metric.status = StageStatus.RUNNING
        metric.started_at = datetime.now(UTC)
        t0 = time.perf_counter()
        try:
            await stage.run(context)
            metric.status = StageStatus.SUCCEEDED
        except Exception:
            metric.status = StageStatus.FAILED
            raise
        finally:
            metric.finished_at = datetime.now(UTC)
            metric.duration_ms = (time.perf_counter() - t0) * 1000
        return context
