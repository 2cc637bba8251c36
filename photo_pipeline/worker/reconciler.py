from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from photo_pipeline.database.repositories.photo_repository import PhotoRepository
from photo_pipeline.logging.logger import Log
from photo_pipeline.storage.base import BaseObjectStorage
from photo_pipeline.storage.exceptions import StorageError
from photo_pipeline.storage.keys import managed_prefixes
from photo_pipeline.storage.models import StoredObject


@dataclass
class ReconcileReport:
    scanned: int = 0
    orphans_deleted: list[str] = field(default_factory=list)
    staging_deleted: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)


class Reconciler:
    """Deletes stored objects that no active photo row references.

    Objects younger than the grace period are left alone because their
    upload may still be committing.
    """

    def __init__(
        self,
        photo_repo: PhotoRepository,
        storage: BaseObjectStorage,
        *,
        grace_period: timedelta,
        staging_prefix: str,
        staging_max_age: timedelta,
    ) -> None:
        self._photo_repo = photo_repo
        self._storage = storage
        self._grace_period = grace_period
        self._staging_prefix = staging_prefix
        self._staging_max_age = staging_max_age

    async def sweep(self, now: datetime | None = None) -> ReconcileReport:
        now = now or datetime.now(UTC)
        report = ReconcileReport()

        # list storage first so rows committed during the listing are still seen
        objects: list[StoredObject] = []
        for prefix in managed_prefixes():
            objects.extend(await self._storage.list_objects(prefix))
        referenced = await self._photo_repo.list_referenced_keys()

        for obj in objects:
            report.scanned += 1
            if obj.key in referenced or now - obj.updated_at < self._grace_period:
                continue
            if await self._delete(obj.key, report):
                report.orphans_deleted.append(obj.key)

        for obj in await self._storage.list_objects(f"{self._staging_prefix}/"):
            report.scanned += 1
            if now - obj.updated_at < self._staging_max_age:
                continue
            if await self._delete(obj.key, report):
                report.staging_deleted.append(obj.key)

        Log.info(
            f"Reconcile sweep: scanned {report.scanned}, "
            f"deleted {len(report.orphans_deleted)} orphans and "
            f"{len(report.staging_deleted)} stale staging objects, "
            f"{len(report.failures)} failures"
        )
        return report

    async def _delete(self, key: str, report: ReconcileReport) -> bool:
        try:
            await self._storage.delete_object(key)
        except StorageError as exc:
            Log.warning(f"Could not delete orphaned object {key}: {exc}")
            report.failures.append(key)
            return False
        return True
