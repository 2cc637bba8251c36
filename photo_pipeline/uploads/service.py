from dataclasses import dataclass
from datetime import datetime, timedelta

from photo_pipeline.config.settings import Settings
from photo_pipeline.database.models import PhotoRecord, StorageUsage
from photo_pipeline.imaging.presets import ImageFormat, PhotoPurpose, PhotoType
from photo_pipeline.logging.logger import Log
from photo_pipeline.pipeline.exceptions import (
    PermissionDeniedError,
    TypeMismatchError,
    UploadNotFoundError,
)
from photo_pipeline.pipeline.executor import CancelCheck, PipelineDependencies, build_executor
from photo_pipeline.pipeline.models import PipelineResult, UploadRequest
from photo_pipeline.pipeline.steps import check_candidate_permission
from photo_pipeline.storage.base import BaseObjectStorage
from photo_pipeline.storage.exceptions import StorageError, StorageObjectNotFoundError
from photo_pipeline.storage.keys import build_staging_key, staging_prefix_for


@dataclass(frozen=True)
class PresignedUpload:
    storage_key: str
    upload_url: str
    method: str
    headers: dict[str, str]
    expires_at: datetime


class UploadService:
    """Entry points for both upload shapes plus the post-creation photo operations."""

    def __init__(self, settings: Settings, deps: PipelineDependencies) -> None:
        self._settings = settings
        self._deps = deps

    @property
    def storage(self) -> BaseObjectStorage:
        return self._deps.storage

    async def process_upload(
        self,
        request: UploadRequest,
        cancel_check: CancelCheck | None = None,
    ) -> PipelineResult:
        """Run the full pipeline on bytes received by the backend."""
        executor = build_executor(self._settings, self._deps, cancel_check=cancel_check)
        return await executor.run(request)

    def create_presigned_upload(
        self,
        user_id: str,
        photo_type: PhotoType,
        content_type: str,
    ) -> PresignedUpload:
        """Issue a write-only URL for one fresh staging key."""
        fmt = ImageFormat.from_mime_type(content_type)
        if fmt is None:
            raise TypeMismatchError(f"Unsupported content type '{content_type}'")
        key = build_staging_key(self._settings.storage_staging_prefix, user_id, fmt.extension)
        upload = self._deps.storage.generate_upload_url(
            key,
            fmt.mime_type,
            timedelta(minutes=self._settings.storage_presign_expiry_minutes),
        )
        Log.info(f"Issued pre-signed {photo_type.value} upload {key} for user {user_id}")
        return PresignedUpload(
            storage_key=key,
            upload_url=upload.url,
            method=upload.method,
            headers=upload.headers,
            expires_at=upload.expires_at,
        )

    async def confirm_presigned_upload(
        self,
        *,
        user_id: str,
        storage_key: str,
        declared_mime_type: str,
        photo_type: PhotoType,
        purpose: PhotoPurpose = PhotoPurpose.PERSONAL,
        caption: str | None = None,
        candidate_id: str | None = None,
        post_id: str | None = None,
        cancel_check: CancelCheck | None = None,
    ) -> PipelineResult:
        """Read a staged object back and run the whole pipeline on it.

        The staged raw object is deleted afterwards whatever the outcome;
        only the re-encoded copy written by the pipeline survives.
        """
        expected_prefix = staging_prefix_for(self._settings.storage_staging_prefix, user_id)
        if not storage_key.startswith(expected_prefix) or ".." in storage_key:
            raise PermissionDeniedError(f"Upload {storage_key} does not belong to user {user_id}")

        storage = self._deps.storage
        try:
            data = await storage.get_object(storage_key)
        except StorageObjectNotFoundError as exc:
            raise UploadNotFoundError(f"No uploaded object at {storage_key}") from exc

        try:
            request = UploadRequest.build(
                data=data,
                declared_mime_type=declared_mime_type,
                filename=storage_key.rsplit("/", 1)[-1],
                user_id=user_id,
                photo_type=photo_type,
                purpose=purpose,
                caption=caption,
                candidate_id=candidate_id,
                post_id=post_id,
            )
            return await self.process_upload(request, cancel_check=cancel_check)
        finally:
            await self._discard_staged(storage_key)

    async def _discard_staged(self, storage_key: str) -> None:
        try:
            await self._deps.storage.delete_object(storage_key)
        except StorageError as exc:
            # the reconciler removes stale staging objects
            Log.warning(f"Could not delete staged upload {storage_key}: {exc}")

    async def attach_to_post(self, photo_id: str, user_id: str, post_id: str) -> PhotoRecord:
        record = await self._deps.photo_repo.attach_to_post(photo_id, user_id, post_id)
        Log.info(f"Attached photo {photo_id} to post {post_id}")
        return record

    async def delete_photo(self, photo_id: str, user_id: str) -> None:
        await self._deps.photo_repo.soft_delete(photo_id, user_id)
        Log.info(f"Soft-deleted photo {photo_id} for user {user_id}")

    async def list_user_photos(
        self,
        user_id: str,
        *,
        photo_type: PhotoType | None = None,
        purpose: PhotoPurpose | None = None,
        candidate_id: str | None = None,
    ) -> list[PhotoRecord]:
        return await self._deps.photo_repo.list_for_user(
            user_id,
            photo_type=photo_type.value if photo_type else None,
            purpose=purpose.value if purpose else None,
            candidate_id=candidate_id,
        )

    async def list_candidate_photos(self, candidate_id: str) -> list[PhotoRecord]:
        return await self._deps.photo_repo.list_for_candidate(candidate_id)

    async def set_photo_purpose(
        self,
        photo_id: str,
        user_id: str,
        purpose: PhotoPurpose,
        candidate_id: str | None = None,
    ) -> PhotoRecord:
        """Re-label an owned photo. Personal photos lose their candidate link."""
        if purpose is PhotoPurpose.PERSONAL:
            candidate_id = None
        await check_candidate_permission(
            self._deps.ownership_repo,
            user_id=user_id,
            purpose=purpose,
            candidate_id=candidate_id,
        )
        return await self._deps.photo_repo.set_purpose(
            photo_id, user_id, purpose.value, candidate_id
        )

    async def get_storage_usage(self, user_id: str) -> StorageUsage:
        used, count = await self._deps.photo_repo.get_storage_usage(user_id)
        return StorageUsage(
            user_id=user_id,
            used_bytes=used,
            photo_count=count,
            quota_bytes=self._settings.user_storage_quota_bytes,
        )
