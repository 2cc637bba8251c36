from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from photo_pipeline.config.settings import Settings
from photo_pipeline.database.repositories.photo_repository import PhotoRepository
from photo_pipeline.imaging.presets import PhotoType
from photo_pipeline.moderation.factory import ModeratorFactory
from photo_pipeline.pipeline.executor import build_dependencies
from photo_pipeline.pipeline.models import UploadRequest
from photo_pipeline.storage.factory import StorageFactory
from photo_pipeline.uploads.service import UploadService
from photo_pipeline.worker.reconciler import Reconciler

pytestmark = pytest.mark.integration


def _make_service(test_settings: Settings, root: Path) -> UploadService:
    settings = test_settings.model_copy(
        update={"storage_backend": "local", "storage_local_root": str(root), "moderation_provider": "example"}
    )
    deps = build_dependencies(
        settings,
        storage=StorageFactory.create(settings),
        moderator=ModeratorFactory.create(settings),
    )
    return UploadService(settings, deps)


class TestUploadPipelineIntegration:
    @pytest.mark.asyncio
    async def test_upload_is_stored_and_persisted(
        self,
        test_settings: Settings,
        test_user: str,
        tmp_path: Path,
        jpeg_with_exif_bytes: bytes,
    ) -> None:
        service = _make_service(test_settings, tmp_path)
        request = UploadRequest.build(
            data=jpeg_with_exif_bytes,
            declared_mime_type="image/jpeg",
            filename="beach.jpg",
            user_id=test_user,
            photo_type=PhotoType.AVATAR,
        )

        result = await service.process_upload(request)

        assert result.success is True, result.errors
        record = result.record
        assert record is not None
        assert record.moderation_status == "approved"
        assert (tmp_path / record.storage_key).is_file()
        assert (tmp_path / record.thumbnail_key).is_file()
        usage = await service.get_storage_usage(test_user)
        assert usage.used_bytes == record.compressed_size

    @pytest.mark.asyncio
    async def test_reconciler_removes_deleted_photo_objects(
        self,
        test_settings: Settings,
        test_user: str,
        tmp_path: Path,
        png_bytes: bytes,
    ) -> None:
        service = _make_service(test_settings, tmp_path)
        result = await service.process_upload(
            UploadRequest.build(
                data=png_bytes,
                declared_mime_type="image/png",
                filename="logo.png",
                user_id=test_user,
                photo_type=PhotoType.GALLERY,
            )
        )
        assert result.record is not None
        await service.delete_photo(result.record.id, test_user)

        reconciler = Reconciler(
            PhotoRepository(),
            service.storage,
            grace_period=timedelta(0),
            staging_prefix="staging",
            staging_max_age=timedelta(hours=1),
        )
        report = await reconciler.sweep(now=datetime.now(UTC) + timedelta(seconds=1))

        assert result.record.storage_key in report.orphans_deleted
        assert result.record.thumbnail_key in report.orphans_deleted
        assert not (tmp_path / result.record.storage_key).exists()
