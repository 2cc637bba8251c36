from pathlib import Path

from photo_pipeline.config.settings import Settings
from photo_pipeline.logging.logger import Log
from photo_pipeline.storage.base import BaseObjectStorage
from photo_pipeline.storage.gcs_adapter import GCSStorageAdapter
from photo_pipeline.storage.local_adapter import LocalStorageAdapter


class StorageFactory:
    """Creates the configured object storage backend."""

    @classmethod
    def create(cls, settings: Settings) -> BaseObjectStorage:
        backend = settings.storage_backend.lower()
        Log.info(f"Creating storage backend: {backend}")
        if backend == "local":
            return LocalStorageAdapter(
                root=Path(settings.storage_local_root),
                public_base_url=settings.storage_public_base_url,
                upload_base_url=settings.storage_local_upload_base_url,
                signing_secret=settings.storage_local_signing_secret,
                cache_control=settings.storage_cache_control,
            )
        if backend == "gcs":
            return GCSStorageAdapter(
                bucket_name=settings.storage_gcs_bucket,
                cache_control=settings.storage_cache_control,
                timeout_seconds=settings.storage_timeout_seconds,
            )
        raise ValueError(f"Unknown storage backend '{backend}'. Choose from: ['gcs', 'local']")
