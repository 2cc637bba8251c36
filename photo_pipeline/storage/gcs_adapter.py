import asyncio
from datetime import UTC, datetime, timedelta

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from photo_pipeline.logging.logger import Log
from photo_pipeline.storage.base import BaseObjectStorage
from photo_pipeline.storage.exceptions import StorageError, StorageObjectNotFoundError
from photo_pipeline.storage.models import StoredObject, UploadUrl


class GCSStorageAdapter(BaseObjectStorage):
    """Google Cloud Storage backend. The client is synchronous, so calls run in threads."""

    def __init__(
        self,
        *,
        bucket_name: str,
        cache_control: str,
        timeout_seconds: int = 30,
        client: storage.Client | None = None,
    ) -> None:
        if not bucket_name:
            raise ValueError("storage_gcs_bucket is required for storage_backend=gcs")
        self._client = client or storage.Client()
        self._bucket_name = bucket_name
        self._bucket = self._client.bucket(bucket_name)
        self._cache_control = cache_control
        self._timeout_seconds = timeout_seconds
        Log.info(f"GCS storage initialized for bucket '{bucket_name}'")

    async def put_object(self, key: str, data: bytes, content_type: str) -> None:
        blob = self._bucket.blob(key)
        blob.content_disposition = "inline"
        blob.cache_control = self._cache_control

        def upload_sync() -> None:
            # retries are bounded by the caller
            blob.upload_from_string(
                data,
                content_type=content_type,
                timeout=self._timeout_seconds,
                retry=None,
            )

        try:
            await asyncio.to_thread(upload_sync)
        except (gcs_exceptions.GoogleAPIError, OSError) as exc:
            raise StorageError(f"GCS upload of {key} failed: {exc}") from exc
        Log.debug(f"[GCS] Uploaded {len(data)} bytes to {key}")

    async def get_object(self, key: str) -> bytes:
        blob = self._bucket.blob(key)
        try:
            return await asyncio.to_thread(blob.download_as_bytes, timeout=self._timeout_seconds)
        except gcs_exceptions.NotFound as exc:
            raise StorageObjectNotFoundError(f"Object not found: {key}") from exc
        except (gcs_exceptions.GoogleAPIError, OSError) as exc:
            raise StorageError(f"GCS download of {key} failed: {exc}") from exc

    async def delete_object(self, key: str) -> bool:
        blob = self._bucket.blob(key)
        try:
            await asyncio.to_thread(blob.delete, timeout=self._timeout_seconds)
        except gcs_exceptions.NotFound:
            return False
        except (gcs_exceptions.GoogleAPIError, OSError) as exc:
            raise StorageError(f"GCS delete of {key} failed: {exc}") from exc
        Log.debug(f"[GCS] Deleted {key}")
        return True

    async def list_objects(self, prefix: str) -> list[StoredObject]:
        def list_sync() -> list[StoredObject]:
            return [
                StoredObject(key=blob.name, size=blob.size or 0, updated_at=blob.updated)
                for blob in self._client.list_blobs(self._bucket_name, prefix=prefix)
            ]

        try:
            return await asyncio.to_thread(list_sync)
        except (gcs_exceptions.GoogleAPIError, OSError) as exc:
            raise StorageError(f"GCS listing of {prefix} failed: {exc}") from exc

    def public_url(self, key: str) -> str:
        return f"https://storage.googleapis.com/{self._bucket_name}/{key}"

    def generate_upload_url(
        self, key: str, content_type: str, expires_in: timedelta
    ) -> UploadUrl:
        blob = self._bucket.blob(key)
        url = blob.generate_signed_url(
            version="v4",
            expiration=expires_in,
            method="PUT",
            content_type=content_type,
        )
        return UploadUrl(
            url=url,
            method="PUT",
            expires_at=datetime.now(UTC) + expires_in,
            headers={"Content-Type": content_type},
        )
