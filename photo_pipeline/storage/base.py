from abc import ABC, abstractmethod
from datetime import timedelta

from photo_pipeline.storage.models import StoredObject, UploadUrl


class BaseObjectStorage(ABC):
    """Contract for object storage backends. All I/O is non-blocking."""

    @abstractmethod
    async def put_object(self, key: str, data: bytes, content_type: str) -> None:
        """Write ``data`` under ``key`` with inline disposition and long-lived caching.

        Raises:
            StorageError: on any transport or backend failure.
        """

    @abstractmethod
    async def get_object(self, key: str) -> bytes:
        """Read an object back.

        Raises:
            StorageObjectNotFoundError: if ``key`` does not exist.
            StorageError: on any other failure.
        """

    @abstractmethod
    async def delete_object(self, key: str) -> bool:
        """Delete an object. Returns False if it did not exist."""

    @abstractmethod
    async def list_objects(self, prefix: str) -> list[StoredObject]:
        """List every object whose key starts with ``prefix``."""

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Return the public URL for a stored object."""

    @abstractmethod
    def generate_upload_url(
        self, key: str, content_type: str, expires_in: timedelta
    ) -> UploadUrl:
        """Return a write-only credential scoped to ``key``."""
