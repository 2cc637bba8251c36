import asyncio
import hashlib
import hmac
import json
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
from urllib.parse import urlencode

import aiofiles
import aiofiles.os

from photo_pipeline.logging.logger import Log
from photo_pipeline.storage.base import BaseObjectStorage
from photo_pipeline.storage.exceptions import StorageError, StorageObjectNotFoundError
from photo_pipeline.storage.models import StoredObject, UploadUrl

_META_SUFFIX = ".meta.json"


class LocalStorageAdapter(BaseObjectStorage):
    """Filesystem backend for development. Metadata is kept in a JSON sidecar."""

    def __init__(
        self,
        *,
        root: Path,
        public_base_url: str,
        upload_base_url: str,
        signing_secret: str,
        cache_control: str,
    ) -> None:
        self._root = root.resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")
        self._upload_base_url = upload_base_url.rstrip("/")
        self._signing_secret = signing_secret.encode("utf-8")
        self._cache_control = cache_control
        Log.debug(f"Local storage initialized at {self._root}")

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root) or key.endswith(_META_SUFFIX):
            raise StorageError(f"Invalid object key: {key}")
        return path

    async def put_object(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path_for(key)
        tmp_path = path.with_name(f".{path.name}.tmp")
        metadata = {
            "content_type": content_type,
            "content_disposition": "inline",
            "cache_control": self._cache_control,
        }
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as out_file:
                await out_file.write(data)
            async with aiofiles.open(f"{path}{_META_SUFFIX}", "w") as meta_file:
                await meta_file.write(json.dumps(metadata))
            await aiofiles.os.replace(tmp_path, path)
        except OSError as exc:
            raise StorageError(f"Local write of {key} failed: {exc}") from exc
        Log.debug(f"[local] Saved {len(data)} bytes to {path}")

    async def get_object(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            async with aiofiles.open(path, "rb") as in_file:
                return await in_file.read()
        except FileNotFoundError as exc:
            raise StorageObjectNotFoundError(f"Object not found: {key}") from exc
        except OSError as exc:
            raise StorageError(f"Local read of {key} failed: {exc}") from exc

    async def get_metadata(self, key: str) -> dict[str, str]:
        path = self._path_for(key)
        try:
            async with aiofiles.open(f"{path}{_META_SUFFIX}", "r") as meta_file:
                return json.loads(await meta_file.read())
        except FileNotFoundError as exc:
            raise StorageObjectNotFoundError(f"Object not found: {key}") from exc

    async def delete_object(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Local delete of {key} failed: {exc}") from exc
        try:
            await aiofiles.os.remove(f"{path}{_META_SUFFIX}")
        except FileNotFoundError:
            pass
        Log.debug(f"[local] Deleted {path}")
        return True

    async def list_objects(self, prefix: str) -> list[StoredObject]:
        return await asyncio.to_thread(self._list_sync, prefix)

    def _list_sync(self, prefix: str) -> list[StoredObject]:
        objects: list[StoredObject] = []
        for dirpath, _dirnames, filenames in os.walk(self._root):
            for filename in filenames:
                if filename.endswith(_META_SUFFIX) or filename.endswith(".tmp"):
                    continue
                path = Path(dirpath) / filename
                key = path.relative_to(self._root).as_posix()
                if not key.startswith(prefix):
                    continue
                stat = path.stat()
                objects.append(
                    StoredObject(
                        key=key,
                        size=stat.st_size,
                        updated_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                    )
                )
        return objects

    def public_url(self, key: str) -> str:
        return f"{self._public_base_url}/{key}"

    def generate_upload_url(
        self, key: str, content_type: str, expires_in: timedelta
    ) -> UploadUrl:
        expires_at = datetime.now(UTC) + expires_in
        expires = int(expires_at.timestamp())
        query = urlencode({"expires": expires, "signature": self._sign(key, expires)})
        return UploadUrl(
            url=f"{self._upload_base_url}/{key}?{query}",
            method="PUT",
            expires_at=expires_at,
            headers={"Content-Type": content_type},
        )

    def verify_upload_signature(self, key: str, expires: int, signature: str) -> bool:
        """Check a token produced by generate_upload_url for this exact key."""
        if expires < int(datetime.now(UTC).timestamp()):
            return False
        return hmac.compare_digest(self._sign(key, expires), signature)

    def _sign(self, key: str, expires: int) -> str:
        message = f"PUT\n{key}\n{expires}".encode("utf-8")
        return hmac.new(self._signing_secret, message, hashlib.sha256).hexdigest()
