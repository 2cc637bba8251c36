from typing import Any

import psycopg
from psycopg.rows import dict_row

from photo_pipeline.database.connection import get_connection
from photo_pipeline.database.models import NewPhoto, PhotoRecord
from photo_pipeline.logging.logger import Log
from photo_pipeline.pipeline.exceptions import (
    PersistenceConflictError,
    PhotoNotFoundError,
    QuotaExceededError,
)

_PHOTO_COLUMNS = """
    id, user_id, candidate_id, url, thumbnail_url, storage_key, thumbnail_key,
    photo_type, purpose, caption, original_size, compressed_size, width, height,
    mime_type, moderation_status, post_id, is_active, created_at, updated_at
"""


def _optional_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def _row_to_record(row: dict[str, Any]) -> PhotoRecord:
    return PhotoRecord(
        id=str(row["id"]),
        user_id=row["user_id"],
        candidate_id=_optional_str(row["candidate_id"]),
        url=row["url"],
        thumbnail_url=row["thumbnail_url"],
        storage_key=row["storage_key"],
        thumbnail_key=row["thumbnail_key"],
        photo_type=row["photo_type"],
        purpose=row["purpose"],
        caption=row["caption"],
        original_size=row["original_size"],
        compressed_size=row["compressed_size"],
        width=row["width"],
        height=row["height"],
        mime_type=row["mime_type"],
        moderation_status=row["moderation_status"],
        post_id=_optional_str(row["post_id"]),
        is_active=row["is_active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PhotoRepository:
    """Database operations for the photos and post_photos tables."""

    async def get_storage_usage(self, user_id: str) -> tuple[int, int]:
        """Return (used_bytes, photo_count) over the user's active photos."""
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT COALESCE(SUM(compressed_size), 0), COUNT(*)
                    FROM photos
                    WHERE user_id = %s AND is_active
                    """,
                    (user_id,),
                )
                row = await cur.fetchone()
        if row is None:
            return 0, 0
        return int(row[0]), int(row[1])

    async def create_photo(
        self,
        photo: NewPhoto,
        *,
        quota_bytes: int,
        post_id: str | None = None,
    ) -> PhotoRecord:
        """Insert a photo and, when ``post_id`` is given, its post link, atomically.

        Uploads for the same user are serialised by a transaction-scoped
        advisory lock, and quota is re-checked under that lock.

        Raises:
            QuotaExceededError: the stored size would exceed ``quota_bytes``.
            PersistenceConflictError: constraint violation, missing post, or abort.
        """
        try:
            async with get_connection() as conn:
                async with conn.transaction():
                    async with conn.cursor(row_factory=dict_row) as cur:
                        await self._lock_user(cur, photo.user_id)
                        await self._recheck_quota(cur, photo, quota_bytes)
                        if post_id is not None:
                            await self._require_post(cur, post_id)
                        record = await self._insert_photo(cur, photo, post_id)
                        if post_id is not None:
                            await self._insert_link(cur, post_id, record.id)
        except psycopg.IntegrityError as exc:
            raise PersistenceConflictError(f"Photo insert violated a constraint: {exc}") from exc
        except psycopg.OperationalError as exc:
            raise PersistenceConflictError(f"Photo transaction aborted: {exc}") from exc

        Log.info(f"Persisted photo {record.id} for user {photo.user_id}")
        return record

    async def attach_to_post(self, photo_id: str, user_id: str, post_id: str) -> PhotoRecord:
        """Link an existing active photo owned by ``user_id`` to a post.

        Raises:
            PhotoNotFoundError: no active photo with this ID for this user.
            PersistenceConflictError: post missing or photo already linked to it.
        """
        try:
            async with get_connection() as conn:
                async with conn.transaction():
                    async with conn.cursor(row_factory=dict_row) as cur:
                        await cur.execute(
                            """
                            SELECT id FROM photos
                            WHERE id = %s AND user_id = %s AND is_active
                            FOR UPDATE
                            """,
                            (photo_id, user_id),
                        )
                        if await cur.fetchone() is None:
                            raise PhotoNotFoundError(f"Photo {photo_id} not found")
                        await self._require_post(cur, post_id)
                        await self._insert_link(cur, post_id, photo_id)
                        await cur.execute(
                            f"""
                            UPDATE photos
                            SET post_id = %s, updated_at = NOW()
                            WHERE id = %s
                            RETURNING {_PHOTO_COLUMNS}
                            """,
                            (post_id, photo_id),
                        )
                        row = await cur.fetchone()
        except psycopg.IntegrityError as exc:
            raise PersistenceConflictError(
                f"Photo {photo_id} could not be attached to post {post_id}: {exc}"
            ) from exc

        if row is None:
            raise PhotoNotFoundError(f"Photo {photo_id} not found")
        return _row_to_record(row)

    async def soft_delete(self, photo_id: str, user_id: str) -> None:
        """Mark a photo inactive. Stored objects are left for reconciliation.

        Raises:
            PhotoNotFoundError: no active photo with this ID for this user.
        """
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE photos
                    SET is_active = FALSE, updated_at = NOW()
                    WHERE id = %s AND user_id = %s AND is_active
                    """,
                    (photo_id, user_id),
                )
                if cur.rowcount == 0:
                    raise PhotoNotFoundError(f"Photo {photo_id} not found")
            await conn.commit()

    async def find_by_id(self, photo_id: str) -> PhotoRecord:
        """Find a photo by ID, active or not.

        Raises:
            PhotoNotFoundError: if no photo with this ID exists.
        """
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_PHOTO_COLUMNS} FROM photos WHERE id = %s",
                    (photo_id,),
                )
                row = await cur.fetchone()

        if row is None:
            raise PhotoNotFoundError(f"Photo {photo_id} not found")
        return _row_to_record(row)

    async def list_for_user(
        self,
        user_id: str,
        *,
        photo_type: str | None = None,
        purpose: str | None = None,
        candidate_id: str | None = None,
    ) -> list[PhotoRecord]:
        """The user's active photos that were not rejected, newest first."""
        conditions = ["user_id = %s", "is_active", "moderation_status <> 'rejected'"]
        params: list[Any] = [user_id]
        if photo_type is not None:
            conditions.append("photo_type = %s")
            params.append(photo_type)
        if purpose is not None:
            conditions.append("purpose = %s")
            params.append(purpose)
        if candidate_id is not None:
            conditions.append("candidate_id = %s")
            params.append(candidate_id)

        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_PHOTO_COLUMNS}
                    FROM photos
                    WHERE {" AND ".join(conditions)}
                    ORDER BY created_at DESC
                    """,
                    params,
                )
                rows = await cur.fetchall()
        return [_row_to_record(row) for row in rows]

    async def list_for_candidate(self, candidate_id: str) -> list[PhotoRecord]:
        """Approved active campaign photos of a candidate, newest first."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_PHOTO_COLUMNS}
                    FROM photos
                    WHERE candidate_id = %s
                      AND purpose IN ('CAMPAIGN', 'BOTH')
                      AND is_active
                      AND moderation_status = 'approved'
                    ORDER BY created_at DESC
                    """,
                    (candidate_id,),
                )
                rows = await cur.fetchall()
        return [_row_to_record(row) for row in rows]

    async def set_purpose(
        self,
        photo_id: str,
        user_id: str,
        purpose: str,
        candidate_id: str | None,
    ) -> PhotoRecord:
        """Change purpose and candidate link of an active photo owned by ``user_id``.

        Raises:
            PhotoNotFoundError: no active photo with this ID for this user.
        """
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE photos
                    SET purpose = %s, candidate_id = %s, updated_at = NOW()
                    WHERE id = %s AND user_id = %s AND is_active
                    RETURNING {_PHOTO_COLUMNS}
                    """,
                    (purpose, candidate_id, photo_id, user_id),
                )
                row = await cur.fetchone()
            if row is None:
                raise PhotoNotFoundError(f"Photo {photo_id} not found")
            await conn.commit()

        Log.info(f"Set purpose of photo {photo_id} to {purpose}")
        return _row_to_record(row)

    async def list_referenced_keys(self) -> set[str]:
        """Storage keys (full size and thumbnail) of every active photo."""
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT storage_key, thumbnail_key
                    FROM photos
                    WHERE is_active
                    """
                )
                rows = await cur.fetchall()
        keys: set[str] = set()
        for storage_key, thumbnail_key in rows:
            keys.add(storage_key)
            keys.add(thumbnail_key)
        return keys

    @staticmethod
    async def _lock_user(cur: psycopg.AsyncCursor[Any], user_id: str) -> None:
        await cur.execute(
            "SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))",
            (user_id,),
        )

    @staticmethod
    async def _recheck_quota(
        cur: psycopg.AsyncCursor[Any], photo: NewPhoto, quota_bytes: int
    ) -> None:
        await cur.execute(
            """
            SELECT COALESCE(SUM(compressed_size), 0) AS used
            FROM photos
            WHERE user_id = %s AND is_active
            """,
            (photo.user_id,),
        )
        row = await cur.fetchone()
        used = int(row["used"]) if row is not None else 0
        if used + photo.compressed_size > quota_bytes:
            raise QuotaExceededError(
                f"Storage limit exceeded. Current usage: {used // (1024 * 1024)}MB, "
                f"Limit: {quota_bytes // (1024 * 1024)}MB"
            )

    @staticmethod
    async def _require_post(cur: psycopg.AsyncCursor[Any], post_id: str) -> None:
        await cur.execute("SELECT id FROM posts WHERE id = %s FOR SHARE", (post_id,))
        if await cur.fetchone() is None:
            raise PersistenceConflictError(f"Post {post_id} does not exist")

    @staticmethod
    async def _insert_photo(
        cur: psycopg.AsyncCursor[Any], photo: NewPhoto, post_id: str | None
    ) -> PhotoRecord:
        await cur.execute(
            f"""
            INSERT INTO photos
                (user_id, candidate_id, url, thumbnail_url, storage_key, thumbnail_key,
                 photo_type, purpose, caption, original_size, compressed_size,
                 width, height, mime_type, moderation_status, post_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {_PHOTO_COLUMNS}
            """,
            (
                photo.user_id,
                photo.candidate_id,
                photo.url,
                photo.thumbnail_url,
                photo.storage_key,
                photo.thumbnail_key,
                photo.photo_type,
                photo.purpose,
                photo.caption,
                photo.original_size,
                photo.compressed_size,
                photo.width,
                photo.height,
                photo.mime_type,
                photo.moderation_status,
                post_id,
            ),
        )
        row = await cur.fetchone()
        if row is None:
            raise PersistenceConflictError("Photo insert returned no row")
        return _row_to_record(row)

    @staticmethod
    async def _insert_link(cur: psycopg.AsyncCursor[Any], post_id: str, photo_id: str) -> None:
        await cur.execute(
            """
            INSERT INTO post_photos (post_id, photo_id, display_order)
            SELECT %s, %s, COALESCE(MAX(display_order) + 1, 0)
            FROM post_photos
            WHERE post_id = %s
            """,
            (post_id, photo_id, post_id),
        )
