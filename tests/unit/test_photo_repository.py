from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import psycopg
import pytest

from photo_pipeline.database.models import NewPhoto, PhotoRecord
from photo_pipeline.database.repositories.ownership_repository import OwnershipRepository
from photo_pipeline.database.repositories.photo_repository import PhotoRepository
from photo_pipeline.pipeline.exceptions import (
    PersistenceConflictError,
    PhotoNotFoundError,
    QuotaExceededError,
)

_PHOTO_ID = "11111111-1111-4111-8111-111111111111"
_POST_ID = "22222222-2222-4222-8222-222222222222"


def _make_photo(compressed_size: int = 20) -> NewPhoto:
    return NewPhoto(
        user_id="user-1",
        url="https://cdn/gallery/a.webp",
        thumbnail_url="https://cdn/thumbnails/gallery/a.webp",
        storage_key="gallery/a.webp",
        thumbnail_key="thumbnails/gallery/a.webp",
        photo_type="GALLERY",
        purpose="PERSONAL",
        original_size=100,
        compressed_size=compressed_size,
        width=64,
        height=48,
        mime_type="image/webp",
        moderation_status="approved",
    )


def _make_row(post_id: str | None = None) -> dict[str, Any]:
    now = datetime(2026, 1, 1, tzinfo=UTC)
    return {
        "id": _PHOTO_ID,
        "user_id": "user-1",
        "candidate_id": None,
        "url": "https://cdn/gallery/a.webp",
        "thumbnail_url": "https://cdn/thumbnails/gallery/a.webp",
        "storage_key": "gallery/a.webp",
        "thumbnail_key": "thumbnails/gallery/a.webp",
        "photo_type": "GALLERY",
        "purpose": "PERSONAL",
        "caption": None,
        "original_size": 100,
        "compressed_size": 20,
        "width": 64,
        "height": 48,
        "mime_type": "image/webp",
        "moderation_status": "approved",
        "post_id": post_id,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }


def _mock_connection(mock_get_conn: MagicMock) -> tuple[MagicMock, MagicMock]:
    """Wire up an async mock connection + cursor and return (mock_conn, mock_cursor)."""
    mock_cursor = MagicMock()
    mock_cursor.execute = AsyncMock()
    mock_cursor.fetchone = AsyncMock()
    mock_cursor.fetchall = AsyncMock()
    mock_conn = MagicMock()
    mock_conn.commit = AsyncMock()
    mock_conn.cursor.return_value.__aenter__ = AsyncMock(return_value=mock_cursor)
    mock_conn.cursor.return_value.__aexit__ = AsyncMock(return_value=False)
    mock_conn.transaction.return_value.__aenter__ = AsyncMock(return_value=None)
    mock_conn.transaction.return_value.__aexit__ = AsyncMock(return_value=False)
    mock_get_conn.return_value.__aenter__ = AsyncMock(return_value=mock_conn)
    mock_get_conn.return_value.__aexit__ = AsyncMock(return_value=False)
    return mock_conn, mock_cursor


class TestGetStorageUsage:
    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_returns_used_bytes_and_count(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = (4096, 3)

        assert await PhotoRepository().get_storage_usage("user-1") == (4096, 3)


class TestCreatePhoto:
    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_inserts_photo_under_user_lock(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{"used": 0}, _make_row()]

        record = await PhotoRepository().create_photo(_make_photo(), quota_bytes=1_000)

        assert isinstance(record, PhotoRecord)
        assert record.id == _PHOTO_ID
        first_sql = mock_cursor.execute.call_args_list[0].args[0]
        assert "pg_advisory_xact_lock" in first_sql
        assert not any(
            "post_photos" in c.args[0] for c in mock_cursor.execute.call_args_list
        )

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_links_post_in_same_transaction(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{"used": 0}, {"id": _POST_ID}, _make_row(_POST_ID)]

        record = await PhotoRepository().create_photo(
            _make_photo(), quota_bytes=1_000, post_id=_POST_ID
        )

        assert record.post_id == _POST_ID
        assert "post_photos" in mock_cursor.execute.call_args_list[-1].args[0]
        mock_conn.transaction.assert_called_once()

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_quota_rechecked_with_stored_size(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{"used": 990}]

        with pytest.raises(QuotaExceededError):
            await PhotoRepository().create_photo(_make_photo(compressed_size=20), quota_bytes=1_000)

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_missing_post_is_conflict(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{"used": 0}, None]

        with pytest.raises(PersistenceConflictError, match="does not exist"):
            await PhotoRepository().create_photo(_make_photo(), quota_bytes=1_000, post_id=_POST_ID)

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_integrity_error_is_conflict(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{"used": 0}]
        mock_cursor.execute.side_effect = [None, None, psycopg.IntegrityError("duplicate key")]

        with pytest.raises(PersistenceConflictError, match="constraint"):
            await PhotoRepository().create_photo(_make_photo(), quota_bytes=1_000)


class TestAttachToPost:
    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_attaches_owned_photo(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{"id": _PHOTO_ID}, {"id": _POST_ID}, _make_row(_POST_ID)]

        record = await PhotoRepository().attach_to_post(_PHOTO_ID, "user-1", _POST_ID)

        assert record.post_id == _POST_ID

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_unknown_photo_raises(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [None]

        with pytest.raises(PhotoNotFoundError):
            await PhotoRepository().attach_to_post(_PHOTO_ID, "user-2", _POST_ID)

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_duplicate_link_is_conflict(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{"id": _PHOTO_ID}, {"id": _POST_ID}]
        mock_cursor.execute.side_effect = [None, None, psycopg.IntegrityError("duplicate key")]

        with pytest.raises(PersistenceConflictError):
            await PhotoRepository().attach_to_post(_PHOTO_ID, "user-1", _POST_ID)


class TestSoftDelete:
    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_marks_inactive_and_commits(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 1

        await PhotoRepository().soft_delete(_PHOTO_ID, "user-1")

        assert "is_active = FALSE" in mock_cursor.execute.call_args.args[0]
        mock_conn.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_raises_when_nothing_updated(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 0

        with pytest.raises(PhotoNotFoundError):
            await PhotoRepository().soft_delete(_PHOTO_ID, "someone-else")
        mock_conn.commit.assert_not_awaited()


class TestFindAndList:
    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_find_by_id_missing_raises(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        with pytest.raises(PhotoNotFoundError, match="not found"):
            await PhotoRepository().find_by_id(_PHOTO_ID)

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_referenced_keys_include_thumbnails(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [("gallery/a.webp", "thumbnails/gallery/a.webp")]

        keys = await PhotoRepository().list_referenced_keys()

        assert keys == {"gallery/a.webp", "thumbnails/gallery/a.webp"}


class TestListing:
    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_user_listing_hides_inactive_and_rejected(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [_make_row()]

        records = await PhotoRepository().list_for_user("user-1")

        assert [r.id for r in records] == [_PHOTO_ID]
        sql, params = mock_cursor.execute.call_args.args
        assert "is_active" in sql
        assert "moderation_status <> 'rejected'" in sql
        assert "ORDER BY created_at DESC" in sql
        assert params == ["user-1"]

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_user_listing_applies_filters(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = []

        records = await PhotoRepository().list_for_user(
            "user-1", photo_type="GALLERY", purpose="CAMPAIGN", candidate_id="cand-1"
        )

        assert records == []
        sql, params = mock_cursor.execute.call_args.args
        assert "photo_type = %s" in sql
        assert "purpose = %s" in sql
        assert "candidate_id = %s" in sql
        assert params == ["user-1", "GALLERY", "CAMPAIGN", "cand-1"]

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_candidate_listing_is_approved_campaign_only(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [_make_row()]

        records = await PhotoRepository().list_for_candidate("cand-1")

        assert len(records) == 1
        sql, params = mock_cursor.execute.call_args.args
        assert "purpose IN ('CAMPAIGN', 'BOTH')" in sql
        assert "is_active" in sql
        assert "moderation_status = 'approved'" in sql
        assert params == ("cand-1",)


class TestSetPurpose:
    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_updates_owned_photo_and_commits(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        row = _make_row()
        row.update(purpose="CAMPAIGN", candidate_id="cand-1")
        mock_cursor.fetchone.return_value = row

        record = await PhotoRepository().set_purpose(_PHOTO_ID, "user-1", "CAMPAIGN", "cand-1")

        assert record.purpose == "CAMPAIGN"
        assert record.candidate_id == "cand-1"
        sql, params = mock_cursor.execute.call_args.args
        assert "WHERE id = %s AND user_id = %s AND is_active" in sql
        assert params == ("CAMPAIGN", "cand-1", _PHOTO_ID, "user-1")
        mock_conn.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.photo_repository.get_connection")
    async def test_photo_of_another_user_raises(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        with pytest.raises(PhotoNotFoundError):
            await PhotoRepository().set_purpose(_PHOTO_ID, "someone-else", "PERSONAL", None)
        mock_conn.commit.assert_not_awaited()


class TestOwnershipRepository:
    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.ownership_repository.get_connection")
    async def test_returns_owner(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = ("user-1",)

        assert await OwnershipRepository().get_candidate_owner("cand-1") == "user-1"

    @pytest.mark.asyncio
    @patch("photo_pipeline.database.repositories.ownership_repository.get_connection")
    async def test_returns_none_when_missing(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert await OwnershipRepository().get_candidate_owner("cand-1") is None
