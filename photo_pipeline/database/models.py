from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class NewPhoto:
    """Column values for a photos row about to be inserted."""

    user_id: str
    url: str
    thumbnail_url: str
    storage_key: str
    thumbnail_key: str
    photo_type: str
    purpose: str
    original_size: int
    compressed_size: int
    width: int
    height: int
    mime_type: str
    moderation_status: str
    candidate_id: str | None = None
    caption: str | None = None


@dataclass(frozen=True)
class PhotoRecord:
    """Represents a row from the photos table."""

    id: str
    user_id: str
    url: str
    thumbnail_url: str
    storage_key: str
    thumbnail_key: str
    photo_type: str
    purpose: str
    original_size: int
    compressed_size: int
    width: int
    height: int
    mime_type: str
    moderation_status: str
    candidate_id: str | None = None
    caption: str | None = None
    post_id: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PostPhotoLink:
    """Represents a row from the post_photos table."""

    post_id: str
    photo_id: str
    display_order: int


@dataclass(frozen=True)
class StorageUsage:
    """Active stored bytes for one user against their quota."""

    user_id: str
    used_bytes: int
    photo_count: int
    quota_bytes: int

    @property
    def remaining_bytes(self) -> int:
        return max(0, self.quota_bytes - self.used_bytes)
