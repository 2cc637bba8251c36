from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class StoredObject:
    """One entry from a storage listing."""

    key: str
    size: int
    updated_at: datetime


@dataclass(frozen=True)
class UploadUrl:
    """A short-lived, write-only credential for one destination key."""

    url: str
    method: str
    expires_at: datetime
    headers: dict[str, str] = field(default_factory=dict)
