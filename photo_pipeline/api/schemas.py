from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from photo_pipeline.database.models import PhotoRecord, StorageUsage
from photo_pipeline.imaging.presets import PhotoPurpose, PhotoType
from photo_pipeline.uploads.service import PresignedUpload


class PhotoResponse(BaseModel):
    id: str
    url: str
    thumbnail_url: str
    width: int
    height: int
    mime_type: str
    compressed_size: int
    moderation_status: str
    photo_type: str
    purpose: str
    candidate_id: str | None = None
    post_id: str | None = None

    @classmethod
    def from_record(cls, record: PhotoRecord) -> "PhotoResponse":
        return cls(
            id=record.id,
            url=record.url,
            thumbnail_url=record.thumbnail_url,
            width=record.width,
            height=record.height,
            mime_type=record.mime_type,
            compressed_size=record.compressed_size,
            moderation_status=record.moderation_status,
            photo_type=record.photo_type,
            purpose=record.purpose,
            candidate_id=record.candidate_id,
            post_id=record.post_id,
        )


class PresignRequest(BaseModel):
    photo_type: PhotoType
    content_type: str


class PresignResponse(BaseModel):
    storage_key: str
    upload_url: str
    method: str
    headers: dict[str, str]
    expires_at: datetime

    @classmethod
    def from_upload(cls, upload: PresignedUpload) -> "PresignResponse":
        return cls(
            storage_key=upload.storage_key,
            upload_url=upload.upload_url,
            method=upload.method,
            headers=upload.headers,
            expires_at=upload.expires_at,
        )


class ConfirmRequest(BaseModel):
    storage_key: str
    content_type: str
    photo_type: PhotoType
    purpose: PhotoPurpose = PhotoPurpose.PERSONAL
    caption: str | None = None
    candidate_id: UUID | None = None
    post_id: UUID | None = None


class AttachRequest(BaseModel):
    post_id: UUID


class PurposeRequest(BaseModel):
    purpose: PhotoPurpose
    candidate_id: UUID | None = None


class StorageUsageResponse(BaseModel):
    used_bytes: int
    quota_bytes: int
    remaining_bytes: int
    photo_count: int

    @classmethod
    def from_usage(cls, usage: StorageUsage) -> "StorageUsageResponse":
        return cls(
            used_bytes=usage.used_bytes,
            quota_bytes=usage.quota_bytes,
            remaining_bytes=usage.remaining_bytes,
            photo_count=usage.photo_count,
        )


class ErrorBody(BaseModel):
    kind: str
    message: str
    subkind: str | None = None
    stage: str | None = None


class ErrorEnvelope(BaseModel):
    error: ErrorBody
