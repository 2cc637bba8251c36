from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, Response, UploadFile, status

from photo_pipeline.api.dependencies import get_current_user_id, get_settings, get_upload_service
from photo_pipeline.api.errors import UploadFailedError
from photo_pipeline.api.schemas import (
    AttachRequest,
    ConfirmRequest,
    PhotoResponse,
    PresignRequest,
    PresignResponse,
    PurposeRequest,
    StorageUsageResponse,
)
from photo_pipeline.config.settings import Settings
from photo_pipeline.imaging.presets import PhotoPurpose, PhotoType
from photo_pipeline.pipeline.models import PipelineResult, StageError, UploadRequest
from photo_pipeline.storage.local_adapter import LocalStorageAdapter
from photo_pipeline.uploads.service import UploadService

router = APIRouter()


def _photo_or_raise(result: PipelineResult) -> PhotoResponse:
    if result.success and result.record is not None:
        return PhotoResponse.from_record(result.record)
    error = result.first_fatal_error() or StageError(
        stage="executor", kind="InternalError", message="Upload failed", fatal=True
    )
    raise UploadFailedError(error)


@router.post("/photos", status_code=status.HTTP_201_CREATED, response_model=PhotoResponse)
async def upload_photo(
    request: Request,
    file: UploadFile = File(...),
    photo_type: PhotoType = Form(...),
    purpose: PhotoPurpose = Form(PhotoPurpose.PERSONAL),
    caption: str | None = Form(None),
    candidate_id: UUID | None = Form(None),
    post_id: UUID | None = Form(None),
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
) -> PhotoResponse:
    data = await file.read()
    upload = UploadRequest.build(
        data=data,
        declared_mime_type=file.content_type or "application/octet-stream",
        filename=file.filename or "upload",
        user_id=user_id,
        photo_type=photo_type,
        purpose=purpose,
        caption=caption,
        candidate_id=str(candidate_id) if candidate_id else None,
        post_id=str(post_id) if post_id else None,
    )
    result = await service.process_upload(upload, cancel_check=request.is_disconnected)
    return _photo_or_raise(result)


@router.post("/uploads/presign", response_model=PresignResponse)
async def presign_upload(
    body: PresignRequest,
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
) -> PresignResponse:
    upload = service.create_presigned_upload(user_id, body.photo_type, body.content_type)
    return PresignResponse.from_upload(upload)


@router.post("/uploads/confirm", status_code=status.HTTP_201_CREATED, response_model=PhotoResponse)
async def confirm_upload(
    request: Request,
    body: ConfirmRequest,
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
) -> PhotoResponse:
    result = await service.confirm_presigned_upload(
        user_id=user_id,
        storage_key=body.storage_key,
        declared_mime_type=body.content_type,
        photo_type=body.photo_type,
        purpose=body.purpose,
        caption=body.caption,
        candidate_id=str(body.candidate_id) if body.candidate_id else None,
        post_id=str(body.post_id) if body.post_id else None,
        cancel_check=request.is_disconnected,
    )
    return _photo_or_raise(result)


@router.put("/uploads/local/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
async def local_presigned_put(
    key: str,
    request: Request,
    expires: int = Query(...),
    signature: str = Query(...),
    settings: Settings = Depends(get_settings),
    service: UploadService = Depends(get_upload_service),
) -> Response:
    """Stand-in for the storage provider's signed PUT endpoint in development."""
    storage = service.storage
    if not isinstance(storage, LocalStorageAdapter):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    if not storage.verify_upload_signature(key, expires, signature):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired signature")
    body = await request.body()
    if len(body) > settings.max_static_file_bytes:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Upload too large")
    content_type = request.headers.get("content-type", "application/octet-stream")
    await storage.put_object(key, body, content_type)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/photos/storage", response_model=StorageUsageResponse)
async def storage_usage(
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
) -> StorageUsageResponse:
    usage = await service.get_storage_usage(user_id)
    return StorageUsageResponse.from_usage(usage)


@router.get("/photos/my", response_model=list[PhotoResponse])
async def my_photos(
    photo_type: PhotoType | None = Query(None),
    purpose: PhotoPurpose | None = Query(None),
    candidate_id: UUID | None = Query(None),
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
) -> list[PhotoResponse]:
    records = await service.list_user_photos(
        user_id,
        photo_type=photo_type,
        purpose=purpose,
        candidate_id=str(candidate_id) if candidate_id else None,
    )
    return [PhotoResponse.from_record(record) for record in records]


@router.get("/photos/candidate/{candidate_id}", response_model=list[PhotoResponse])
async def candidate_photos(
    candidate_id: UUID,
    service: UploadService = Depends(get_upload_service),
) -> list[PhotoResponse]:
    records = await service.list_candidate_photos(str(candidate_id))
    return [PhotoResponse.from_record(record) for record in records]


@router.put("/photos/{photo_id}/purpose", response_model=PhotoResponse)
async def set_photo_purpose(
    photo_id: UUID,
    body: PurposeRequest,
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
) -> PhotoResponse:
    record = await service.set_photo_purpose(
        str(photo_id),
        user_id,
        body.purpose,
        str(body.candidate_id) if body.candidate_id else None,
    )
    return PhotoResponse.from_record(record)


@router.post("/photos/{photo_id}/attach", response_model=PhotoResponse)
async def attach_photo(
    photo_id: UUID,
    body: AttachRequest,
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
) -> PhotoResponse:
    record = await service.attach_to_post(str(photo_id), user_id, str(body.post_id))
    return PhotoResponse.from_record(record)


@router.delete("/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo(
    photo_id: UUID,
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
) -> Response:
    await service.delete_photo(str(photo_id), user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
