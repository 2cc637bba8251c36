from http import HTTPStatus

from fastapi import Request
from fastapi.responses import JSONResponse

from photo_pipeline.api.schemas import ErrorBody, ErrorEnvelope
from photo_pipeline.logging.logger import Log
from photo_pipeline.pipeline.exceptions import PipelineError
from photo_pipeline.pipeline.models import StageError
from photo_pipeline.storage.exceptions import StorageError

ERROR_STATUS: dict[str, HTTPStatus] = {
    "InvalidFileSignature": HTTPStatus.UNSUPPORTED_MEDIA_TYPE,
    "TypeMismatch": HTTPStatus.UNSUPPORTED_MEDIA_TYPE,
    "FileTooLarge": HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
    "FileTooSmall": HTTPStatus.BAD_REQUEST,
    "QuotaExceeded": HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
    "PermissionDenied": HTTPStatus.FORBIDDEN,
    "DecodeFailure": HTTPStatus.UNPROCESSABLE_ENTITY,
    "InvalidDimensions": HTTPStatus.UNPROCESSABLE_ENTITY,
    "ModerationRejected": HTTPStatus.UNPROCESSABLE_ENTITY,
    "ModerationServiceUnavailable": HTTPStatus.SERVICE_UNAVAILABLE,
    "StorageWriteFailure": HTTPStatus.BAD_GATEWAY,
    "StorageUnavailable": HTTPStatus.BAD_GATEWAY,
    "PersistenceConflict": HTTPStatus.CONFLICT,
    "PhotoNotFound": HTTPStatus.NOT_FOUND,
    "UploadNotFound": HTTPStatus.NOT_FOUND,
}

# nginx "client closed request"
CLIENT_CLOSED_REQUEST = 499


def status_for(kind: str) -> int:
    if kind == "Cancelled":
        return CLIENT_CLOSED_REQUEST
    return ERROR_STATUS.get(kind, HTTPStatus.INTERNAL_SERVER_ERROR).value


class UploadFailedError(Exception):
    """Raised by routes when a pipeline run ended without a photo."""

    def __init__(self, error: StageError) -> None:
        super().__init__(error.message)
        self.error = error


def _response(kind: str, message: str, subkind: str | None, stage: str | None) -> JSONResponse:
    if status_for(kind) == HTTPStatus.INTERNAL_SERVER_ERROR:
        message = "Internal error while processing upload"
    payload = ErrorEnvelope(
        error=ErrorBody(kind=kind, message=message, subkind=subkind, stage=stage)
    )
    return JSONResponse(status_code=status_for(kind), content=payload.model_dump())


async def pipeline_error_handler(_: Request, exc: PipelineError) -> JSONResponse:
    return _response(exc.kind, exc.message, exc.subkind, None)


async def upload_failed_handler(_: Request, exc: UploadFailedError) -> JSONResponse:
    error = exc.error
    return _response(error.kind, error.message, error.subkind, error.stage)


async def storage_error_handler(_: Request, exc: StorageError) -> JSONResponse:
    Log.error(f"Storage backend error: {exc}")
    return _response("StorageUnavailable", "Object storage is unavailable", None, None)
