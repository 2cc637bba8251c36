import re

from fastapi import Header, HTTPException, Request, status

from photo_pipeline.config.settings import Settings
from photo_pipeline.uploads.service import UploadService

_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service


def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """Acting identity, set by the authentication layer in front of this service."""
    if x_user_id is None or not _USER_ID_PATTERN.match(x_user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid X-User-Id header",
        )
    return x_user_id
