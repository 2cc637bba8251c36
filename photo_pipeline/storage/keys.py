import uuid

from photo_pipeline.imaging.presets import PhotoType, preset_for

THUMBNAIL_ROOT = "thumbnails"


def build_object_key(photo_type: PhotoType, extension: str) -> str:
    """Fresh collision-resistant key for a full-size image, foldered by category."""
    return f"{preset_for(photo_type).folder}/{uuid.uuid4()}.{extension}"


def build_thumbnail_key(photo_type: PhotoType) -> str:
    return f"{THUMBNAIL_ROOT}/{preset_for(photo_type).folder}/{uuid.uuid4()}.webp"


def build_staging_key(staging_prefix: str, user_id: str, extension: str) -> str:
    return f"{staging_prefix}/{user_id}/{uuid.uuid4()}.{extension}"


def staging_prefix_for(staging_prefix: str, user_id: str) -> str:
    return f"{staging_prefix}/{user_id}/"


def managed_prefixes() -> list[str]:
    """Every prefix that holds pipeline-written objects."""
    folders = sorted({preset_for(t).folder for t in PhotoType})
    return [f"{f}/" for f in folders] + [f"{THUMBNAIL_ROOT}/{f}/" for f in folders]
