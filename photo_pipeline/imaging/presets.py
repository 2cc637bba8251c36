from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType


class PhotoType(StrEnum):
    AVATAR = "AVATAR"
    COVER = "COVER"
    CAMPAIGN = "CAMPAIGN"
    VERIFICATION = "VERIFICATION"
    EVENT = "EVENT"
    GALLERY = "GALLERY"
    POST_MEDIA = "POST_MEDIA"


class PhotoPurpose(StrEnum):
    PERSONAL = "PERSONAL"
    CAMPAIGN = "CAMPAIGN"
    BOTH = "BOTH"


class ImageFormat(StrEnum):
    JPEG = "JPEG"
    PNG = "PNG"
    GIF = "GIF"
    WEBP = "WEBP"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value.lower()}"

    @property
    def extension(self) -> str:
        return "jpg" if self is ImageFormat.JPEG else self.value.lower()

    @classmethod
    def from_mime_type(cls, mime_type: str) -> "ImageFormat | None":
        """Resolve a declared MIME type, tolerating case and the image/jpg alias."""
        normalized = mime_type.strip().lower().split(";")[0]
        if normalized == "image/jpg":
            normalized = "image/jpeg"
        for fmt in cls:
            if fmt.mime_type == normalized:
                return fmt
        return None


@dataclass(frozen=True)
class SizePreset:
    """Output bounds and storage folder for one photo type."""

    max_width: int
    max_height: int
    thumb_width: int
    thumb_height: int
    folder: str


SIZE_PRESETS: MappingProxyType[PhotoType, SizePreset] = MappingProxyType(
    {
        PhotoType.AVATAR: SizePreset(400, 400, 150, 150, "avatars"),
        PhotoType.COVER: SizePreset(1200, 400, 400, 133, "covers"),
        PhotoType.CAMPAIGN: SizePreset(800, 1000, 200, 250, "campaign"),
        PhotoType.VERIFICATION: SizePreset(1024, 1024, 256, 256, "verification"),
        PhotoType.EVENT: SizePreset(1200, 800, 300, 200, "events"),
        PhotoType.GALLERY: SizePreset(1024, 1024, 256, 256, "gallery"),
        PhotoType.POST_MEDIA: SizePreset(800, 800, 200, 200, "posts"),
    }
)

if set(SIZE_PRESETS) != set(PhotoType):
    raise RuntimeError("Every PhotoType must have a SizePreset")


def preset_for(photo_type: PhotoType) -> SizePreset:
    return SIZE_PRESETS[photo_type]


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Scale (width, height) to fit the bounds, keeping aspect ratio. Never upscales."""
    scale = min(max_width / width, max_height / height, 1.0)
    return max(1, round(width * scale)), max(1, round(height * scale))
