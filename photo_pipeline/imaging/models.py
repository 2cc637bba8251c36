from dataclasses import dataclass

from photo_pipeline.imaging.presets import ImageFormat


@dataclass(frozen=True)
class TransformedImage:
    """Re-encoded image bytes with their final pixel size."""

    data: bytes
    width: int
    height: int
    format: ImageFormat
    animated: bool = False

    @property
    def mime_type(self) -> str:
        return self.format.mime_type
