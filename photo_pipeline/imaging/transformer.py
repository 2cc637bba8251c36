"""Pillow-based decode, orientation fix, resize and re-encode.

Re-encoding is what removes EXIF/GPS/camera metadata: nothing from the
source ``info`` dict is handed to the encoder. Animated frames are copied
onto fresh canvases for the same reason.
"""

from io import BytesIO

from PIL import Image, ImageOps, ImageSequence, UnidentifiedImageError

from photo_pipeline.imaging.models import TransformedImage
from photo_pipeline.imaging.presets import ImageFormat, SizePreset, fit_within
from photo_pipeline.pipeline.exceptions import DecodeFailureError, InvalidDimensionsError

_CONVERTIBLE_MODES = frozenset(
    {"1", "L", "LA", "La", "P", "PA", "RGB", "RGBA", "RGBa", "RGBX", "CMYK", "YCbCr"}
)
_ANIMATED_FORMATS = frozenset({"GIF", "WEBP"})
_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
    EOFError,
)


class ImageTransformer:
    """Produces the stored image and its thumbnail from the original upload bytes."""

    def __init__(
        self,
        *,
        output_quality: int = 85,
        thumbnail_quality: int = 75,
        min_dimension: int = 10,
        max_dimension: int = 8000,
    ) -> None:
        self._output_quality = output_quality
        self._thumbnail_quality = thumbnail_quality
        self._min_dimension = min_dimension
        self._max_dimension = max_dimension

    def transform(self, data: bytes, preset: SizePreset) -> TransformedImage:
        """Resize to fit the preset and re-encode.

        Animated GIF/WEBP keep their container and animation, static images
        become WEBP.

        Raises:
            DecodeFailureError: corrupt data or an unsupported colour mode.
            InvalidDimensionsError: decoded size outside the allowed range.
        """
        image = self._open(data)
        try:
            if self._is_animated(image):
                return self._transform_animated(image, preset)
            return self._transform_static(image, preset)
        except (OSError, ValueError) as exc:
            raise DecodeFailureError(f"Failed to re-encode image: {exc}") from exc
        finally:
            image.close()

    def thumbnail(self, data: bytes, preset: SizePreset) -> TransformedImage:
        """Center-crop a static WEBP preview from the original bytes."""
        image = self._open(data)
        try:
            oriented = ImageOps.exif_transpose(image)
            self._check_dimensions(oriented)
            oriented = self._convert_mode(oriented)
            thumb = ImageOps.fit(
                oriented,
                (preset.thumb_width, preset.thumb_height),
                method=Image.Resampling.LANCZOS,
                centering=(0.5, 0.5),
            )
            payload = self._encode_webp(thumb, self._thumbnail_quality)
        except (OSError, ValueError) as exc:
            raise DecodeFailureError(f"Failed to build thumbnail: {exc}") from exc
        finally:
            image.close()
        return TransformedImage(
            data=payload,
            width=thumb.width,
            height=thumb.height,
            format=ImageFormat.WEBP,
        )

    def _open(self, data: bytes) -> Image.Image:
        # verify() leaves the image unusable, so decode twice
        try:
            verifier = Image.open(BytesIO(data))
            verifier.verify()
            image = Image.open(BytesIO(data))
            image.load()
        except _DECODE_ERRORS as exc:
            raise DecodeFailureError(f"Could not decode image: {exc}") from exc
        return image

    @staticmethod
    def _is_animated(image: Image.Image) -> bool:
        return image.format in _ANIMATED_FORMATS and getattr(image, "n_frames", 1) > 1

    def _check_dimensions(self, image: Image.Image) -> None:
        width, height = image.size
        low, high = self._min_dimension, self._max_dimension
        if not (low <= width <= high and low <= height <= high):
            raise InvalidDimensionsError(
                f"Image is {width}x{height}px; each side must be between {low} and {high}px"
            )

    @staticmethod
    def _convert_mode(image: Image.Image) -> Image.Image:
        if image.mode not in _CONVERTIBLE_MODES:
            raise DecodeFailureError(f"Unsupported color mode: {image.mode}")
        has_alpha = image.mode in ("RGBA", "LA", "La", "PA", "RGBa") or (
            image.mode == "P" and "transparency" in image.info
        )
        target = "RGBA" if has_alpha else "RGB"
        if image.mode == target:
            return image
        return image.convert(target)

    def _transform_static(self, image: Image.Image, preset: SizePreset) -> TransformedImage:
        oriented = ImageOps.exif_transpose(image)
        self._check_dimensions(oriented)
        converted = self._convert_mode(oriented)
        size = fit_within(converted.width, converted.height, preset.max_width, preset.max_height)
        if size != converted.size:
            converted = converted.resize(size, Image.Resampling.LANCZOS)
        payload = self._encode_webp(converted, self._output_quality)
        return TransformedImage(
            data=payload,
            width=converted.width,
            height=converted.height,
            format=ImageFormat.WEBP,
        )

    def _transform_animated(self, image: Image.Image, preset: SizePreset) -> TransformedImage:
        self._check_dimensions(image)
        source_format = ImageFormat(image.format)
        size = fit_within(image.width, image.height, preset.max_width, preset.max_height)
        frames: list[Image.Image] = []
        durations: list[int] = []
        for frame in ImageSequence.Iterator(image):
            durations.append(int(frame.info.get("duration", 100)))
            resized = frame.convert("RGBA")
            if size != resized.size:
                resized = resized.resize(size, Image.Resampling.LANCZOS)
            # convert() and resize() carry frame.info (comment, xmp, icc) to the encoder
            clean = Image.new("RGBA", size)
            clean.paste(resized)
            frames.append(clean)

        out = BytesIO()
        save_kwargs: dict[str, object] = {
            "format": source_format.value,
            "save_all": True,
            "append_images": frames[1:],
            "duration": durations,
            "loop": int(image.info.get("loop", 0)),
        }
        if source_format is ImageFormat.GIF:
            save_kwargs["disposal"] = 2
        else:
            save_kwargs["quality"] = self._output_quality
            save_kwargs["exif"] = b""
        frames[0].save(out, **save_kwargs)
        return TransformedImage(
            data=out.getvalue(),
            width=size[0],
            height=size[1],
            format=source_format,
            animated=True,
        )

    @staticmethod
    def _encode_webp(image: Image.Image, quality: int) -> bytes:
        out = BytesIO()
        image.save(out, format="WEBP", quality=quality, method=4, exif=b"")
        return out.getvalue()
