"""Leading-byte format detection. Declared MIME types are never trusted."""

from photo_pipeline.imaging.presets import ImageFormat

_JPEG_MAGIC = b"\xff\xd8\xff"
_PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
_GIF_MAGICS = (b"GIF87a", b"GIF89a")

_GIF_HEADER_LEN = 13
_GIF_IMAGE_DESCRIPTOR = 0x2C
_GIF_EXTENSION = 0x21
_WEBP_VP8X_ANIMATION = 0x02


def detect_format(data: bytes) -> ImageFormat | None:
    """Return the format whose signature matches the leading bytes, or None."""
    if data.startswith(_JPEG_MAGIC):
        return ImageFormat.JPEG
    if data.startswith(_PNG_MAGIC):
        return ImageFormat.PNG
    if data.startswith(_GIF_MAGICS):
        return ImageFormat.GIF
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP
    return None


def is_animated(data: bytes, fmt: ImageFormat) -> bool:
    """Tell animated GIF/WEBP apart from static ones by walking the container headers.

    Nothing is decoded, so this is safe to call before any size limit applies.
    """
    if fmt is ImageFormat.GIF:
        return _gif_frame_count(data, limit=2) > 1
    if fmt is ImageFormat.WEBP:
        return _webp_has_animation(data)
    return False


def _webp_has_animation(data: bytes) -> bool:
    # RIFF(4) size(4) WEBP(4) VP8X(4) chunk size(4) flags(1)
    if len(data) < 21 or data[12:16] != b"VP8X":
        return False
    return bool(data[20] & _WEBP_VP8X_ANIMATION)


def _gif_frame_count(data: bytes, limit: int) -> int:
    if len(data) < _GIF_HEADER_LEN:
        return 0
    pos = _GIF_HEADER_LEN
    flags = data[10]
    if flags & 0x80:
        pos += 3 * (2 << (flags & 0x07))

    frames = 0
    while pos < len(data) and frames < limit:
        block = data[pos]
        if block == _GIF_IMAGE_DESCRIPTOR:
            frames += 1
            if pos + 10 > len(data):
                break
            local_flags = data[pos + 9]
            pos += 10
            if local_flags & 0x80:
                pos += 3 * (2 << (local_flags & 0x07))
            # LZW minimum code size, then the image data sub-blocks
            pos = _skip_sub_blocks(data, pos + 1)
        elif block == _GIF_EXTENSION:
            pos = _skip_sub_blocks(data, pos + 2)
        else:
            # trailer or garbage
            break
    return frames


def _skip_sub_blocks(data: bytes, pos: int) -> int:
    while pos < len(data):
        size = data[pos]
        pos += 1
        if size == 0:
            return pos
        pos += size
    return pos
