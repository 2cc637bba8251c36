import io

import pytest
from PIL import Image

GPS_IFD = 0x8825


def _encode(image: Image.Image, fmt: str, **kwargs: object) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


def _camera_exif() -> Image.Exif:
    exif = Image.Exif()
    exif[0x010F] = "ExampleCam"  # Make
    exif[0x0110] = "Model X"  # Model
    exif[0x0131] = "FirmwareTool 1.0"  # Software
    exif[GPS_IFD] = {
        1: "N",  # GPSLatitudeRef
        3: "W",  # GPSLongitudeRef
        18: "WGS-84",  # GPSMapDatum
        29: "2024:05:01",  # GPSDateStamp
    }
    return exif


@pytest.fixture()
def jpeg_with_exif_bytes() -> bytes:
    """A 1600x1200 JPEG carrying camera EXIF tags and a GPS IFD."""
    image = Image.new("RGB", (1600, 1200), (200, 40, 40))
    return _encode(image, "JPEG", exif=_camera_exif(), quality=90)


@pytest.fixture()
def rotated_jpeg_bytes() -> bytes:
    """A 600x300 JPEG whose EXIF orientation says rotate 90 degrees."""
    image = Image.new("RGB", (600, 300), (10, 120, 200))
    exif = Image.Exif()
    exif[0x0112] = 6  # Orientation: rotate 90 CW
    return _encode(image, "JPEG", exif=exif.tobytes())


@pytest.fixture()
def png_bytes() -> bytes:
    image = Image.new("RGBA", (500, 500), (0, 200, 0, 128))
    return _encode(image, "PNG")


@pytest.fixture()
def small_png_bytes() -> bytes:
    image = Image.new("RGB", (120, 80), (40, 40, 40))
    return _encode(image, "PNG")


@pytest.fixture()
def tiny_dimension_png_bytes() -> bytes:
    image = Image.new("RGB", (5, 5), (255, 255, 255))
    return _encode(image, "PNG")


@pytest.fixture()
def webp_bytes() -> bytes:
    image = Image.new("RGB", (300, 200), (90, 90, 180))
    return _encode(image, "WEBP", quality=80)


@pytest.fixture()
def animated_gif_bytes() -> bytes:
    """A three-frame 800x600 animated GIF."""
    frames = [Image.new("RGB", (800, 600), color) for color in ("red", "green", "blue")]
    return _encode(
        frames[0],
        "GIF",
        save_all=True,
        append_images=frames[1:],
        duration=[100, 120, 140],
        loop=0,
    )


@pytest.fixture()
def commented_animated_gif_bytes() -> bytes:
    """A two-frame 900x600 GIF with a comment extension naming the camera and place."""
    frames = [Image.new("RGB", (900, 600), color) for color in ("orange", "purple")]
    return _encode(
        frames[0],
        "GIF",
        save_all=True,
        append_images=frames[1:],
        duration=100,
        loop=0,
        comment=b"Taken with SecretCam at 51.5N",
    )


@pytest.fixture()
def static_gif_bytes() -> bytes:
    image = Image.new("RGB", (200, 150), (30, 160, 90))
    return _encode(image, "GIF")


@pytest.fixture()
def animated_webp_bytes() -> bytes:
    """A two-frame 320x240 animated WEBP carrying EXIF camera tags."""
    frames = [Image.new("RGB", (320, 240), color) for color in ("yellow", "teal")]
    exif = Image.Exif()
    exif[0x010F] = "ExampleCam"  # Make
    return _encode(
        frames[0],
        "WEBP",
        save_all=True,
        append_images=frames[1:],
        duration=100,
        loop=0,
        exif=exif.tobytes(),
    )


@pytest.fixture()
def corrupt_jpeg_bytes() -> bytes:
    """Valid JPEG signature followed by garbage."""
    return b"\xff\xd8\xff\xe0" + b"\x00garbage" * 64
