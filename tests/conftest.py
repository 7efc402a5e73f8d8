"""
Pytest configuration and fixtures for rasterkit tests

Every sample image is synthesized in memory so the suite needs no binary
fixtures.
"""

import io

import cv2
import numpy as np
import pytest
from PIL import Image

from rasterkit.config import Settings
from rasterkit.core.context import ImageContext

JPEG_TOP_LEFT = (0, 81, 216)
LOGO_OFFSET = 50
LOGO_SIZE = 640


def encode_pil(image: Image.Image, fmt: str, **kwargs) -> bytes:
    """Encode a PIL image to bytes"""
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **kwargs)
    return buffer.getvalue()


@pytest.fixture
def context():
    """Private context with caching disabled, as a fresh process would run"""
    return ImageContext(
        Settings(leak_tracking=False, max_cache_items=0, max_cache_memory_bytes=0)
    )


@pytest.fixture
def cached_context():
    """Private context with a small encode cache"""
    return ImageContext(
        Settings(leak_tracking=False, max_cache_items=4, max_cache_memory_bytes=50_000_000)
    )


@pytest.fixture(scope="session")
def jpeg_bytes():
    """1920x1080 sRGB JPEG with a flat (0, 81, 216) top-left block"""
    x = np.linspace(0, 255, 1920, dtype=np.float64)
    y = np.linspace(0, 255, 1080, dtype=np.float64)
    image = np.zeros((1080, 1920, 3), dtype=np.uint8)
    image[:, :, 0] = x[np.newaxis, :].astype(np.uint8)
    image[:, :, 1] = y[:, np.newaxis].astype(np.uint8)
    image[:, :, 2] = 128
    image[:16, :16] = JPEG_TOP_LEFT
    return encode_pil(Image.fromarray(image), "JPEG", quality=95, subsampling=0)


@pytest.fixture(scope="session")
def transparent_png_bytes():
    """RGBA PNG whose left half is fully transparent black"""
    image = np.zeros((48, 64, 4), dtype=np.uint8)
    image[:, 32:] = (200, 30, 30, 255)
    return encode_pil(Image.fromarray(image, "RGBA"), "PNG")


@pytest.fixture(scope="session")
def webp_bytes():
    """Lossy RGBA WebP logo"""
    image = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    image.paste((30, 160, 60, 255), (16, 16, 48, 48))
    return encode_pil(image, "WEBP", quality=90)


@pytest.fixture(scope="session")
def animated_gif_bytes():
    """Five-frame animated GIF"""
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0), (0, 255, 255)]
    frames = [Image.new("RGB", (32, 32), color) for color in colors]
    return encode_pil(
        frames[0], "GIF", save_all=True, append_images=frames[1:], duration=100, loop=0
    )


@pytest.fixture(scope="session")
def static_gif_bytes():
    """Single-frame GIF"""
    image = Image.new("RGB", (24, 24), (10, 120, 200))
    return encode_pil(image, "GIF")


@pytest.fixture(scope="session")
def cmyk_jpeg_bytes():
    image = Image.new("CMYK", (32, 32), (0, 128, 128, 0))
    return encode_pil(image, "JPEG", quality=95)


@pytest.fixture(scope="session")
def grey_jpeg_bytes():
    """Monochrome white JPEG"""
    return encode_pil(Image.new("L", (16, 16), 255), "JPEG", quality=95)


@pytest.fixture(scope="session")
def grey_alpha_png_bytes():
    """Grey + alpha PNG: transparent white border, opaque grey 82 centre"""
    image = np.zeros((40, 40, 2), dtype=np.uint8)
    image[:, :] = (255, 0)
    image[10:30, 10:30] = (82, 255)
    return encode_pil(Image.fromarray(image, "LA"), "PNG")


@pytest.fixture(scope="session")
def deep_png_bytes():
    """48-bit (16 bits per channel) white PNG"""
    ok, buffer = cv2.imencode(".png", np.full((8, 8, 3), 65535, dtype=np.uint16))
    assert ok
    return buffer.tobytes()


@pytest.fixture(scope="session")
def grey16_png_bytes():
    """16-bit greyscale PNG"""
    data = np.full((8, 8), 65535, dtype="<u2")
    return encode_pil(Image.frombytes("I;16", (8, 8), data.tobytes()), "PNG")


@pytest.fixture(scope="session")
def color_key_png_bytes():
    """RGB PNG whose tRNS chunk makes (1, 2, 3) transparent; left half keyed"""
    image = np.full((12, 16, 3), (90, 120, 150), dtype=np.uint8)
    image[:, :8] = (1, 2, 3)
    return encode_pil(Image.fromarray(image), "PNG", transparency=(1, 2, 3))


@pytest.fixture(scope="session")
def grey_key_png_bytes():
    """Greyscale PNG whose tRNS chunk makes level 7 transparent; top half keyed"""
    image = np.full((12, 16), 200, dtype=np.uint8)
    image[:6] = 7
    return encode_pil(Image.fromarray(image), "PNG", transparency=7)


@pytest.fixture(scope="session")
def logo_jpeg_bytes():
    """640x640 dark logo padded by 50px of white on all sides"""
    size = LOGO_SIZE + 2 * LOGO_OFFSET
    image = np.full((size, size, 3), 255, dtype=np.uint8)
    image[LOGO_OFFSET : LOGO_OFFSET + LOGO_SIZE, LOGO_OFFSET : LOGO_OFFSET + LOGO_SIZE] = (
        20,
        40,
        160,
    )
    return encode_pil(Image.fromarray(image), "JPEG", quality=95, subsampling=0)


@pytest.fixture(scope="session")
def logo_png_bytes():
    """640x640 noisy opaque logo padded by 50px of transparency on all sides"""
    rng = np.random.default_rng(42)
    size = LOGO_SIZE + 2 * LOGO_OFFSET
    image = np.zeros((size, size, 4), dtype=np.uint8)
    logo = rng.integers(0, 181, size=(LOGO_SIZE, LOGO_SIZE, 3), dtype=np.uint8)
    region = image[LOGO_OFFSET : LOGO_OFFSET + LOGO_SIZE, LOGO_OFFSET : LOGO_OFFSET + LOGO_SIZE]
    region[:, :, :3] = logo
    region[:, :, 3] = 255
    return encode_pil(Image.fromarray(image, "RGBA"), "PNG")


@pytest.fixture(scope="session")
def white_png_bytes():
    return encode_pil(Image.new("RGB", (20, 10), (255, 255, 255)), "PNG")


@pytest.fixture(scope="session")
def corrupted_png_bytes():
    """PNG with a valid header whose image data is truncated"""
    rng = np.random.default_rng(7)
    noise = rng.integers(0, 256, size=(256, 256, 3), dtype=np.uint8)
    data = encode_pil(Image.fromarray(noise), "PNG")
    return data[: int(len(data) * 0.6)]


# Sources every format-independent property is checked against
SOURCE_FIXTURES = [
    "jpeg_bytes",
    "transparent_png_bytes",
    "webp_bytes",
    "animated_gif_bytes",
    "static_gif_bytes",
]


@pytest.fixture(params=SOURCE_FIXTURES)
def source_bytes(request):
    """Each supported source format in turn"""
    return request.getfixturevalue(request.param)
