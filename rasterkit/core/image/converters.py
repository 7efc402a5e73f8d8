"""
Sample layout conversion utilities.

Handles conversions between the stored sample layouts and the normalized
RGBA representation:
- Stored samples (1-4 bands, uint8 or uint16, sRGB/CMYK/grey)
- Normalized RGBA floats in [0, 255]
- PIL Images (decoder/encoder side)
- OpenCV BGR channel order
"""

import logging
from typing import NamedTuple, Optional

import cv2
import numpy as np
from PIL import Image

from rasterkit.core.constants import ImageConstants
from rasterkit.core.enums import Interpretation
from rasterkit.schemas import PixelPacket

logger = logging.getLogger(__name__)

# ITU-R 601-2 luma transform, as used by Pillow for RGB -> L
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

GREY_INTERPRETATIONS = (Interpretation.B_W, Interpretation.GREY16)


class ModeLayout(NamedTuple):
    """How a Pillow mode is stored once decoded."""

    target_mode: str
    bands: int
    bits_per_sample: int
    interpretation: Interpretation
    has_alpha: bool


_SRGB = ModeLayout("RGB", 3, 8, Interpretation.SRGB, False)
_SRGBA = ModeLayout("RGBA", 4, 8, Interpretation.SRGB, True)
_GREY = ModeLayout("L", 1, 8, Interpretation.B_W, False)
_GREY_ALPHA = ModeLayout("LA", 2, 8, Interpretation.B_W, True)
_GREY16 = ModeLayout("I;16", 1, 16, Interpretation.GREY16, False)

MODE_LAYOUTS = {
    "1": _GREY,
    "L": _GREY,
    "LA": _GREY_ALPHA,
    "La": _GREY_ALPHA,
    "PA": _SRGBA,
    "I": _GREY16,
    "I;16": _GREY16,
    "I;16L": _GREY16,
    "I;16B": _GREY16,
    "I;16N": _GREY16,
    "RGB": _SRGB,
    "RGBX": _SRGB,
    "YCbCr": _SRGB,
    "RGBA": _SRGBA,
    "RGBa": _SRGBA,
    "CMYK": ModeLayout("CMYK", 4, 8, Interpretation.CMYK, False),
}

# Modes whose tRNS / GIF transparency key Pillow can promote to alpha
COLOR_KEY_LAYOUTS = {
    "1": _GREY_ALPHA,
    "L": _GREY_ALPHA,
    "I": _GREY_ALPHA,
    "I;16": _GREY_ALPHA,
    "RGB": _SRGBA,
}

# 8-bit Pillow modes by band count, used when rebuilding PIL images
_MODES_BY_BANDS = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}


class ImageConverters:
    """Utilities for converting between sample layouts."""

    @staticmethod
    def sample_scale(dtype: np.dtype) -> float:
        """Factor between stored samples and the normalized [0, 255] range."""
        return ImageConstants.SCALE_16BIT if np.dtype(dtype) == np.uint16 else 1.0

    @staticmethod
    def sample_max(dtype: np.dtype) -> int:
        return ImageConstants.MAX_16BIT if np.dtype(dtype) == np.uint16 else ImageConstants.MAX_8BIT

    @staticmethod
    def layout_for_mode(mode: str, info: Optional[dict] = None) -> ModeLayout:
        """
        Determine the stored layout for a Pillow image mode.

        Args:
            mode: Pillow mode string
            info: Pillow info dict (color key transparency lives there)

        Returns:
            ModeLayout describing bands, depth and colorspace
        """
        keyed = bool(info) and "transparency" in info
        if mode == "P":
            return _SRGBA if keyed else _SRGB
        # A transparent color key becomes a real alpha band on load
        if keyed and mode in COLOR_KEY_LAYOUTS:
            return COLOR_KEY_LAYOUTS[mode]

        layout = MODE_LAYOUTS.get(mode)
        if layout is None:
            logger.debug(f"Unmapped Pillow mode {mode}, converting to sRGB")
            return _SRGBA if "A" in mode else _SRGB
        return layout

    @staticmethod
    def to_rgba(samples: np.ndarray, interpretation: Interpretation, has_alpha: bool) -> np.ndarray:
        """
        Normalize stored samples to RGBA floats in [0, 255].

        Works on a single pixel (shape (bands,)) or a whole image
        (shape (H, W, bands)).

        Args:
            samples: Stored samples
            interpretation: Colorspace of the samples
            has_alpha: Whether the last band is alpha

        Returns:
            Float64 array with 4 channels in the last axis
        """
        data = samples.astype(np.float64)
        scale = ImageConverters.sample_scale(samples.dtype)
        if scale != 1.0:
            data /= scale

        if has_alpha:
            color, alpha = data[..., :-1], data[..., -1]
        else:
            color, alpha = data, np.full(data.shape[:-1], ImageConstants.OPAQUE)

        if interpretation is Interpretation.CMYK:
            k = color[..., 3:4]
            rgb = (255.0 - color[..., :3]) * (255.0 - k) / 255.0
        elif color.shape[-1] == 1:
            rgb = np.repeat(color, 3, axis=-1)
        else:
            rgb = color[..., :3]

        return np.concatenate([rgb, alpha[..., np.newaxis]], axis=-1)

    @staticmethod
    def from_rgba(
        rgba: np.ndarray, interpretation: Interpretation, has_alpha: bool, dtype: np.dtype
    ) -> np.ndarray:
        """
        Convert normalized RGBA floats back into a stored sample layout.

        Args:
            rgba: Float array with 4 channels in the last axis
            interpretation: Target colorspace
            has_alpha: Whether to keep an alpha band
            dtype: Target sample type (uint8 or uint16)

        Returns:
            Samples in the target layout
        """
        rgb, alpha = rgba[..., :3], rgba[..., 3:4]

        if interpretation is Interpretation.CMYK:
            color = np.concatenate([255.0 - rgb, np.zeros_like(alpha)], axis=-1)
        elif interpretation in GREY_INTERPRETATIONS:
            color = np.dot(rgb, LUMA_WEIGHTS)[..., np.newaxis]
        else:
            color = rgb

        bands = np.concatenate([color, alpha], axis=-1) if has_alpha else color
        bands = np.rint(bands * ImageConverters.sample_scale(dtype))
        return np.clip(bands, 0, ImageConverters.sample_max(dtype)).astype(dtype)

    @staticmethod
    def pixel_to_bands(
        pixel: PixelPacket, interpretation: Interpretation, has_alpha: bool, dtype: np.dtype
    ) -> np.ndarray:
        """Convert one pixel into stored band values. Alpha is dropped when there is no alpha band."""
        rgba = np.array(pixel.as_tuple(), dtype=np.float64)
        return ImageConverters.from_rgba(rgba, interpretation, has_alpha, dtype)

    @staticmethod
    def samples_to_pixel(
        samples: np.ndarray, interpretation: Interpretation, has_alpha: bool
    ) -> PixelPacket:
        """Convert one stored pixel (shape (bands,)) to a PixelPacket."""
        r, g, b, a = ImageConverters.to_rgba(samples, interpretation, has_alpha).tolist()
        return PixelPacket(r=r, g=g, b=b, a=a)

    @staticmethod
    def pil_to_samples(image: Image.Image, layout: ModeLayout) -> np.ndarray:
        """
        Convert a PIL Image to a H x W x bands sample array.

        Args:
            image: Decoded PIL image
            layout: Layout from layout_for_mode

        Returns:
            Writable uint8 or uint16 array
        """
        if layout.bits_per_sample == 16:
            array = np.array(image)
            if image.mode == "I":
                array = np.clip(array, 0, ImageConstants.MAX_16BIT)
            array = array.astype(np.uint16)
        else:
            if image.mode != layout.target_mode:
                image = image.convert(layout.target_mode)
            array = np.array(image, dtype=np.uint8)

        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        return array

    @staticmethod
    def samples_to_pil(samples: np.ndarray, interpretation: Interpretation) -> Image.Image:
        """
        Convert a sample array to a PIL Image.

        Single-band 16-bit samples stay 16-bit (mode I;16); every other
        16-bit layout is reduced to 8 bits.

        Args:
            samples: H x W x bands array
            interpretation: Colorspace of the samples

        Returns:
            PIL Image
        """
        height, width, bands = samples.shape

        if samples.dtype == np.uint16:
            if bands == 1:
                data = np.ascontiguousarray(samples[:, :, 0], dtype="<u2")
                return Image.frombytes("I;16", (width, height), data.tobytes())
            samples = ImageConverters.to_8bit(samples)

        if interpretation is Interpretation.CMYK:
            mode = "CMYK"
        else:
            mode = _MODES_BY_BANDS[bands]
        return Image.frombytes(mode, (width, height), np.ascontiguousarray(samples).tobytes())

    @staticmethod
    def to_8bit(samples: np.ndarray) -> np.ndarray:
        """Reduce 16-bit samples to 8 bits (rounded)."""
        if samples.dtype == np.uint8:
            return samples
        scaled = np.rint(samples.astype(np.float64) / ImageConstants.SCALE_16BIT)
        return scaled.astype(np.uint8)

    @staticmethod
    def rgb_to_bgr(samples: np.ndarray) -> np.ndarray:
        """Convert RGB(A) samples to OpenCV BGR(A) order."""
        if samples.shape[2] == 3:
            return cv2.cvtColor(samples, cv2.COLOR_RGB2BGR)
        if samples.shape[2] == 4:
            return cv2.cvtColor(samples, cv2.COLOR_RGBA2BGRA)
        return samples

    @staticmethod
    def bgr_to_rgb(array: np.ndarray) -> np.ndarray:
        """Convert an OpenCV BGR(A) array to H x W x bands RGB(A) samples."""
        if array.ndim == 2:
            return array[:, :, np.newaxis]
        if array.shape[2] == 3:
            return cv2.cvtColor(array, cv2.COLOR_BGR2RGB)
        if array.shape[2] == 4:
            return cv2.cvtColor(array, cv2.COLOR_BGRA2RGBA)
        return array
