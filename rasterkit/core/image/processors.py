"""
Geometry operations on sample arrays.

Handles the pixel work behind the image handle:
- Resizing (aspect-preserving or exact)
- Cropping
- Padding with gravity
- Flattening alpha against a background
- Alpha-over composition

Functions here operate on H x W x bands arrays and never validate handle
state; the image handle checks arguments before calling them.
"""

import logging
import math
from typing import Tuple

import cv2
import numpy as np

from rasterkit.core.enums import Gravity, Interpretation
from rasterkit.core.image.converters import ImageConverters
from rasterkit.schemas import Dimension, PixelPacket, Rectangle

logger = logging.getLogger(__name__)

# Horizontal / vertical alignment per gravity: 0 = leading, 1 = centre, 2 = trailing
_GRAVITY_ALIGNMENT = {
    Gravity.CENTRE: (1, 1),
    Gravity.NORTH: (1, 0),
    Gravity.SOUTH: (1, 2),
    Gravity.EAST: (2, 1),
    Gravity.WEST: (0, 1),
    Gravity.NORTH_EAST: (2, 0),
    Gravity.SOUTH_EAST: (2, 2),
    Gravity.SOUTH_WEST: (0, 2),
    Gravity.NORTH_WEST: (0, 0),
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _ensure_3d(array: np.ndarray, bands: int) -> np.ndarray:
    # OpenCV drops the channel axis of single-band images
    if array.ndim == 2:
        return array.reshape(array.shape[0], array.shape[1], bands)
    return array


def compute_resize_dimensions(
    width: int, height: int, target: Dimension, force: bool
) -> Tuple[int, int]:
    """
    Compute output size for a resize.

    Args:
        width: Current width
        height: Current height
        target: Requested bounding size
        force: If True, return the target size exactly

    Returns:
        Tuple of (width, height); an axis may be 0 for extreme aspect ratios
    """
    if force:
        return target.width, target.height

    scale_x = target.width / width
    scale_y = target.height / height

    if scale_x <= scale_y:
        # Width is the binding constraint
        return target.width, _round_half_up(height * scale_x)
    return _round_half_up(width * scale_y), target.height


def resize_samples(samples: np.ndarray, width: int, height: int, has_alpha: bool) -> np.ndarray:
    """
    Resample to width x height.

    Uses INTER_AREA when shrinking and INTER_LANCZOS4 when enlarging. Images
    with alpha are resampled premultiplied so transparent pixels do not
    bleed their color into neighbours.

    Args:
        samples: Input samples
        width: Output width
        height: Output height
        has_alpha: Whether the last band is alpha

    Returns:
        Resized samples with the same dtype and band count
    """
    src_height, src_width, bands = samples.shape
    if (src_width, src_height) == (width, height):
        return samples.copy()

    shrinking = width * height < src_width * src_height
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LANCZOS4

    if not has_alpha:
        resized = cv2.resize(samples, (width, height), interpolation=interpolation)
        return _ensure_3d(resized, bands)

    max_value = ImageConverters.sample_max(samples.dtype)
    data = samples.astype(np.float32)
    alpha = data[:, :, -1:] / max_value
    data[:, :, :-1] *= alpha

    resized = _ensure_3d(cv2.resize(data, (width, height), interpolation=interpolation), bands)

    new_alpha = np.clip(resized[:, :, -1:], 0, max_value)
    factor = np.divide(
        max_value, new_alpha, out=np.zeros_like(new_alpha), where=new_alpha > 0
    )
    resized[:, :, :-1] *= factor
    resized[:, :, -1:] = new_alpha

    return np.clip(np.rint(resized), 0, max_value).astype(samples.dtype)


def crop_samples(samples: np.ndarray, box: Rectangle) -> np.ndarray:
    """Extract a sub-region. The box must lie inside the image."""
    return samples[box.y : box.y2, box.x : box.x2].copy()


def gravity_offsets(
    gravity: Gravity, width: int, height: int, target: Dimension
) -> Tuple[int, int]:
    """
    Compute where content lands inside an enlarged canvas.

    Centred placement gives the odd extra pixel to the trailing edge.

    Args:
        gravity: Anchor
        width: Content width
        height: Content height
        target: Canvas size

    Returns:
        Tuple of (left, top) offsets
    """
    horizontal, vertical = _GRAVITY_ALIGNMENT[gravity]
    extra_x = target.width - width
    extra_y = target.height - height
    left = (extra_x * horizontal) // 2
    top = (extra_y * vertical) // 2
    return left, top


def pad_samples(
    samples: np.ndarray,
    target: Dimension,
    fill: np.ndarray,
    gravity: Gravity,
) -> np.ndarray:
    """
    Enlarge the canvas, filling the border with stored band values.

    Args:
        samples: Input samples
        target: Canvas size (not smaller than the image)
        fill: Band values for the border, one per band
        gravity: Placement of the original content

    Returns:
        Padded samples
    """
    height, width, bands = samples.shape
    left, top = gravity_offsets(gravity, width, height, target)
    right = target.width - width - left
    bottom = target.height - height - top

    padded = cv2.copyMakeBorder(
        samples,
        top,
        bottom,
        left,
        right,
        cv2.BORDER_CONSTANT,
        value=tuple(float(v) for v in fill),
    )
    return _ensure_3d(padded, bands)


def flatten_samples(
    samples: np.ndarray, background: PixelPacket, interpretation: Interpretation
) -> np.ndarray:
    """
    Composite an alpha image over a solid background and drop the alpha band.

    out = src * a / max + bg * (1 - a / max), computed in the stored
    colorspace.

    Args:
        samples: Samples whose last band is alpha
        background: Background color
        interpretation: Colorspace of the samples

    Returns:
        Samples without the alpha band
    """
    max_value = ImageConverters.sample_max(samples.dtype)
    bg = ImageConverters.pixel_to_bands(background, interpretation, False, samples.dtype)

    data = samples.astype(np.float64)
    alpha = data[:, :, -1:] / max_value
    color = data[:, :, :-1]

    out = color * alpha + bg.astype(np.float64) * (1.0 - alpha)
    return np.clip(np.rint(out), 0, max_value).astype(samples.dtype)


def compose_samples(
    base: np.ndarray,
    base_interpretation: Interpretation,
    base_has_alpha: bool,
    overlay: np.ndarray,
    overlay_interpretation: Interpretation,
    overlay_has_alpha: bool,
) -> np.ndarray:
    """
    Alpha-over an overlay onto a base image at the origin.

    The overlay is clipped to the base extent. Base pixels under fully
    transparent overlay pixels are left untouched.

    Returns:
        New base samples
    """
    height = min(base.shape[0], overlay.shape[0])
    width = min(base.shape[1], overlay.shape[1])
    result = base.copy()
    if width == 0 or height == 0:
        return result

    top = ImageConverters.to_rgba(overlay[:height, :width], overlay_interpretation, overlay_has_alpha)
    bottom = ImageConverters.to_rgba(base[:height, :width], base_interpretation, base_has_alpha)

    top_alpha = top[:, :, 3:4] / 255.0
    bottom_alpha = bottom[:, :, 3:4] / 255.0
    out_alpha = top_alpha + bottom_alpha * (1.0 - top_alpha)

    blended = top[:, :, :3] * top_alpha + bottom[:, :, :3] * bottom_alpha * (1.0 - top_alpha)
    rgb = np.divide(blended, out_alpha, out=np.zeros_like(blended), where=out_alpha > 0)

    rgba = np.concatenate([rgb, out_alpha * 255.0], axis=-1)
    converted = ImageConverters.from_rgba(rgba, base_interpretation, base_has_alpha, base.dtype)

    mask = top_alpha[:, :, 0] > 0
    region = result[:height, :width]
    region[mask] = converted[mask]
    return result
