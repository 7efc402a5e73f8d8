"""
Border trim detection.
"""

import logging

import cv2
import numpy as np

from rasterkit.core.constants import TrimConstants
from rasterkit.core.enums import Interpretation
from rasterkit.core.image.converters import ImageConverters
from rasterkit.schemas import PixelPacket, Rectangle

logger = logging.getLogger(__name__)

# 8-connected neighbourhood, centre excluded
_NEIGHBOUR_KERNEL = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.float32)


def background_distance(
    samples: np.ndarray,
    interpretation: Interpretation,
    has_alpha: bool,
    background: PixelPacket,
) -> np.ndarray:
    """
    Per-pixel distance from the background color.

    Alpha images are flattened against the background first, so fully
    transparent pixels end up at distance 0 whatever their RGB. The
    distance is the largest absolute channel difference.

    Args:
        samples: H x W x bands samples
        interpretation: Colorspace of the samples
        has_alpha: Whether the last band is alpha
        background: Background color (only RGB is compared)

    Returns:
        H x W float32 distance map
    """
    rgba = ImageConverters.to_rgba(samples, interpretation, has_alpha)
    bg = np.array(background.as_tuple()[:3], dtype=np.float64)

    rgb = rgba[:, :, :3]
    if has_alpha:
        alpha = rgba[:, :, 3:4] / 255.0
        rgb = rgb * alpha + bg * (1.0 - alpha)

    return np.abs(rgb - bg).max(axis=2).astype(np.float32)


def drop_isolated(mask: np.ndarray) -> np.ndarray:
    """
    Remove pixels of a boolean mask that have no set 8-connected neighbour.

    Single-pixel codec specks disappear; lines and edges one pixel thick
    are kept.
    """
    neighbours = cv2.filter2D(
        mask.astype(np.uint8),
        -1,
        _NEIGHBOUR_KERNEL,
        borderType=cv2.BORDER_CONSTANT,
    )
    return mask & (neighbours >= TrimConstants.MIN_CONTENT_NEIGHBOURS)


def find_trim(
    samples: np.ndarray,
    interpretation: Interpretation,
    has_alpha: bool,
    threshold: float,
    background: PixelPacket,
) -> Rectangle:
    """
    Find the bounding box of everything that is not background.

    A pixel is content when its distance exceeds the threshold and at least
    one of its neighbours does too. Rows and columns are scanned inward from
    each edge until one holds a content pixel.

    Returns:
        Bounding rectangle, or Rectangle(0, 0, 0, 0) if the whole image is
        background
    """
    distance = background_distance(samples, interpretation, has_alpha, background)
    content = drop_isolated(distance > threshold)

    rows = np.flatnonzero(content.any(axis=1))
    if rows.size == 0:
        logger.debug("Image is entirely background, nothing to trim")
        return Rectangle(x=0, y=0, width=0, height=0)
    cols = np.flatnonzero(content.any(axis=0))

    top, bottom = int(rows[0]), int(rows[-1])
    left, right = int(cols[0]), int(cols[-1])
    return Rectangle(x=left, y=top, width=right - left + 1, height=bottom - top + 1)
