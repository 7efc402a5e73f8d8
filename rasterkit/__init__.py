"""
rasterkit - in-memory image decoding, geometry and encoding
"""

from rasterkit.config import Settings, configure_logging, get_settings
from rasterkit.core.context import ImageContext, configure, get_context
from rasterkit.core.enums import Gravity, ImageFormat, Interpretation
from rasterkit.core.exceptions import (
    DecodeError,
    EncodeError,
    GeometryError,
    OutOfBoundsError,
    RasterError,
    UnsupportedFormatError,
    UseAfterRelease,
)
from rasterkit.core.image_handle import ImageHandle
from rasterkit.schemas import Dimension, EncodeOptions, PixelPacket, Rectangle

__version__ = "1.0.0"

__all__ = [
    "ImageHandle",
    "ImageContext",
    "configure",
    "get_context",
    "Settings",
    "get_settings",
    "configure_logging",
    "Gravity",
    "ImageFormat",
    "Interpretation",
    "Dimension",
    "EncodeOptions",
    "PixelPacket",
    "Rectangle",
    "RasterError",
    "DecodeError",
    "EncodeError",
    "GeometryError",
    "OutOfBoundsError",
    "UnsupportedFormatError",
    "UseAfterRelease",
]
