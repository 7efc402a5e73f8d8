"""
Core modules for rasterkit

The image handle itself lives in rasterkit.core.image_handle; this package
only re-exports the lightweight enums and exceptions shared by every layer.
"""

from .enums import Gravity, ImageFormat, Interpretation
from .exceptions import (
    DecodeError,
    EncodeError,
    GeometryError,
    OutOfBoundsError,
    RasterError,
    UnsupportedFormatError,
    UseAfterRelease,
)

__all__ = [
    "Gravity",
    "ImageFormat",
    "Interpretation",
    "RasterError",
    "DecodeError",
    "EncodeError",
    "GeometryError",
    "OutOfBoundsError",
    "UnsupportedFormatError",
    "UseAfterRelease",
]
