"""
Schemas Package

Pydantic value types shared across all rasterkit layers:
- common: PixelPacket, Rectangle, Dimension
- options: EncodeOptions
"""

from .common import Dimension, PixelPacket, Rectangle
from .options import EncodeOptions

__all__ = ["Dimension", "EncodeOptions", "PixelPacket", "Rectangle"]
