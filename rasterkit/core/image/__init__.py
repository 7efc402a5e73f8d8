"""
Image processing utilities - modular architecture.

This package provides focused sample-array utilities:
- converters: Layout conversions (stored samples, normalized RGBA, PIL, BGR)
- processors: Geometry operations (resize, crop, pad, flatten, compose)
- trim: Border trim detection
- encoding: Encoder dispatch helpers (format, options, signatures)
"""

from rasterkit.core.image.converters import ImageConverters

__all__ = ["ImageConverters"]
