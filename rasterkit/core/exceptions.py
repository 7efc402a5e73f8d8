"""
Exception hierarchy for rasterkit.

Every error raised by an image handle derives from RasterError so callers can
catch the whole family at once.
"""


class RasterError(Exception):
    """Base class for all rasterkit errors."""


class DecodeError(RasterError):
    """Input bytes are unreadable, corrupt or of an unrecognized format."""


class UseAfterRelease(RasterError):
    """An operation was invoked on a released image handle."""


class OutOfBoundsError(RasterError):
    """A pixel query fell outside the image extent."""


class GeometryError(RasterError):
    """Invalid crop, resize, pad or trim arguments."""


class EncodeError(RasterError):
    """Encoding failed or the requested output cannot be produced."""


class UnsupportedFormatError(EncodeError):
    """The requested output container cannot be written."""
