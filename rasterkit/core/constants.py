"""
Constants and configuration values for rasterkit.
Centralizes all magic numbers and message templates.
"""


# Image Constants
class ImageConstants:
    """Constants related to decoding and sample storage."""

    # Formats the codec backend is allowed to decode (Pillow format names)
    DECODE_FORMATS = ("JPEG", "MPO", "PNG", "WEBP", "GIF")

    # Sample depths
    MAX_8BIT = 255
    MAX_16BIT = 65535
    SCALE_16BIT = 257.0  # 65535 / 255

    # Normalized pixel values
    OPAQUE = 255.0
    TRANSPARENT = 0.0

    # Safety limit to avoid exhausting memory on crafted inputs (16384 x 16384)
    DEFAULT_MAX_IMAGE_PIXELS = 268_435_456


# Encoding Constants
class EncodeConstants:
    """Constants for encoder options."""

    DEFAULT_JPEG_QUALITY = 80
    MIN_QUALITY = 1
    MAX_QUALITY = 100

    DEFAULT_PNG_COMPRESSION = 6
    MIN_PNG_COMPRESSION = 0
    MAX_PNG_COMPRESSION = 9

    DEFAULT_PALETTE_COLORS = 256
    MIN_PALETTE_COLORS = 2
    MAX_PALETTE_COLORS = 256

    # Output signatures
    JPEG_SIGNATURE = b"\xff\xd8\xff"
    PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
    WEBP_SIGNATURE = b"RIFF"
    GIF_SIGNATURE = b"GIF"


# Trim Constants
class TrimConstants:
    """Constants for border trim detection."""

    MIN_CONTENT_NEIGHBOURS = 1
    DEFAULT_THRESHOLD = 10.0


# Cache Constants
class CacheConstants:
    """Defaults for the process-wide encode cache."""

    DEFAULT_MAX_ITEMS = 100
    DEFAULT_MAX_MEMORY_BYTES = 100 * 1024 * 1024  # 100MB


# System Constants
class SystemConstants:
    """Constants for system operations."""

    LOG_LEVEL_DEFAULT = "INFO"
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# Error Messages
class ErrorMessages:
    """Standard error messages."""

    # Decode errors
    EMPTY_BUFFER = "Unable to load image: empty buffer"
    INVALID_LENGTH = "Unable to load image: length {length} outside buffer of {size} bytes"
    UNRECOGNIZED_FORMAT = "Unable to load image: unrecognized format ({error})"
    UNSUPPORTED_SOURCE = "Unable to load image: unsupported source format {format}"
    IMAGE_TOO_LARGE = "Unable to load image: {width}x{height} exceeds {limit} pixels"
    CORRUPTED_DATA = "Unable to decode image data: {error}"

    # Lifecycle errors
    USE_AFTER_RELEASE = "Image handle {handle} used after release ({operation})"

    # Pixel access
    POINT_OUT_OF_BOUNDS = "Unable to get image point ({x}, {y}) in {width}x{height} image"

    # Geometry errors
    INVALID_DIMENSION = "Invalid target dimension {width}x{height}"
    ZERO_SCALE = "Resize of {width}x{height} to {target} collapses an axis to zero"
    CROP_EMPTY = "Crop box {box} has an empty width or height"
    CROP_OUT_OF_BOUNDS = "Crop box {box} is out of image bounds {width}x{height}"
    PAD_TOO_SMALL = "Pad target {target} is smaller than image {width}x{height}"
    NEGATIVE_THRESHOLD = "Trim threshold must be non-negative, got {threshold}"

    # Encode errors
    UNSUPPORTED_OUTPUT = "Unable to write image: {format} output is not supported"
    INVALID_OPTIONS = "Unable to write image: invalid options ({error})"
    ENCODE_FAILED = "Unable to write image as {format}: {error}"
    BAD_SIGNATURE = "Encoded {format} output has an invalid signature"
