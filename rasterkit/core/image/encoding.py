"""
Encoder dispatch helpers: format resolution, option validation and output
verification around the codec backend.
"""

import logging
from typing import Any

from pydantic import ValidationError

from rasterkit.core.constants import ErrorMessages
from rasterkit.core.enums import ImageFormat, coerce_enum
from rasterkit.core.exceptions import EncodeError, UnsupportedFormatError
from rasterkit.schemas import EncodeOptions

logger = logging.getLogger(__name__)


def resolve_output_format(fmt: Any) -> ImageFormat:
    """
    Resolve and check a requested output format.

    Raises:
        UnsupportedFormatError: If the format is unknown or decode-only
    """
    try:
        image_format = coerce_enum(fmt, ImageFormat)
    except ValueError as e:
        raise UnsupportedFormatError(ErrorMessages.UNSUPPORTED_OUTPUT.format(format=fmt)) from e

    if not image_format.writable:
        raise UnsupportedFormatError(
            ErrorMessages.UNSUPPORTED_OUTPUT.format(format=image_format.name)
        )
    return image_format


def build_options(**kwargs: Any) -> EncodeOptions:
    """
    Validate encoder options.

    Raises:
        EncodeError: If any option is out of range
    """
    try:
        return EncodeOptions(**kwargs)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise EncodeError(ErrorMessages.INVALID_OPTIONS.format(error=errors)) from e


def verify_signature(data: bytes, image_format: ImageFormat) -> bytes:
    """
    Check encoded output starts with its format's magic bytes.

    Raises:
        EncodeError: If the signature does not match
    """
    if not data.startswith(image_format.signature):
        logger.error(f"{image_format.name} output starts with {data[:8]!r}")
        raise EncodeError(ErrorMessages.BAD_SIGNATURE.format(format=image_format.name))
    return data
