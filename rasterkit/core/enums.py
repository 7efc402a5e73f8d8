"""
Enumerations shared by the image handle, codec backend and schemas.
"""

from enum import Enum
from typing import Any, Optional, Type, TypeVar

from rasterkit.core.constants import EncodeConstants

E = TypeVar("E", bound=Enum)


class ImageFormat(str, Enum):
    """Encoded image containers."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    GIF = "gif"

    @property
    def file_extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def signature(self) -> bytes:
        """Leading bytes every encoded buffer of this format starts with."""
        return _SIGNATURES[self]

    @property
    def lossy(self) -> bool:
        return self in (ImageFormat.JPEG, ImageFormat.WEBP)

    @property
    def writable(self) -> bool:
        # GIF is decode-only
        return self is not ImageFormat.GIF

    @classmethod
    def _missing_(cls, value: Any) -> Optional["ImageFormat"]:
        # Accept file extensions such as ".jpg"
        if isinstance(value, str):
            extension = "." + value.strip().lower().lstrip(".")
            for member in cls:
                if _EXTENSIONS[member] == extension:
                    return member
        return None

    @classmethod
    def from_pillow(cls, pillow_format: str) -> "ImageFormat":
        """Map a Pillow format name (MPO is a multi-picture JPEG) to an ImageFormat."""
        if pillow_format == "MPO":
            return cls.JPEG
        return cls(pillow_format.lower())


_EXTENSIONS = {
    ImageFormat.JPEG: ".jpg",
    ImageFormat.PNG: ".png",
    ImageFormat.WEBP: ".webp",
    ImageFormat.GIF: ".gif",
}

_SIGNATURES = {
    ImageFormat.JPEG: EncodeConstants.JPEG_SIGNATURE,
    ImageFormat.PNG: EncodeConstants.PNG_SIGNATURE,
    ImageFormat.WEBP: EncodeConstants.WEBP_SIGNATURE,
    ImageFormat.GIF: EncodeConstants.GIF_SIGNATURE,
}


class Interpretation(str, Enum):
    """Colorspace of the stored samples."""

    SRGB = "srgb"
    CMYK = "cmyk"
    B_W = "b-w"
    GREY16 = "grey16"
    RGB16 = "rgb16"


class Gravity(str, Enum):
    """Anchor used when placing content inside an enlarged canvas."""

    CENTRE = "centre"
    NORTH = "north"
    EAST = "east"
    SOUTH = "south"
    WEST = "west"
    NORTH_EAST = "north-east"
    SOUTH_EAST = "south-east"
    SOUTH_WEST = "south-west"
    NORTH_WEST = "north-west"


def coerce_enum(value: Any, enum_class: Type[E]) -> E:
    """
    Convert a value to an enum member.

    Accepts enum instances, their values, or their names (case-insensitive).

    Args:
        value: Value to convert
        enum_class: Target enum class

    Returns:
        Enum member

    Raises:
        ValueError: If value matches no member

    Example:
        >>> coerce_enum("PNG", ImageFormat)
        <ImageFormat.PNG: 'png'>
    """
    if isinstance(value, enum_class):
        return value

    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in enum_class:
            if member.value == normalized or member.name.lower() == normalized:
                return member

    try:
        return enum_class(value)
    except ValueError:
        pass

    raise ValueError(f"{value!r} is not a valid {enum_class.__name__}")
