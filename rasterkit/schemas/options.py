"""
Encoder option schemas.
"""

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field

from rasterkit.core.constants import EncodeConstants


class EncodeOptions(BaseModel):
    """
    Options passed to the codec backend when writing an image.

    quality applies to lossy output (JPEG, WebP); compression, palette and
    colors apply to PNG only.
    """

    model_config = ConfigDict(frozen=True)

    quality: int = Field(
        default=EncodeConstants.DEFAULT_JPEG_QUALITY,
        ge=EncodeConstants.MIN_QUALITY,
        le=EncodeConstants.MAX_QUALITY,
        description="Lossy quality factor",
    )
    strip: bool = Field(default=False, description="Remove ICC profile and EXIF metadata")
    compression: int = Field(
        default=EncodeConstants.DEFAULT_PNG_COMPRESSION,
        ge=EncodeConstants.MIN_PNG_COMPRESSION,
        le=EncodeConstants.MAX_PNG_COMPRESSION,
        description="PNG zlib compression level",
    )
    palette: bool = Field(default=False, description="Quantize PNG output to a palette")
    colors: int = Field(
        default=EncodeConstants.DEFAULT_PALETTE_COLORS,
        ge=EncodeConstants.MIN_PALETTE_COLORS,
        le=EncodeConstants.MAX_PALETTE_COLORS,
        description="Maximum palette entries",
    )

    def cache_key(self) -> Tuple:
        return (self.quality, self.strip, self.compression, self.palette, self.colors)
