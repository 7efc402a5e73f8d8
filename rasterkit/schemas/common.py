"""
Common value types shared by all rasterkit layers.
"""

from typing import Any, Dict, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from rasterkit.core.constants import ImageConstants


class PixelPacket(BaseModel):
    """
    One sampled color normalized to RGBA floats in [0, 255].

    Equality compares the four channels exactly.
    """

    model_config = ConfigDict(frozen=True)

    r: float = Field(..., ge=0.0, le=255.0, description="Red")
    g: float = Field(..., ge=0.0, le=255.0, description="Green")
    b: float = Field(..., ge=0.0, le=255.0, description="Blue")
    a: float = Field(default=ImageConstants.OPAQUE, ge=0.0, le=255.0, description="Alpha")

    @classmethod
    def from_tuple(cls, values: Sequence[float]) -> "PixelPacket":
        """Create a pixel from (r, g, b) or (r, g, b, a)."""
        if len(values) not in (3, 4):
            raise ValueError(f"Expected 3 or 4 channel values, got {len(values)}")
        r, g, b = values[:3]
        a = values[3] if len(values) == 4 else ImageConstants.OPAQUE
        return cls(r=float(r), g=float(g), b=float(b), a=float(a))

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.r, self.g, self.b, self.a)

    @property
    def is_opaque(self) -> bool:
        return self.a == ImageConstants.OPAQUE

    @property
    def is_transparent(self) -> bool:
        return self.a == ImageConstants.TRANSPARENT


class Rectangle(BaseModel):
    """
    Integer region of an image, origin at the top-left corner.

    Coordinates are not constrained here: geometry operations decide what
    is acceptable for a given image.
    """

    x: int = Field(..., description="X coordinate")
    y: int = Field(..., description="Y coordinate")
    width: int = Field(..., description="Width")
    height: int = Field(..., description="Height")

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rectangle":
        """Create a rectangle from a dictionary."""
        return cls(
            x=int(data.get("x", 0)),
            y=int(data.get("y", 0)),
            width=int(data.get("width", 0)),
            height=int(data.get("height", 0)),
        )

    @property
    def x2(self) -> int:
        """Right edge (exclusive)."""
        return self.x + self.width

    @property
    def y2(self) -> int:
        """Bottom edge (exclusive)."""
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def fits_within(self, width: int, height: int) -> bool:
        """Check if the rectangle lies entirely inside a width x height image."""
        return self.x >= 0 and self.y >= 0 and self.x2 <= width and self.y2 <= height

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.width}x{self.height})"


class Dimension(BaseModel):
    """Target size for resize and pad."""

    width: int = Field(..., description="Width in pixels")
    height: int = Field(..., description="Height in pixels")

    def to_tuple(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"
