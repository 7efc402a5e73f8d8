"""
Image Handle - owned, explicitly released in-memory image.

An ImageHandle wraps one DecodedImage produced by the codec backend. Every
operation checks the handle is still live, validates its arguments, and
only then replaces the decoded samples, so a failed call leaves the handle
exactly as it was.
"""

import itertools
import logging
from typing import Optional, Union

import numpy as np

from rasterkit.codec.backend import DecodedImage
from rasterkit.core.constants import (
    EncodeConstants,
    ErrorMessages,
    TrimConstants,
)
from rasterkit.core.context import ImageContext, get_context
from rasterkit.core.enums import Gravity, ImageFormat, Interpretation, coerce_enum
from rasterkit.core.exceptions import (
    DecodeError,
    EncodeError,
    GeometryError,
    OutOfBoundsError,
    UseAfterRelease,
)
from rasterkit.core.image import encoding, processors, trim
from rasterkit.core.image.converters import ImageConverters
from rasterkit.schemas import Dimension, EncodeOptions, PixelPacket, Rectangle

logger = logging.getLogger(__name__)

_handle_ids = itertools.count(1)


class ImageHandle:
    """
    Decoded raster image with an explicit lifecycle.

    Not safe for concurrent mutation: callers must serialize operations on a
    single handle. Independent handles may be used from different threads.

    Example:
        >>> with ImageHandle.open(data) as img:
        ...     img.resize(Dimension(width=800, height=800))
        ...     out = img.write_to_array(ImageFormat.JPEG, 85, strip=True)
    """

    def __init__(self, decoded: DecodedImage, context: ImageContext):
        """
        Wrap a decoded image. Prefer open() or filled_like().

        Args:
            decoded: Image produced by the codec backend
            context: Context that tracks this handle
        """
        self.uid = next(_handle_ids)
        self.context = context
        self.revision = 0
        self._decoded: Optional[DecodedImage] = decoded

        context.tracker.register(
            self.uid,
            f"{decoded.width}x{decoded.height} {decoded.source_format.name}",
            decoded.nbytes if decoded.is_loaded else 0,
        )

    # ------------------------------------------------------------------
    # Construction and lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        data: Union[bytes, bytearray, memoryview],
        length: Optional[int] = None,
        *,
        context: Optional[ImageContext] = None,
    ) -> "ImageHandle":
        """
        Decode an encoded buffer (JPEG, PNG, WebP or GIF).

        Only the header is parsed here; pixel data is decoded on first use.

        Args:
            data: Encoded image
            length: Number of leading bytes of data to use (all if None)
            context: Image context (process default if None)

        Returns:
            New image handle

        Raises:
            DecodeError: If the buffer is empty, unrecognized or unsupported
        """
        context = context or get_context()
        buffer = bytes(data)

        if length is not None:
            if length <= 0 or length > len(buffer):
                raise DecodeError(
                    ErrorMessages.INVALID_LENGTH.format(length=length, size=len(buffer))
                )
            buffer = buffer[:length]

        decoded = context.backend.decode(buffer)
        handle = cls(decoded, context)
        logger.debug(f"Opened {handle!r}")
        return handle

    @classmethod
    def filled_like(cls, source: "ImageHandle", pixel: PixelPacket) -> "ImageHandle":
        """
        Create an image matching source's size and layout, filled with one color.

        Args:
            source: Image providing width, height, colorspace and bands
            pixel: Fill color (alpha used only if source has alpha)

        Returns:
            New image handle in source's context
        """
        src = source._live("filled_like")
        fill = ImageConverters.pixel_to_bands(
            pixel, src.interpretation, src.has_alpha, src.dtype
        )
        samples = np.empty((src.height, src.width, src.bands), dtype=src.dtype)
        samples[:, :] = fill

        decoded = DecodedImage.from_samples(
            samples, src.interpretation, src.has_alpha, src.source_format
        )
        decoded.icc_profile = src.icc_profile
        return cls(decoded, source.context)

    def release(self) -> None:
        """Free the decoded image. Calling it again is a no-op."""
        if self._decoded is None:
            return

        decoded, self._decoded = self._decoded, None
        decoded.close()
        self.context.cache.invalidate(self.uid)
        self.context.tracker.unregister(self.uid)
        logger.debug(f"Released image handle #{self.uid}")

    @property
    def released(self) -> bool:
        return self._decoded is None

    def __enter__(self) -> "ImageHandle":
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.release()

    def _live(self, operation: str) -> DecodedImage:
        if self._decoded is None:
            raise UseAfterRelease(
                ErrorMessages.USE_AFTER_RELEASE.format(handle=self.uid, operation=operation)
            )
        return self._decoded

    def _samples(self, operation: str) -> np.ndarray:
        decoded = self._live(operation)
        was_loaded = decoded.is_loaded
        samples = decoded.samples
        if not was_loaded:
            self.context.tracker.resize(self.uid, decoded.nbytes)
        return samples

    def _replace(self, samples: np.ndarray, has_alpha: Optional[bool] = None) -> None:
        decoded = self._live("replace")
        decoded.replace(samples, has_alpha)
        self.revision += 1
        self.context.tracker.resize(self.uid, decoded.nbytes)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._live("width").width

    @property
    def height(self) -> int:
        return self._live("height").height

    @property
    def bands(self) -> int:
        return self._live("bands").bands

    @property
    def bits_per_sample(self) -> int:
        return self._live("bits_per_sample").bits_per_sample

    @property
    def interpretation(self) -> Interpretation:
        return self._live("interpretation").interpretation

    @property
    def n_frames(self) -> int:
        return self._live("n_frames").n_frames

    @property
    def source_format(self) -> ImageFormat:
        return self._live("source_format").source_format

    @property
    def icc_profile(self) -> Optional[bytes]:
        return self._live("icc_profile").icc_profile

    def has_alpha(self) -> bool:
        return self._live("has_alpha").has_alpha

    def get_interpretation(self) -> Interpretation:
        """Colorspace guessed from the source's decoder metadata."""
        return self.interpretation

    def get_nb_frame(self) -> int:
        """Number of frames: 1 for static images."""
        return self.n_frames

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------

    def get_point(self, x: int, y: int) -> PixelPacket:
        """
        Read one pixel as normalized RGBA.

        Args:
            x: Column
            y: Row

        Returns:
            PixelPacket with channels in [0, 255]

        Raises:
            OutOfBoundsError: If (x, y) lies outside the image
        """
        decoded = self._live("get_point")
        if not (0 <= x < decoded.width and 0 <= y < decoded.height):
            raise OutOfBoundsError(
                ErrorMessages.POINT_OUT_OF_BOUNDS.format(
                    x=x, y=y, width=decoded.width, height=decoded.height
                )
            )

        samples = self._samples("get_point")
        return ImageConverters.samples_to_pixel(
            samples[y, x], decoded.interpretation, decoded.has_alpha
        )

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def resize(self, dimension: Dimension, force: bool = False) -> "ImageHandle":
        """
        Scale the image.

        Args:
            dimension: Bounding size (force=False) or exact size (force=True)
            force: Ignore aspect ratio and produce exactly dimension

        Returns:
            This handle

        Raises:
            GeometryError: If the target or the computed size has an empty axis
        """
        decoded = self._live("resize")
        if dimension.width <= 0 or dimension.height <= 0:
            raise GeometryError(
                ErrorMessages.INVALID_DIMENSION.format(
                    width=dimension.width, height=dimension.height
                )
            )

        width, height = processors.compute_resize_dimensions(
            decoded.width, decoded.height, dimension, force
        )
        if width <= 0 or height <= 0:
            raise GeometryError(
                ErrorMessages.ZERO_SCALE.format(
                    width=decoded.width, height=decoded.height, target=dimension
                )
            )

        samples = self._samples("resize")
        logger.debug(f"Resize #{self.uid} {decoded.width}x{decoded.height} -> {width}x{height}")
        self._replace(processors.resize_samples(samples, width, height, decoded.has_alpha))
        return self

    def crop(self, box: Rectangle) -> "ImageHandle":
        """
        Keep only the region inside box.

        Raises:
            GeometryError: If box is empty or not inside the image
        """
        decoded = self._live("crop")
        if box.is_empty:
            raise GeometryError(ErrorMessages.CROP_EMPTY.format(box=box))
        if not box.fits_within(decoded.width, decoded.height):
            raise GeometryError(
                ErrorMessages.CROP_OUT_OF_BOUNDS.format(
                    box=box, width=decoded.width, height=decoded.height
                )
            )

        samples = self._samples("crop")
        logger.debug(f"Crop #{self.uid} to {box}")
        self._replace(processors.crop_samples(samples, box))
        return self

    def pad(
        self,
        dimension: Dimension,
        pixel: PixelPacket,
        gravity: Union[Gravity, str] = Gravity.CENTRE,
    ) -> "ImageHandle":
        """
        Enlarge the canvas and fill the new border with pixel.

        Without an alpha band the pixel's alpha is ignored.

        Args:
            dimension: Canvas size, not smaller than the image
            pixel: Border color
            gravity: Where the original content is anchored

        Returns:
            This handle

        Raises:
            GeometryError: If dimension is smaller than the image or gravity is unknown
        """
        decoded = self._live("pad")
        try:
            gravity = coerce_enum(gravity, Gravity)
        except ValueError as e:
            raise GeometryError(str(e)) from e

        if dimension.width < decoded.width or dimension.height < decoded.height:
            raise GeometryError(
                ErrorMessages.PAD_TOO_SMALL.format(
                    target=dimension, width=decoded.width, height=decoded.height
                )
            )

        fill = ImageConverters.pixel_to_bands(
            pixel, decoded.interpretation, decoded.has_alpha, decoded.dtype
        )
        samples = self._samples("pad")
        logger.debug(f"Pad #{self.uid} to {dimension} ({gravity.value})")
        self._replace(processors.pad_samples(samples, dimension, fill, gravity))
        return self

    def flatten(self, background: PixelPacket) -> "ImageHandle":
        """
        Composite against a solid background and drop the alpha band.

        Images without alpha are left untouched.
        """
        decoded = self._live("flatten")
        if not decoded.has_alpha:
            logger.warning(f"Flatten #{self.uid}: image has no alpha channel, nothing to do")
            return self

        samples = self._samples("flatten")
        self._replace(
            processors.flatten_samples(samples, background, decoded.interpretation),
            has_alpha=False,
        )
        return self

    def compose(self, overlay: "ImageHandle") -> "ImageHandle":
        """
        Alpha-over overlay onto this image at the origin.

        overlay is not modified and remains owned by the caller.

        Raises:
            UseAfterRelease: If either handle is released
        """
        decoded = self._live("compose")
        top = overlay._live("compose")

        base_samples = self._samples("compose")
        overlay_samples = overlay._samples("compose")

        self._replace(
            processors.compose_samples(
                base_samples,
                decoded.interpretation,
                decoded.has_alpha,
                overlay_samples,
                top.interpretation,
                top.has_alpha,
            )
        )
        return self

    # ------------------------------------------------------------------
    # Trim
    # ------------------------------------------------------------------

    def find_trim(
        self,
        threshold: float = TrimConstants.DEFAULT_THRESHOLD,
        background: Optional[PixelPacket] = None,
    ) -> Rectangle:
        """
        Find the bounding box of non-background content.

        Args:
            threshold: Largest channel difference still counted as background
            background: Background color (white if None)

        Returns:
            Bounding rectangle; Rectangle(0, 0, 0, 0) if the image is all background

        Raises:
            GeometryError: If threshold is negative
        """
        decoded = self._live("find_trim")
        if threshold < 0:
            raise GeometryError(ErrorMessages.NEGATIVE_THRESHOLD.format(threshold=threshold))
        if background is None:
            background = PixelPacket(r=255.0, g=255.0, b=255.0)

        samples = self._samples("find_trim")
        return trim.find_trim(
            samples, decoded.interpretation, decoded.has_alpha, threshold, background
        )

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def write_to_array(
        self,
        fmt: Union[ImageFormat, str],
        quality: int = EncodeConstants.DEFAULT_JPEG_QUALITY,
        strip: bool = False,
    ) -> bytes:
        """
        Encode the current image.

        Args:
            fmt: Output format (JPEG, PNG or WebP)
            quality: Lossy quality in [1, 100], ignored for PNG
            strip: Remove ICC profile and EXIF

        Returns:
            Encoded bytes

        Raises:
            UnsupportedFormatError: For GIF or unknown formats
            EncodeError: On invalid options or a corrupt source
        """
        self._live("write_to_array")
        image_format = encoding.resolve_output_format(fmt)
        if image_format.lossy:
            options = encoding.build_options(quality=quality, strip=strip)
        else:
            options = encoding.build_options(strip=strip)
        return self._write(image_format, options)

    def write_png_to_array(
        self,
        compression: int = EncodeConstants.DEFAULT_PNG_COMPRESSION,
        palette: bool = False,
        colors: int = EncodeConstants.DEFAULT_PALETTE_COLORS,
        strip: bool = False,
    ) -> bytes:
        """
        Encode as PNG.

        Args:
            compression: zlib level in [0, 9]
            palette: Quantize to a palette
            colors: Maximum palette entries in [2, 256]
            strip: Remove ICC profile and EXIF

        Returns:
            Encoded PNG bytes

        Raises:
            EncodeError: On invalid options or a corrupt source
        """
        self._live("write_png_to_array")
        options = encoding.build_options(
            compression=compression, palette=palette, colors=colors, strip=strip
        )
        return self._write(ImageFormat.PNG, options)

    def _write(self, image_format: ImageFormat, options: EncodeOptions) -> bytes:
        decoded = self._live("write")
        cache_key = (self.uid, self.revision, image_format, options.cache_key())

        cached = self.context.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Encode cache hit for #{self.uid} ({image_format.name})")
            return cached

        try:
            self._samples("write")
        except DecodeError as e:
            raise EncodeError(
                ErrorMessages.ENCODE_FAILED.format(format=image_format.name, error=e)
            ) from e

        data = self.context.backend.encode(decoded, image_format, options)
        encoding.verify_signature(data, image_format)

        self.context.cache.put(cache_key, data)
        logger.debug(f"Encoded #{self.uid} as {image_format.name}: {len(data)} bytes")
        return data

    def __repr__(self) -> str:
        if self._decoded is None:
            return f"ImageHandle(#{self.uid}, released)"
        d = self._decoded
        return (
            f"ImageHandle(#{self.uid}, {d.width}x{d.height}, {d.interpretation.value}, "
            f"bands={d.bands}, bits={d.bits_per_sample}, frames={d.n_frames})"
        )
