"""
Codec backend built on Pillow and OpenCV.

Pillow parses containers, decodes the supported formats and writes
JPEG/PNG/WebP. OpenCV handles 16-bit RGB(A) PNG, which Pillow can only
read and write at 8 bits.
"""

import io
import logging
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from rasterkit.codec.backend import DecodedImage
from rasterkit.core.constants import ErrorMessages, ImageConstants
from rasterkit.core.enums import ImageFormat, Interpretation
from rasterkit.core.exceptions import DecodeError, EncodeError
from rasterkit.core.image.converters import ImageConverters, ModeLayout
from rasterkit.schemas import EncodeOptions

logger = logging.getLogger(__name__)

# PNG IHDR: bit depth and color type bytes
_PNG_BIT_DEPTH_OFFSET = 24
_PNG_COLOR_TYPE_OFFSET = 25
_PNG_RGB = 2
_PNG_RGBA = 6


def _png_deep_color(data: bytes) -> Optional[Tuple[int, bool]]:
    """Return (bands, has_alpha) for 16-bit RGB/RGBA PNG headers, None otherwise."""
    if len(data) <= _PNG_COLOR_TYPE_OFFSET:
        return None
    if data[_PNG_BIT_DEPTH_OFFSET] != 16:
        return None
    color_type = data[_PNG_COLOR_TYPE_OFFSET]
    if color_type == _PNG_RGB:
        return 3, False
    if color_type == _PNG_RGBA:
        return 4, True
    return None


class PillowBackend:
    """
    CodecBackend implementation.

    Decoding only reads the container header; samples are decoded the first
    time the image handle needs them.
    """

    def __init__(self, max_image_pixels: int = ImageConstants.DEFAULT_MAX_IMAGE_PIXELS):
        """
        Initialize the backend.

        Args:
            max_image_pixels: Largest width * height accepted by decode
        """
        self.max_image_pixels = max_image_pixels

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, data: bytes) -> DecodedImage:
        """
        Parse an encoded buffer.

        Args:
            data: Encoded image bytes

        Returns:
            DecodedImage with lazily loaded samples

        Raises:
            DecodeError: If the buffer is unrecognized, unsupported or too large
        """
        if not data:
            raise DecodeError(ErrorMessages.EMPTY_BUFFER)

        try:
            image = Image.open(io.BytesIO(data))
        except Exception as e:
            raise DecodeError(ErrorMessages.UNRECOGNIZED_FORMAT.format(error=e)) from e

        try:
            return self._describe(image, data)
        except Exception:
            image.close()
            raise

    def _describe(self, image: Image.Image, data: bytes) -> DecodedImage:
        if image.format not in ImageConstants.DECODE_FORMATS:
            raise DecodeError(ErrorMessages.UNSUPPORTED_SOURCE.format(format=image.format))

        width, height = image.size
        if width * height > self.max_image_pixels:
            raise DecodeError(
                ErrorMessages.IMAGE_TOO_LARGE.format(
                    width=width, height=height, limit=self.max_image_pixels
                )
            )

        source_format = ImageFormat.from_pillow(image.format)

        try:
            n_frames = int(getattr(image, "n_frames", 1))
        except Exception as e:
            raise DecodeError(ErrorMessages.CORRUPTED_DATA.format(error=e)) from e

        icc_profile = image.info.get("icc_profile") or None
        exif = image.info.get("exif") or None

        deep = _png_deep_color(data) if source_format is ImageFormat.PNG else None
        if deep is not None:
            bands, has_alpha = deep
            layout = ModeLayout(
                "RGBA" if has_alpha else "RGB", bands, 16, Interpretation.RGB16, has_alpha
            )
            loader = self._deep_png_loader(data)
        else:
            layout = ImageConverters.layout_for_mode(image.mode, image.info)
            loader = self._pillow_loader(image, layout)

        decoded = DecodedImage(
            width=width,
            height=height,
            bands=layout.bands,
            bits_per_sample=layout.bits_per_sample,
            interpretation=layout.interpretation,
            has_alpha=layout.has_alpha,
            source_format=source_format,
            loader=loader,
            n_frames=max(n_frames, 1),
            icc_profile=icc_profile,
            exif=exif,
            closer=image.close,
        )
        logger.debug(f"Decoded header {image.format} mode={image.mode}: {decoded}")
        return decoded

    @staticmethod
    def _pillow_loader(image: Image.Image, layout: ModeLayout):
        def load() -> np.ndarray:
            try:
                image.seek(0)
                image.load()
                return ImageConverters.pil_to_samples(image, layout)
            except Exception as e:
                logger.error(f"Failed to decode {image.format} data: {e}")
                raise DecodeError(ErrorMessages.CORRUPTED_DATA.format(error=e)) from e

        return load

    @staticmethod
    def _deep_png_loader(data: bytes):
        def load() -> np.ndarray:
            buffer = np.frombuffer(data, dtype=np.uint8)
            array = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
            if array is None:
                logger.error("OpenCV failed to decode 16-bit PNG data")
                raise DecodeError(ErrorMessages.CORRUPTED_DATA.format(error="invalid PNG data"))
            return ImageConverters.bgr_to_rgb(array)

        return load

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, image: DecodedImage, fmt: ImageFormat, options: EncodeOptions) -> bytes:
        """
        Serialize an image.

        Args:
            image: Image to write (samples are loaded if needed)
            fmt: Output container (JPEG, PNG or WebP)
            options: Encoder options

        Returns:
            Encoded bytes

        Raises:
            EncodeError: If the image cannot be written
        """
        if not fmt.writable:
            raise EncodeError(ErrorMessages.UNSUPPORTED_OUTPUT.format(format=fmt.name))

        try:
            samples = image.samples
            keeps_depth = fmt is ImageFormat.PNG and not options.palette

            if samples.dtype == np.uint16:
                if keeps_depth and samples.shape[2] in (3, 4):
                    return self._encode_deep_png(samples, options)
                if not (keeps_depth and samples.shape[2] == 1):
                    samples = ImageConverters.to_8bit(samples)

            pil_image = ImageConverters.samples_to_pil(samples, image.interpretation)
            if fmt is ImageFormat.JPEG:
                return self._encode_jpeg(pil_image, image, options)
            if fmt is ImageFormat.PNG:
                return self._encode_png(pil_image, image, options)
            return self._encode_webp(pil_image, image, options)
        except EncodeError:
            raise
        except Exception as e:
            logger.error(f"Failed to encode {fmt.name}: {e}")
            raise EncodeError(ErrorMessages.ENCODE_FAILED.format(format=fmt.name, error=e)) from e

    @staticmethod
    def _metadata(image: DecodedImage, options: EncodeOptions, keep_icc: bool = True) -> dict:
        if options.strip:
            return {}
        metadata = {}
        if keep_icc and image.icc_profile:
            metadata["icc_profile"] = image.icc_profile
        if image.exif:
            metadata["exif"] = image.exif
        return metadata

    @staticmethod
    def _to_rgb(pil_image: Image.Image) -> Tuple[Image.Image, bool]:
        """Convert to a mode PNG/WebP can store. Returns (image, icc_still_valid)."""
        if pil_image.mode == "CMYK":
            return pil_image.convert("RGB"), False
        return pil_image, True

    def _encode_jpeg(
        self, pil_image: Image.Image, image: DecodedImage, options: EncodeOptions
    ) -> bytes:
        # JPEG has no alpha channel
        if pil_image.mode == "RGBA":
            pil_image = pil_image.convert("RGB")
        elif pil_image.mode == "LA":
            pil_image = pil_image.convert("L")

        buffer = io.BytesIO()
        pil_image.save(
            buffer,
            format="JPEG",
            quality=options.quality,
            optimize=True,
            **self._metadata(image, options),
        )
        return buffer.getvalue()

    def _encode_png(
        self, pil_image: Image.Image, image: DecodedImage, options: EncodeOptions
    ) -> bytes:
        pil_image, keep_icc = self._to_rgb(pil_image)

        if options.palette:
            pil_image = self._quantize(pil_image, options.colors)

        buffer = io.BytesIO()
        pil_image.save(
            buffer,
            format="PNG",
            compress_level=options.compression,
            **self._metadata(image, options, keep_icc),
        )
        return buffer.getvalue()

    def _encode_webp(
        self, pil_image: Image.Image, image: DecodedImage, options: EncodeOptions
    ) -> bytes:
        pil_image, keep_icc = self._to_rgb(pil_image)
        if pil_image.mode == "LA":
            pil_image = pil_image.convert("RGBA")
        elif pil_image.mode not in ("RGB", "RGBA"):
            pil_image = pil_image.convert("RGB")

        buffer = io.BytesIO()
        pil_image.save(
            buffer,
            format="WEBP",
            quality=options.quality,
            **self._metadata(image, options, keep_icc),
        )
        return buffer.getvalue()

    @staticmethod
    def _encode_deep_png(samples: np.ndarray, options: EncodeOptions) -> bytes:
        # OpenCV cannot carry ICC/EXIF, so 16-bit output is always stripped
        ok, buffer = cv2.imencode(
            ImageFormat.PNG.file_extension,
            ImageConverters.rgb_to_bgr(samples),
            [cv2.IMWRITE_PNG_COMPRESSION, options.compression],
        )
        if not ok:
            raise EncodeError(
                ErrorMessages.ENCODE_FAILED.format(format="PNG", error="OpenCV imencode failed")
            )
        return buffer.tobytes()

    @staticmethod
    def _quantize(pil_image: Image.Image, colors: int) -> Image.Image:
        """
        Reduce to a palette of at most `colors` entries.

        Median cut for opaque images; fast octree when alpha must be kept
        (the only Pillow method besides libimagequant that supports RGBA).
        """
        if pil_image.mode in ("RGBA", "LA"):
            return pil_image.convert("RGBA").quantize(
                colors=colors,
                method=Image.Quantize.FASTOCTREE,
                dither=Image.Dither.FLOYDSTEINBERG,
            )

        if pil_image.mode != "RGB":
            pil_image = pil_image.convert("RGB")
        return pil_image.quantize(
            colors=colors,
            method=Image.Quantize.MEDIANCUT,
            dither=Image.Dither.FLOYDSTEINBERG,
        )
