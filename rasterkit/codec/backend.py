"""Codec backend interface.

The image handle never touches bitstreams directly: it asks a CodecBackend to
turn bytes into a DecodedImage and a DecodedImage back into bytes.
"""

import logging
from typing import Callable, Optional, Protocol

import numpy as np

from rasterkit.core.enums import ImageFormat, Interpretation
from rasterkit.core.exceptions import DecodeError
from rasterkit.schemas import EncodeOptions

logger = logging.getLogger(__name__)

SampleLoader = Callable[[], np.ndarray]


class DecodedImage:
    """
    Decoded raster state owned by exactly one image handle.

    Header metadata is available immediately; the sample array is produced
    by the loader on first access so that opening an image only parses its
    header. Samples are always stored as a H x W x bands array of uint8 or
    uint16.
    """

    def __init__(
        self,
        width: int,
        height: int,
        bands: int,
        bits_per_sample: int,
        interpretation: Interpretation,
        has_alpha: bool,
        source_format: ImageFormat,
        loader: Optional[SampleLoader] = None,
        n_frames: int = 1,
        icc_profile: Optional[bytes] = None,
        exif: Optional[bytes] = None,
        closer: Optional[Callable[[], None]] = None,
    ):
        self.width = width
        self.height = height
        self.bands = bands
        self.bits_per_sample = bits_per_sample
        self.interpretation = interpretation
        self.has_alpha = has_alpha
        self.source_format = source_format
        self.n_frames = n_frames
        self.icc_profile = icc_profile
        self.exif = exif

        self._loader = loader
        self._closer = closer
        self._samples: Optional[np.ndarray] = None

    @classmethod
    def from_samples(
        cls,
        samples: np.ndarray,
        interpretation: Interpretation,
        has_alpha: bool,
        source_format: ImageFormat,
    ) -> "DecodedImage":
        """Wrap an already materialized sample array."""
        image = cls(
            width=samples.shape[1],
            height=samples.shape[0],
            bands=samples.shape[2],
            bits_per_sample=samples.dtype.itemsize * 8,
            interpretation=interpretation,
            has_alpha=has_alpha,
            source_format=source_format,
        )
        image._samples = samples
        return image

    @property
    def is_loaded(self) -> bool:
        return self._samples is not None

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(np.uint16) if self.bits_per_sample == 16 else np.dtype(np.uint8)

    @property
    def nbytes(self) -> int:
        """Memory taken by the samples once loaded."""
        return self.width * self.height * self.bands * self.dtype.itemsize

    @property
    def samples(self) -> np.ndarray:
        """
        Sample array, decoded on first access.

        Raises:
            DecodeError: If the image body cannot be decoded
        """
        if self._samples is None:
            if self._loader is None:
                raise DecodeError("Image has no sample data")
            samples = self._loader()
            expected = (self.height, self.width, self.bands)
            if samples.shape != expected or samples.dtype != self.dtype:
                raise DecodeError(
                    f"Decoded samples {samples.shape}/{samples.dtype} do not match "
                    f"header {expected}/{self.dtype}"
                )
            self._samples = samples
            self._release_source()
        return self._samples

    def replace(self, samples: np.ndarray, has_alpha: Optional[bool] = None) -> None:
        """
        Swap in a new sample array after a geometry operation.

        Args:
            samples: New H x W x bands array
            has_alpha: New alpha flag, unchanged if None
        """
        self._samples = samples
        self.height, self.width, self.bands = samples.shape
        if has_alpha is not None:
            self.has_alpha = has_alpha

    def close(self) -> None:
        """Drop samples and close the underlying decoder."""
        self._samples = None
        self._loader = None
        self._release_source()

    def _release_source(self) -> None:
        if self._closer is not None:
            closer, self._closer = self._closer, None
            try:
                closer()
            except Exception as e:
                logger.warning(f"Failed to close decoder source: {e}")

    def __repr__(self) -> str:
        return (
            f"DecodedImage({self.width}x{self.height}, bands={self.bands}, "
            f"bits={self.bits_per_sample}, {self.interpretation.value}, "
            f"alpha={self.has_alpha}, frames={self.n_frames})"
        )


class CodecBackend(Protocol):
    """Protocol for bitstream decode/encode."""

    def decode(self, data: bytes) -> DecodedImage:
        """Parse an encoded buffer.

        Args:
            data: Complete encoded image.

        Returns:
            DecodedImage with header metadata; samples may load lazily.

        Raises:
            DecodeError: If the buffer is unrecognized or corrupt.
        """
        ...

    def encode(self, image: DecodedImage, fmt: ImageFormat, options: EncodeOptions) -> bytes:
        """Serialize an image.

        Args:
            image: Image to write.
            fmt: Output container.
            options: Encoder options.

        Returns:
            Encoded bytes.

        Raises:
            EncodeError: If the image cannot be written.
        """
        ...
