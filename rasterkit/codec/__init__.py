"""
Codec backends.

- backend: CodecBackend protocol and the DecodedImage it produces
- pillow_backend: Pillow/OpenCV implementation
"""

from .backend import CodecBackend, DecodedImage
from .pillow_backend import PillowBackend

__all__ = ["CodecBackend", "DecodedImage", "PillowBackend"]
