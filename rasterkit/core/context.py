"""
Image context: the single bundle of process-wide state.

An ImageContext carries the settings, the codec backend, the resource
tracker and the encode cache. Image handles receive a context when they are
created and never read global configuration on their own.
"""

import atexit
import logging
import traceback
from dataclasses import dataclass
from threading import Lock, RLock
from typing import Dict, List, Optional

from rasterkit.codec.backend import CodecBackend
from rasterkit.codec.pillow_backend import PillowBackend
from rasterkit.config import Settings, get_settings
from rasterkit.core.cache import OperationCache

logger = logging.getLogger(__name__)


@dataclass
class Allocation:
    """Live handle registered with the tracker"""

    handle_id: int
    description: str
    nbytes: int
    stack: Optional[str] = None


class ResourceTracker:
    """Thread-safe accounting of live image handles and their sample memory"""

    def __init__(self, leak_tracking: bool = False):
        self.leak_tracking = leak_tracking
        self.allocations: Dict[int, Allocation] = {}
        self.live_bytes = 0
        self.peak_bytes = 0
        self.total_allocations = 0
        self.lock = RLock()

    def register(self, handle_id: int, description: str, nbytes: int = 0) -> None:
        """Record a new handle"""
        stack = "".join(traceback.format_stack(limit=8)[:-1]) if self.leak_tracking else None
        with self.lock:
            self.allocations[handle_id] = Allocation(handle_id, description, nbytes, stack)
            self.total_allocations += 1
            self._add_bytes(nbytes)

    def resize(self, handle_id: int, nbytes: int) -> None:
        """Update the memory accounted to a handle"""
        with self.lock:
            allocation = self.allocations.get(handle_id)
            if allocation is None:
                return
            self._add_bytes(nbytes - allocation.nbytes)
            allocation.nbytes = nbytes

    def unregister(self, handle_id: int) -> bool:
        """
        Forget a handle

        Returns:
            True if the handle was live
        """
        with self.lock:
            allocation = self.allocations.pop(handle_id, None)
            if allocation is None:
                return False
            self._add_bytes(-allocation.nbytes)
            return True

    def _add_bytes(self, delta: int) -> None:
        self.live_bytes += delta
        self.peak_bytes = max(self.peak_bytes, self.live_bytes)

    @property
    def live_handles(self) -> int:
        with self.lock:
            return len(self.allocations)

    def leaks(self) -> List[Allocation]:
        """Get handles that are still live"""
        with self.lock:
            return list(self.allocations.values())

    def report_leaks(self) -> List[Allocation]:
        """Log every live handle as a leak"""
        leaked = self.leaks()
        for allocation in leaked:
            logger.warning(
                f"Leaked image handle #{allocation.handle_id}: {allocation.description} "
                f"({allocation.nbytes} bytes)"
            )
            if allocation.stack:
                logger.warning(f"Handle #{allocation.handle_id} created at:\n{allocation.stack}")
        return leaked

    def to_dict(self) -> Dict[str, int]:
        with self.lock:
            return {
                "live_handles": len(self.allocations),
                "live_bytes": self.live_bytes,
                "peak_bytes": self.peak_bytes,
                "total_allocations": self.total_allocations,
            }


class ImageContext:
    """Settings, codec backend, resource tracker and encode cache"""

    def __init__(
        self, settings: Optional[Settings] = None, backend: Optional[CodecBackend] = None
    ):
        """
        Initialize an image context

        Args:
            settings: Settings to apply (read from the environment if None)
            backend: Codec backend (PillowBackend if None)
        """
        self.settings = settings if settings is not None else get_settings()
        self.backend: CodecBackend = backend or PillowBackend(
            max_image_pixels=self.settings.max_image_pixels
        )
        self.tracker = ResourceTracker(leak_tracking=self.settings.leak_tracking)
        self.cache = OperationCache(
            max_items=self.settings.max_cache_items,
            max_memory_bytes=self.settings.max_cache_memory_bytes,
        )

        if self.settings.leak_tracking:
            atexit.register(self.tracker.report_leaks)

        logger.info(
            f"Image context created: leak_tracking={self.settings.leak_tracking}, "
            f"cache={self.settings.max_cache_items} items / "
            f"{self.settings.max_cache_memory_bytes} bytes"
        )

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        return {"resources": self.tracker.to_dict(), "cache": self.cache.to_dict()}


_default_context: Optional[ImageContext] = None
_default_lock = Lock()


def configure(settings: Settings, backend: Optional[CodecBackend] = None) -> ImageContext:
    """
    Create the process default context

    Must run before the first image handle is created.

    Raises:
        RuntimeError: If the default context already exists
    """
    global _default_context

    with _default_lock:
        if _default_context is not None:
            raise RuntimeError("Image context is already configured")
        _default_context = ImageContext(settings, backend)
        return _default_context


def get_context() -> ImageContext:
    """Get the process default context, creating it from the environment on first use"""
    global _default_context

    with _default_lock:
        if _default_context is None:
            _default_context = ImageContext()
        return _default_context
