"""
Tests for ImageContext and ResourceTracker
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from rasterkit.config import Settings
from rasterkit.core import context as context_module
from rasterkit.core.context import ImageContext, ResourceTracker, configure, get_context
from rasterkit.core.enums import ImageFormat
from rasterkit.core.image_handle import ImageHandle
from rasterkit.schemas import Dimension, Rectangle


class TestResourceTracker:
    """Test ResourceTracker functionality"""

    @pytest.fixture
    def tracker(self):
        return ResourceTracker()

    def test_register_unregister(self, tracker):
        """Test live handle and byte accounting"""
        tracker.register(1, "first", 100)
        tracker.register(2, "second", 50)

        assert tracker.live_handles == 2
        assert tracker.live_bytes == 150

        assert tracker.unregister(1) is True
        assert tracker.live_handles == 1
        assert tracker.live_bytes == 50
        assert tracker.peak_bytes == 150
        assert tracker.total_allocations == 2

    def test_unregister_unknown(self, tracker):
        """Test unregistering twice is harmless"""
        tracker.register(1, "first", 10)
        assert tracker.unregister(1) is True
        assert tracker.unregister(1) is False
        assert tracker.live_bytes == 0

    def test_resize(self, tracker):
        """Test memory updates for a live handle"""
        tracker.register(1, "first", 0)
        tracker.resize(1, 400)
        tracker.resize(1, 100)

        assert tracker.live_bytes == 100
        assert tracker.peak_bytes == 400

    def test_resize_unknown_is_ignored(self, tracker):
        tracker.resize(99, 1000)
        assert tracker.live_bytes == 0

    def test_no_stack_without_leak_tracking(self, tracker):
        tracker.register(1, "first")
        assert tracker.leaks()[0].stack is None

    def test_leak_report(self, caplog):
        """Test leaked handles are logged with their creation stack"""
        tracker = ResourceTracker(leak_tracking=True)
        tracker.register(7, "640x480 PNG", 1234)

        with caplog.at_level(logging.WARNING, logger="rasterkit.core.context"):
            leaked = tracker.report_leaks()

        assert [a.handle_id for a in leaked] == [7]
        assert leaked[0].stack
        assert "Leaked image handle #7" in caplog.text
        assert "640x480 PNG" in caplog.text

    def test_to_dict(self, tracker):
        tracker.register(1, "first", 8)
        assert tracker.to_dict() == {
            "live_handles": 1,
            "live_bytes": 8,
            "peak_bytes": 8,
            "total_allocations": 1,
        }


class TestImageContext:
    """Test ImageContext functionality"""

    def test_settings_applied(self):
        """Test cache limits come from settings"""
        ctx = ImageContext(Settings(max_cache_items=7, max_cache_memory_bytes=1000))

        assert ctx.cache.max_items == 7
        assert ctx.cache.max_memory_bytes == 1000
        assert ctx.backend.max_image_pixels == ctx.settings.max_image_pixels

    def test_custom_backend(self, jpeg_bytes):
        """Test a context uses the backend it was given"""
        calls = []

        class RecordingBackend:
            def __init__(self, inner):
                self.inner = inner

            def decode(self, data):
                calls.append("decode")
                return self.inner.decode(data)

            def encode(self, image, fmt, options):
                calls.append("encode")
                return self.inner.encode(image, fmt, options)

        base = ImageContext(Settings(max_cache_items=0))
        ctx = ImageContext(Settings(max_cache_items=0), RecordingBackend(base.backend))

        with ImageHandle.open(jpeg_bytes, context=ctx) as img:
            img.resize(Dimension(width=64, height=64))
            img.write_to_array(ImageFormat.PNG)

        assert calls == ["decode", "encode"]

    def test_leak_tracking_reports_unreleased(self, white_png_bytes, caplog):
        """Test an unreleased handle shows up in the leak report"""
        ctx = ImageContext(Settings(leak_tracking=True, max_cache_items=0))
        img = ImageHandle.open(white_png_bytes, context=ctx)

        with caplog.at_level(logging.WARNING):
            leaked = ctx.tracker.report_leaks()
        assert len(leaked) == 1
        assert leaked[0].handle_id == img.uid

        img.release()
        assert ctx.tracker.report_leaks() == []

    def test_get_stats(self, context, white_png_bytes):
        with ImageHandle.open(white_png_bytes, context=context) as img:
            img.get_point(0, 0)
            stats = context.get_stats()

        assert stats["resources"]["live_handles"] == 1
        assert stats["resources"]["live_bytes"] == 20 * 10 * 3
        assert stats["cache"]["items"] == 0

    def test_concurrent_handles(self, jpeg_bytes):
        """Test independent handles on a shared context from many threads"""
        ctx = ImageContext(Settings(max_cache_items=16, max_cache_memory_bytes=10_000_000))

        def work(_):
            with ImageHandle.open(jpeg_bytes, context=ctx) as img:
                img.resize(Dimension(width=160, height=160))
                img.crop(Rectangle(x=10, y=10, width=100, height=60))
                return img.write_to_array(ImageFormat.JPEG, 70, strip=True)

        with ThreadPoolExecutor(max_workers=8) as executor:
            outputs = list(executor.map(work, range(16)))

        assert all(out.startswith(ImageFormat.JPEG.signature) for out in outputs)
        assert ctx.tracker.live_handles == 0
        assert ctx.tracker.live_bytes == 0
        assert ctx.tracker.total_allocations == 16
        assert ctx.cache.get_stats().items == 0


class TestDefaultContext:
    """Test the process default context"""

    @pytest.fixture(autouse=True)
    def reset_default(self, monkeypatch):
        monkeypatch.setattr(context_module, "_default_context", None)

    def test_get_context_is_shared(self):
        assert get_context() is get_context()

    def test_configure(self):
        ctx = configure(Settings(max_cache_items=3))

        assert get_context() is ctx
        assert ctx.cache.max_items == 3

    def test_configure_twice(self):
        configure(Settings())
        with pytest.raises(RuntimeError):
            configure(Settings())

    def test_configure_after_first_use(self):
        get_context()
        with pytest.raises(RuntimeError):
            configure(Settings())
