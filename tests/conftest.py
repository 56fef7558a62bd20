"""Shared fixtures for the thumbnail pipeline tests."""

import io
import struct
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from appthumb.config import ThumbnailSettings
from appthumb.models.errors import ResolutionFailure


def _cairo_available() -> bool:
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError):
        return False
    return True


requires_cairo = pytest.mark.skipif(not _cairo_available(), reason="cairosvg/libcairo not available")


def make_png(
    size: Tuple[int, int] = (16, 16),
    color=(200, 40, 40, 255),
    mode: str = "RGBA",
    text: Optional[Dict[str, str]] = None,
) -> bytes:
    """Build an in-memory PNG, optionally with tEXt chunks."""
    image = Image.new(mode, size, color)
    info = None
    if text:
        info = PngInfo()
        for key, value in text.items():
            info.add_text(key, value)
    out = io.BytesIO()
    image.save(out, format="PNG", pnginfo=info)
    return out.getvalue()


def _chunk(kind: bytes, payload: bytes) -> bytes:
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", zlib.crc32(kind + payload))


def make_oversized_png(width: int = 20000, height: int = 20000) -> bytes:
    """Build a PNG whose header declares dimensions past Pillow's decompression-bomb limit."""
    header = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _chunk(b"IHDR", header)
        + _chunk(b"IDAT", zlib.compress(b"\x00" * 16))
        + _chunk(b"IEND", b"")
    )


def make_svg(width: int = 64, height: int = 64) -> bytes:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {width} {height}">'
        f'<rect x="0" y="0" width="{width}" height="{height}" fill="#3366cc"/>'
        f"</svg>\n"
    ).encode("utf-8")


@dataclass
class FakeBundle:
    """In-memory stand-in for an AppImage."""
    path: Path
    uri: str
    mtime: float
    embedded: Optional[bytes] = None
    desktop: Optional[bytes] = None

    def embedded_icon(self) -> bytes:
        if self.embedded is None:
            raise ResolutionFailure("no .DirIcon")
        return self.embedded

    def desktop_icon(self) -> bytes:
        if self.desktop is None:
            raise ResolutionFailure("no desktop icon")
        return self.desktop


@pytest.fixture
def settings(tmp_path):
    return ThumbnailSettings(cache_dir=tmp_path / "thumbnails")


@pytest.fixture
def bundle_factory():
    def _make(embedded=None, desktop=None, uri="file:///home/u/App.AppImage", mtime=1622505600.0):
        return FakeBundle(
            path=Path("/home/u/App.AppImage"),
            uri=uri,
            mtime=mtime,
            embedded=embedded,
            desktop=desktop,
        )
    return _make
