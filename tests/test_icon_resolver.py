"""Tests for appthumb.services.icon_resolver."""

import io

import pytest
from PIL import Image

from appthumb.models.errors import ResolutionFailure
from appthumb.models.icon_model import IconKind, IconSource, is_png
from appthumb.services import icon_resolver
from appthumb.services.icon_resolver import GENERIC_ICON_PATH, IconResolver, classify_icon, generic_icon

from conftest import make_png, make_svg


class TestClassifyIcon:
    """Tests for content classification."""

    def test_png_is_raster(self):
        """Verify PNG bytes pass through unchanged as raster."""
        data = make_png()
        icon = classify_icon(data)
        assert icon.kind is IconKind.RASTER
        assert icon.data == data

    def test_svg_is_vector(self):
        """Verify SVG content is detected as vector."""
        icon = classify_icon(make_svg())
        assert icon.kind is IconKind.VECTOR
        assert icon.is_vector

    def test_other_raster_format_converted_to_png(self):
        """Verify a GIF icon is normalized to PNG."""
        out = io.BytesIO()
        Image.new("RGB", (8, 8), (0, 128, 0)).save(out, format="GIF")
        icon = classify_icon(out.getvalue())
        assert icon.kind is IconKind.RASTER
        assert is_png(icon.data)

    def test_empty_is_failure(self):
        """Verify an empty stream is a resolution failure."""
        with pytest.raises(ResolutionFailure):
            classify_icon(b"")

    def test_garbage_is_failure(self):
        """Verify undecodable bytes are a resolution failure."""
        with pytest.raises(ResolutionFailure):
            classify_icon(b"definitely not an image")

    def test_oversized_image_is_failure(self, monkeypatch):
        """Verify an image past the decompression-bomb limit is a resolution failure."""
        out = io.BytesIO()
        Image.new("RGB", (8, 8)).save(out, format="GIF")
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

        with pytest.raises(ResolutionFailure):
            classify_icon(out.getvalue())


class TestIconResolver:
    """Tests for the fallback chain."""

    def test_embedded_icon_wins(self, bundle_factory):
        """Verify the embedded icon is used when present."""
        embedded = make_png(color=(1, 2, 3, 255))
        bundle = bundle_factory(embedded=embedded, desktop=make_png(color=(9, 9, 9, 255)))

        resolved = IconResolver().resolve(bundle)

        assert resolved.source is IconSource.EMBEDDED
        assert resolved.icon.data == embedded

    def test_desktop_icon_fallback(self, bundle_factory):
        """Verify the desktop icon is used when the embedded icon is missing."""
        desktop = make_png(color=(9, 9, 9, 255))
        bundle = bundle_factory(embedded=None, desktop=desktop)

        resolved = IconResolver().resolve(bundle)

        assert resolved.source is IconSource.DESKTOP
        assert resolved.icon.data == desktop

    def test_empty_embedded_falls_through(self, bundle_factory):
        """Verify a zero-length embedded icon does not end the search."""
        desktop = make_png()
        bundle = bundle_factory(embedded=b"", desktop=desktop)

        resolved = IconResolver().resolve(bundle)

        assert resolved.source is IconSource.DESKTOP

    def test_generic_icon_fallback(self, bundle_factory):
        """Verify the generic asset is used when both sources fail."""
        resolved = IconResolver().resolve(bundle_factory())

        assert resolved.source is IconSource.GENERIC
        assert resolved.icon.data == GENERIC_ICON_PATH.read_bytes()
        assert len(resolved.icon) > 0

    def test_unexpected_collaborator_error_falls_through(self, bundle_factory):
        """Verify an unexpected exception in a collaborator is not fatal."""
        bundle = bundle_factory(desktop=make_png())

        def broken():
            raise RuntimeError("boom")

        bundle.embedded_icon = broken

        resolved = IconResolver().resolve(bundle)
        assert resolved.source is IconSource.DESKTOP

    def test_missing_generic_icon_fails(self, bundle_factory, tmp_path):
        """Verify resolution fails entirely if the generic asset is unavailable."""
        resolver = IconResolver(generic_path=tmp_path / "missing.png")

        with pytest.raises(ResolutionFailure):
            resolver.resolve(bundle_factory())

    def test_custom_strategy_chain(self, bundle_factory):
        """Verify strategies are tried in the given order."""
        calls = []

        def first(bundle):
            calls.append("first")
            raise ResolutionFailure("nope")

        def second(bundle):
            calls.append("second")
            return classify_icon(make_png())

        resolver = IconResolver(strategies=[(IconSource.EMBEDDED, first), (IconSource.DESKTOP, second)])
        resolved = resolver.resolve(bundle_factory())

        assert calls == ["first", "second"]
        assert resolved.source is IconSource.DESKTOP


class TestGenericIcon:
    """Tests for the bundled generic icon."""

    def test_generic_icon_is_png(self):
        """Verify the packaged asset is a valid PNG."""
        icon = generic_icon()
        assert icon.kind is IconKind.RASTER
        with Image.open(io.BytesIO(icon.data)) as image:
            assert image.format == "PNG"

    def test_generic_icon_loaded_once(self):
        """Verify the asset is read from disk only once."""
        generic_icon()
        before = icon_resolver._load_generic_icon.cache_info()
        generic_icon()
        after = icon_resolver._load_generic_icon.cache_info()
        assert after.hits == before.hits + 1
        assert after.misses == before.misses

    def test_non_png_generic_icon_fails(self, tmp_path):
        """Verify a corrupt asset is reported as a resolution failure."""
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"not a png")
        with pytest.raises(ResolutionFailure):
            generic_icon(broken)
