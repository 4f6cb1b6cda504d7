"""Tests for pixel surfaces and the tile container."""

from __future__ import annotations

import numpy as np
import pytest

from gladtiles.core.surface import (
    PixelSurface,
    SurfaceUnavailableError,
    TileContainer,
    magnify,
)
from gladtiles.core.types import ScreenPoint


class TestMagnify:
    """Tests for nearest-neighbour magnification."""

    def test_factor_one_is_identity(self):
        pixels = np.arange(16, dtype=np.uint8).reshape(2, 2, 4)
        assert magnify(pixels, 1) is pixels

    def test_blocks_copy_source_exactly(self):
        pixels = np.arange(16, dtype=np.uint8).reshape(2, 2, 4)
        out = magnify(pixels, 4)

        assert out.shape == (8, 8, 4)
        for y in range(2):
            for x in range(2):
                block = out[y * 4:(y + 1) * 4, x * 4:(x + 1) * 4]
                assert (block == pixels[y, x]).all()

    def test_no_new_values(self):
        """Nearest-neighbour never invents channel values."""
        rng = np.random.default_rng(3)
        pixels = rng.integers(0, 256, size=(8, 8, 4), dtype=np.uint8)
        out = magnify(pixels, 2)
        assert set(np.unique(out)) <= set(np.unique(pixels))


class TestPixelSurface:
    """Tests for PixelSurface block access."""

    def test_starts_transparent(self):
        surface = PixelSurface(4, 3)
        assert (surface.width, surface.height) == (4, 3)
        assert not surface.pixels.any()

    def test_put_and_get_block(self):
        surface = PixelSurface(8, 8)
        block = np.full((2, 3, 4), 7, dtype=np.uint8)
        surface.put_pixels(block, x=4, y=5)

        np.testing.assert_array_equal(surface.get_pixels(4, 5, 3, 2), block)
        assert surface.pixels[0, 0, 0] == 0

    def test_get_returns_copy(self):
        surface = PixelSurface(2, 2)
        copy = surface.get_pixels()
        copy[...] = 9
        assert not surface.pixels.any()

    def test_put_out_of_bounds(self):
        surface = PixelSurface(4, 4)
        with pytest.raises(ValueError):
            surface.put_pixels(np.zeros((2, 2, 4), dtype=np.uint8), x=3, y=0)

    def test_invalid_size(self):
        with pytest.raises(SurfaceUnavailableError):
            PixelSurface(0, 10)

    def test_clear_and_release(self):
        surface = PixelSurface(2, 2)
        surface.put_pixels(np.full((2, 2, 4), 5, dtype=np.uint8))
        surface.clear()
        assert not surface.pixels.any()
        surface.release()
        assert surface.width == 0

    def test_to_qimage(self, qapp):  # noqa: ARG002
        surface = PixelSurface(5, 3)
        surface.put_pixels(np.full((3, 5, 4), 200, dtype=np.uint8))
        image = surface.to_qimage()
        assert image.width() == 5
        assert image.height() == 3
        assert not image.isNull()


class TestTileContainer:
    """Tests for placement, translation and compositing."""

    def _surface(self, value: int, alpha: int = 255, size: int = 4) -> PixelSurface:
        surface = PixelSurface(size, size)
        surface.pixels[..., :3] = value
        surface.pixels[..., 3] = alpha
        return surface

    def test_place_and_remove(self):
        container = TileContainer()
        container.place("a", self._surface(1), ScreenPoint(0, 0))
        assert container.is_placed("a")
        assert len(container) == 1
        container.remove("a")
        assert not container.is_placed("a")

    def test_screen_position_includes_translate(self):
        container = TileContainer()
        container.place("a", self._surface(1), ScreenPoint(10, 20))
        container.translate = ScreenPoint(-3, 5)
        assert container.screen_position("a") == ScreenPoint(7, 25)
        assert container.anchor_of("a") == ScreenPoint(10, 20)

    def test_composite_places_at_anchor(self):
        container = TileContainer()
        container.place("a", self._surface(100), ScreenPoint(2, 1))
        canvas = container.composite(8, 8)

        assert tuple(canvas[1, 2]) == (100, 100, 100, 255)
        assert tuple(canvas[0, 0]) == (0, 0, 0, 0)
        assert tuple(canvas[4, 5]) == (100, 100, 100, 255)
        assert tuple(canvas[5, 6]) == (0, 0, 0, 0)

    def test_composite_clips_to_viewport(self):
        container = TileContainer()
        container.place("a", self._surface(50), ScreenPoint(-2, -2))
        container.place("b", self._surface(60), ScreenPoint(100, 100))
        canvas = container.composite(4, 4)

        assert tuple(canvas[0, 0]) == (50, 50, 50, 255)
        assert tuple(canvas[2, 2]) == (0, 0, 0, 0)

    def test_composite_follows_translate(self):
        container = TileContainer()
        container.place("a", self._surface(80), ScreenPoint(0, 0))
        container.translate = ScreenPoint(4, 0)
        canvas = container.composite(8, 4)
        assert canvas[0, 0, 3] == 0
        assert tuple(canvas[0, 4]) == (80, 80, 80, 255)

    def test_transparent_pixels_do_not_cover(self):
        container = TileContainer()
        container.place("a", self._surface(80), ScreenPoint(0, 0))
        container.place("b", self._surface(200, alpha=0), ScreenPoint(0, 0))
        canvas = container.composite(4, 4)
        assert tuple(canvas[0, 0]) == (80, 80, 80, 255)

    def test_hidden_container_composites_empty(self):
        container = TileContainer()
        container.place("a", self._surface(80), ScreenPoint(0, 0))
        container.visible = False
        assert not container.composite(4, 4).any()

    def test_clear(self):
        container = TileContainer()
        container.place("a", self._surface(1), ScreenPoint(0, 0))
        container.place("b", self._surface(1), ScreenPoint(4, 0))
        container.clear()
        assert container.placed_keys() == []
