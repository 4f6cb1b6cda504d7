"""Tests for tile addressing."""

from __future__ import annotations

import pytest

from gladtiles.core.addressing import (
    HALF_WORLD,
    TileRange,
    in_pyramid,
    lonlat_to_meters,
    meters_to_lonlat,
    needed_tiles,
    resolution_for_zoom,
    scale_range,
    tile_col,
    tile_range,
    tile_row,
    tile_top_left_lonlat,
    tiles_covering,
    zoom_steps,
)
from gladtiles.core.types import Extent, TileAddress


class TestRowsAndColumns:
    """Tests for projected coordinate to tile index conversion."""

    def test_origin_is_tile_zero(self):
        res = resolution_for_zoom(3)
        assert tile_col(-HALF_WORLD + 1, res) == 0
        assert tile_row(HALF_WORLD - 1, res) == 0

    def test_last_tile(self):
        res = resolution_for_zoom(3)
        assert tile_col(HALF_WORLD - 1, res) == 7
        assert tile_row(-HALF_WORLD + 1, res) == 7

    def test_world_centre_at_zoom_one(self):
        res = resolution_for_zoom(1)
        assert tile_col(1.0, res) == 1
        assert tile_col(-1.0, res) == 0
        # North of the equator is row 0, south is row 1
        assert tile_row(1.0, res) == 0
        assert tile_row(-1.0, res) == 1

    def test_row_range_uses_ymax_for_minimum(self):
        """Rows grow southwards, so ymax gives the smallest row."""
        res = resolution_for_zoom(1)
        tiles = tile_range(Extent(-10.0, -10.0, 10.0, 10.0), res)
        assert tiles == TileRange(col_min=0, row_min=0, col_max=1, row_max=1)
        assert tiles.row_min <= tiles.row_max


class TestTilesCovering:
    """Tests for the rectangle of tiles covering an extent."""

    def test_cardinality_is_rectangle(self):
        res = resolution_for_zoom(5)
        extent = Extent(-3_000_000.0, -1_000_000.0, 2_500_000.0, 4_000_000.0)
        tiles = tiles_covering(extent, 5, res)
        rng = tile_range(extent, res)

        assert len(tiles) == (rng.col_max - rng.col_min + 1) * (rng.row_max - rng.row_min + 1)
        assert len(tiles) == rng.count
        assert len(set(tiles)) == len(tiles)
        assert all(t.zoom == 5 for t in tiles)

    def test_monotonic_in_viewport_area(self):
        res = resolution_for_zoom(6)
        counts = []
        for half in (100_000.0, 400_000.0, 900_000.0, 2_000_000.0):
            extent = Extent(-half, -half, half, half)
            counts.append(len(tiles_covering(extent, 6, res)))
        assert counts == sorted(counts)

    def test_extent_inside_one_tile(self):
        res = resolution_for_zoom(2)
        # Tile (2, 1) at zoom 2 spans x 0..HALF/2 and y 0..HALF/2
        tiles = tiles_covering(Extent(1000.0, 1000.0, 2000.0, 2000.0), 2, res)
        assert tiles == [TileAddress(2, 1, 2)]

    def test_column_major_order(self):
        assert list(TileRange(0, 0, 1, 1).addresses(4)) == [
            TileAddress(0, 0, 4),
            TileAddress(0, 1, 4),
            TileAddress(1, 0, 4),
            TileAddress(1, 1, 4),
        ]

    def test_empty_range_count(self):
        assert TileRange(3, 3, 2, 2).count == 0


class TestZoomOverflow:
    """Tests for requesting coarser tiles past the maximum zoom."""

    def test_zoom_steps(self):
        assert zoom_steps(14, 12) == 2
        assert zoom_steps(12, 12) == 0
        assert zoom_steps(5, 12) == 0

    def test_scale_range_divides_and_adds_slack(self):
        assert scale_range(TileRange(8, 8, 11, 11), 2) == TileRange(1, 1, 3, 3)

    def test_scale_range_floors_negative(self):
        assert scale_range(TileRange(-1, -1, 0, 0), 1) == TileRange(-2, -2, 1, 1)

    def test_needed_tiles_below_max_zoom(self):
        res = resolution_for_zoom(7)
        extent = Extent(-500_000.0, -500_000.0, 500_000.0, 500_000.0)
        assert needed_tiles(extent, 7, res, 12) == tiles_covering(extent, 7, res)

    def test_needed_tiles_past_max_zoom(self):
        res = resolution_for_zoom(14)
        extent = Extent(10_000.0, 10_000.0, 20_000.0, 20_000.0)
        fine = tile_range(extent, res)
        tiles = needed_tiles(extent, 14, res, 12)

        assert all(t.zoom == 12 for t in tiles)
        coarse = scale_range(fine, 2)
        assert set(tiles) == set(coarse.addresses(12))
        # Every fine tile's parent is among the coarse tiles
        for t in fine.addresses(14):
            assert TileAddress(t.col // 4, t.row // 4, 12) in tiles


class TestTilePositions:
    """Tests for tile corner coordinates."""

    def test_world_tile_corner(self):
        lon, lat = tile_top_left_lonlat(0, 0, 0)
        assert lon == pytest.approx(-180.0)
        assert lat == pytest.approx(85.0511287798, abs=1e-6)

    def test_centre_tile_corner(self):
        lon, lat = tile_top_left_lonlat(1, 1, 1)
        assert lon == pytest.approx(0.0)
        assert lat == pytest.approx(0.0, abs=1e-9)

    def test_corner_projects_to_tile_boundary(self):
        """A tile's corner, projected, lands on the tile grid."""
        lon, lat = tile_top_left_lonlat(100, 60, 7)
        x, y = lonlat_to_meters(lon, lat)
        size = 2 * HALF_WORLD / 2 ** 7
        assert x == pytest.approx(-HALF_WORLD + 100 * size, abs=1e-3)
        assert y == pytest.approx(HALF_WORLD - 60 * size, abs=1e-3)

    def test_meters_lonlat_inverse(self):
        lon, lat = meters_to_lonlat(*lonlat_to_meters(113.763, 0.334))
        assert lon == pytest.approx(113.763)
        assert lat == pytest.approx(0.334)

    def test_in_pyramid(self):
        assert in_pyramid(TileAddress(0, 0, 0))
        assert in_pyramid(TileAddress(3, 3, 2))
        assert not in_pyramid(TileAddress(4, 0, 2))
        assert not in_pyramid(TileAddress(-1, 0, 2))
