"""Tile addressing for a 256x256 Web-Mercator tile pyramid.

Rows count down from the top of the world, so the row range of an extent
comes from ``ymax`` (smallest row) and ``ymin`` (largest row).
"""

from __future__ import annotations

import math
from typing import Iterator, NamedTuple

from gladtiles.core.types import Extent, TileAddress

#: Half the width of the Web-Mercator world, in metres
HALF_WORLD: float = 20037508.34

#: Upper-left corner of the tile pyramid in projected units
ORIGIN_X: float = -HALF_WORLD
ORIGIN_Y: float = HALF_WORLD

TILE_ROWS: int = 256
TILE_COLS: int = 256

#: Web-Mercator latitude limit
MAX_LATITUDE: float = 85.0511287798


class TileRange(NamedTuple):
    """Inclusive rectangle of tile columns and rows."""

    col_min: int
    row_min: int
    col_max: int
    row_max: int

    @property
    def count(self) -> int:
        """Number of tiles in the rectangle."""
        if self.col_max < self.col_min or self.row_max < self.row_min:
            return 0
        return (self.col_max - self.col_min + 1) * (self.row_max - self.row_min + 1)

    def addresses(self, zoom: int) -> Iterator[TileAddress]:
        """Yield every address in the rectangle, column by column."""
        for col in range(self.col_min, self.col_max + 1):
            for row in range(self.row_min, self.row_max + 1):
                yield TileAddress(col, row, zoom)


def tile_row(y: float, resolution: float) -> int:
    """Row of the tile containing projected ``y`` at ``resolution``."""
    size_in_map_units = TILE_ROWS * resolution
    return math.floor((ORIGIN_Y - y) / size_in_map_units)


def tile_col(x: float, resolution: float) -> int:
    """Column of the tile containing projected ``x`` at ``resolution``."""
    size_in_map_units = TILE_COLS * resolution
    return math.floor((x - ORIGIN_X) / size_in_map_units)


def tile_range(extent: Extent, resolution: float) -> TileRange:
    """Rectangle of tiles intersecting ``extent``."""
    return TileRange(
        col_min=tile_col(extent.xmin, resolution),
        row_min=tile_row(extent.ymax, resolution),
        col_max=tile_col(extent.xmax, resolution),
        row_max=tile_row(extent.ymin, resolution),
    )


def tiles_covering(extent: Extent, zoom: int, resolution: float) -> list[TileAddress]:
    """Every tile address of the rectangle covering ``extent`` at ``zoom``.

    The result is the full rectangle, so its size grows with viewport area.
    """
    return list(tile_range(extent, resolution).addresses(zoom))


def zoom_steps(zoom: int, max_zoom: int) -> int:
    """Number of levels ``zoom`` lies past ``max_zoom`` (0 if not past it)."""
    return max(0, zoom - max_zoom)


def scale_range(tiles: TileRange, steps: int) -> TileRange:
    """Map a tile range ``steps`` levels down the pyramid.

    Columns and rows are floor-divided by ``2**steps`` and the result is
    widened by one tile on every side to absorb rounding.
    """
    factor = 2 ** steps
    return TileRange(
        col_min=tiles.col_min // factor - 1,
        row_min=tiles.row_min // factor - 1,
        col_max=tiles.col_max // factor + 1,
        row_max=tiles.row_max // factor + 1,
    )


def needed_tiles(
    extent: Extent, zoom: int, resolution: float, max_zoom: int
) -> list[TileAddress]:
    """Tiles to request for a view, falling back to ``max_zoom`` when deeper.

    Args:
        extent: Visible extent in projected units
        zoom: Current map zoom level
        resolution: Map units per screen pixel at ``zoom``
        max_zoom: Deepest level the tile source serves

    Returns:
        Addresses at ``min(zoom, max_zoom)``.
    """
    tiles = tile_range(extent, resolution)
    steps = zoom_steps(zoom, max_zoom)
    if steps:
        tiles = scale_range(tiles, steps)
        zoom = max_zoom
    return list(tiles.addresses(zoom))


def in_pyramid(address: TileAddress) -> bool:
    """Whether ``address`` lies inside the world at its zoom level."""
    size = 2 ** address.zoom
    return 0 <= address.col < size and 0 <= address.row < size


def tile_top_left_lonlat(col: int, row: int, zoom: int) -> tuple[float, float]:
    """Longitude and latitude of a tile's upper-left corner."""
    n = 2 ** zoom
    lon = col / n * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi - 2.0 * math.pi * row / n)))
    return lon, lat


def resolution_for_zoom(zoom: int) -> float:
    """Map units per pixel at ``zoom`` for 256-pixel tiles."""
    return 2.0 * HALF_WORLD / (TILE_COLS * 2 ** zoom)


def lonlat_to_meters(lon: float, lat: float) -> tuple[float, float]:
    """Project WGS84 degrees to Web-Mercator metres."""
    lat = max(min(lat, MAX_LATITUDE), -MAX_LATITUDE)
    x = lon * HALF_WORLD / 180.0
    y = math.log(math.tan(math.pi / 4.0 + math.radians(lat) / 2.0)) * HALF_WORLD / math.pi
    return x, y


def meters_to_lonlat(x: float, y: float) -> tuple[float, float]:
    """Inverse of :func:`lonlat_to_meters`."""
    lon = x / HALF_WORLD * 180.0
    lat = math.degrees(2.0 * math.atan(math.exp(y / HALF_WORLD * math.pi)) - math.pi / 2.0)
    return lon, lat
