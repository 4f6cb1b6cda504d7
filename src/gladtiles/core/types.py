"""Shared type definitions for gladtiles core module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from gladtiles.config import DEFAULT_CONFIDENCE, MAX_DATE, MIN_DATE


class TileAddress(NamedTuple):
    """Address of a tile in the pyramid.

    Attributes:
        col: Column index (x in the URL template)
        row: Row index (y in the URL template)
        zoom: Zoom level (z in the URL template)
    """

    col: int
    row: int
    zoom: int

    @property
    def key(self) -> str:
        """Composite string key, ``"col_row_zoom"``."""
        return f"{self.col}_{self.row}_{self.zoom}"

    @classmethod
    def from_key(cls, key: str) -> TileAddress:
        """Parse a ``"col_row_zoom"`` key.

        Raises:
            ValueError: If the key does not have three integer parts.
        """
        parts = key.split("_")
        if len(parts) != 3:
            raise ValueError(f"Invalid tile key: {key!r}")
        col, row, zoom = (int(p) for p in parts)
        return cls(col, row, zoom)


class DecodedPixel(NamedTuple):
    """Values packed into one tile pixel.

    Attributes:
        date: Alert date in YYDDD form (e.g. 16045)
        confidence: 0 (unconfirmed) or 1 (confirmed); -1 for lossy blue bands
        intensity: Display alpha, 0..255
    """

    date: int
    confidence: int
    intensity: int


class ScreenPoint(NamedTuple):
    """A point in screen pixels."""

    x: float
    y: float


ORIGIN_POINT = ScreenPoint(0.0, 0.0)


class Extent(NamedTuple):
    """Axis-aligned extent in projected map units (Web Mercator metres)."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin


class ViewState(NamedTuple):
    """Snapshot of what the host map is showing.

    Attributes:
        extent: Visible extent in map units
        zoom: Current zoom level
        resolution: Map units per screen pixel
    """

    extent: Extent
    zoom: int
    resolution: float


@dataclass(frozen=True)
class FilterParams:
    """Date and confidence filter applied to every rendered tile.

    ``min_date <= max_date`` is not enforced: an inverted range simply
    matches no pixel.
    """

    min_date: int = MIN_DATE
    max_date: int = MAX_DATE
    confidence_set: frozenset[int] = field(default=DEFAULT_CONFIDENCE)

    @staticmethod
    def confidence_for_level(level: str) -> frozenset[int]:
        """Map a UI confidence level to the set of values it shows.

        ``"all"`` shows both confidences; any other value means confirmed only.
        """
        return frozenset({0, 1}) if level == "all" else frozenset({1})

    def with_date_range(self, min_date: int, max_date: int) -> FilterParams:
        return FilterParams(int(min_date), int(max_date), self.confidence_set)

    def with_confidence_level(self, level: str) -> FilterParams:
        return FilterParams(
            self.min_date, self.max_date, self.confidence_for_level(level)
        )
