"""Zoom-scoped cache of fetched and rendered tiles."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import numpy as np

from gladtiles.core.surface import PixelSurface
from gladtiles.core.types import ScreenPoint, TileAddress

logger = logging.getLogger(__name__)


@dataclass
class CachedTile:
    """A fetched tile and its rendered surface.

    Attributes:
        address: Tile address the pixels were fetched for
        raw_pixels: RGBA pixels as fetched; read-only
        rendered: Filtered (and possibly magnified) surface owned by the tile
        anchor: Container position once placed, ``None`` before placement
    """

    address: TileAddress
    raw_pixels: np.ndarray
    rendered: PixelSurface
    anchor: ScreenPoint | None = None

    def __post_init__(self) -> None:
        self.raw_pixels.flags.writeable = False

    @property
    def scale(self) -> int:
        """Magnification of ``rendered`` relative to ``raw_pixels``."""
        return self.rendered.width // self.raw_pixels.shape[1]


class TileCache:
    """Thread-safe store of cached tiles for a single zoom level.

    Entries are only dropped by :meth:`invalidate_all`, which the layer calls
    on every zoom transition. There is no size-based eviction; the number of
    entries is bounded by the tiles viewed at one zoom level.
    """

    def __init__(self) -> None:
        self._tiles: dict[TileAddress, CachedTile] = {}
        self._lock = threading.Lock()
        self._epoch = 0
        self._zoom: int | None = None
        self._hits = 0
        self._misses = 0

    @property
    def epoch(self) -> int:
        """Counter advanced by every :meth:`invalidate_all`."""
        with self._lock:
            return self._epoch

    @property
    def zoom(self) -> int | None:
        """Zoom level of the cached tiles, ``None`` while empty."""
        with self._lock:
            return self._zoom

    def get(self, address: TileAddress) -> CachedTile | None:
        """Look up a tile; returns ``None`` on a miss."""
        with self._lock:
            tile = self._tiles.get(address)
            if tile is None:
                self._misses += 1
            else:
                self._hits += 1
            return tile

    def has(self, address: TileAddress) -> bool:
        with self._lock:
            return address in self._tiles

    def put(self, address: TileAddress, tile: CachedTile) -> None:
        """Insert or replace a tile.

        Raises:
            ValueError: If ``address`` belongs to another zoom level than the
                tiles already cached.
        """
        with self._lock:
            if self._zoom is not None and address.zoom != self._zoom:
                raise ValueError(
                    f"Tile {address.key} does not belong to cached zoom {self._zoom}"
                )
            self._zoom = address.zoom
            self._tiles[address] = tile

    def tiles(self) -> list[CachedTile]:
        """Snapshot of every cached tile."""
        with self._lock:
            return list(self._tiles.values())

    def invalidate_all(self) -> int:
        """Drop every tile, release its surface and start a new epoch.

        Returns:
            The new epoch.
        """
        with self._lock:
            count = len(self._tiles)
            for tile in self._tiles.values():
                tile.rendered.release()
            self._tiles.clear()
            self._zoom = None
            self._epoch += 1
            epoch = self._epoch
        logger.debug("Invalidated %d cached tiles, epoch now %d", count, epoch)
        return epoch

    def __len__(self) -> int:
        with self._lock:
            return len(self._tiles)

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._tiles

    def get_cache_stats(self) -> dict:
        """Return cache hit/miss counts for diagnostics."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._tiles),
                "epoch": self._epoch,
                "zoom": self._zoom,
            }
