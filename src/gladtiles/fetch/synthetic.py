"""Offline tile source producing deterministic codec-encoded tiles."""

from __future__ import annotations

import logging
import zlib

import numpy as np

from gladtiles.config import TILE_SIZE
from gladtiles.core.codec import BASE_YEAR, DAYS_PER_YEAR, MAX_RAW_INTENSITY
from gladtiles.core.types import TileAddress

logger = logging.getLogger(__name__)


def encode_arrays(
    dates: np.ndarray, confidence: np.ndarray, raw_intensity: np.ndarray
) -> np.ndarray:
    """Vectorised codec encoder returning an ``(H, W, 4)`` uint8 array.

    Alpha is set to 255. Inputs must already be in the encodable range.
    """
    year, day = np.divmod(dates.astype(np.int32), 1000)
    total_days = (year - BASE_YEAR) * DAYS_PER_YEAR + day
    red, green = np.divmod(total_days, 255)
    blue = (confidence.astype(np.int32) + 1) * 100 + raw_intensity

    out = np.empty(dates.shape + (4,), dtype=np.uint8)
    out[..., 0] = red
    out[..., 1] = green
    out[..., 2] = blue
    out[..., 3] = 255
    return out


def synthetic_tile(
    address: TileAddress, tile_size: int = TILE_SIZE, density: float = 0.3
) -> np.ndarray:
    """Generate a reproducible tile of random alerts for ``address``.

    About ``density`` of the pixels carry an alert from years 15-16; the
    rest are zero, which decodes to an invalid confidence and never shows.
    """
    seed = zlib.crc32(address.key.encode())
    rng = np.random.default_rng(seed)
    shape = (tile_size, tile_size)

    year = rng.integers(BASE_YEAR, BASE_YEAR + 2, size=shape)
    day = rng.integers(0, DAYS_PER_YEAR, size=shape)
    confidence = rng.integers(0, 2, size=shape)
    intensity = rng.integers(1, MAX_RAW_INTENSITY + 1, size=shape)

    tile = encode_arrays(year * 1000 + day, confidence, intensity)
    empty = rng.random(shape) >= density
    tile[empty, :3] = 0
    return tile


class SyntheticTileFetcher:
    """Drop-in replacement for :class:`TileFetcher` that never touches the network."""

    def __init__(self, tile_size: int = TILE_SIZE, density: float = 0.3) -> None:
        self.tile_size = tile_size
        self.density = density

    def fetch(self, address: TileAddress) -> np.ndarray:
        logger.debug("Synthesising tile %s", address.key)
        return synthetic_tile(address, self.tile_size, self.density)

    def close(self) -> None:
        pass
