"""Test fixtures for gladtiles tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import numpy as np
import pytest
from PySide6.QtCore import QCoreApplication, QObject, Signal

from gladtiles.core.addressing import tile_top_left_lonlat
from gladtiles.core.types import TileAddress
from gladtiles.fetch.synthetic import encode_arrays
from gladtiles.layer.host import WebMercatorHost

TILE = 256
HALF = TILE // 2


@pytest.fixture(scope="session")
def qapp():
    """Create a Qt application for testing (shared across all test files)."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _quadrant_tile() -> np.ndarray:
    """Build a 256x256 RGBA tile with one kind of alert per quadrant.

    - top-left: 15050, confirmed, raw intensity 3 (alpha 150)
    - top-right: 15150, unconfirmed, raw intensity 2 (alpha 100)
    - bottom-left: 16100, confirmed, raw intensity 55 (alpha 255)
    - bottom-right: all zero, no alert
    """
    dates = np.zeros((TILE, TILE), dtype=np.int32)
    confidence = np.zeros((TILE, TILE), dtype=np.int32)
    intensity = np.zeros((TILE, TILE), dtype=np.int32)

    dates[:HALF, :HALF], confidence[:HALF, :HALF], intensity[:HALF, :HALF] = 15050, 1, 3
    dates[:HALF, HALF:], confidence[:HALF, HALF:], intensity[:HALF, HALF:] = 15150, 0, 2
    dates[HALF:, :HALF], confidence[HALF:, :HALF], intensity[HALF:, :HALF] = 16100, 1, 55
    dates[HALF:, HALF:] = 15000

    tile = encode_arrays(dates, confidence, intensity)
    tile[HALF:, HALF:, :3] = 0
    return tile


@pytest.fixture
def quadrant_tile() -> np.ndarray:
    """Codec-encoded tile with a different alert in each quadrant."""
    return _quadrant_tile()


class FakeLoader(QObject):
    """Loader double that records requests and completes them on demand."""

    tileLoaded = Signal(object, int, object)
    tileFailed = Signal(object, int, str)

    def __init__(self) -> None:
        super().__init__()
        self.requests: list[tuple[TileAddress, int]] = []

    def request(self, address: TileAddress, epoch: int) -> None:
        self.requests.append((address, epoch))

    @property
    def addresses(self) -> list[TileAddress]:
        return [address for address, _ in self.requests]

    def _epoch_of(self, address: TileAddress) -> int:
        for requested, epoch in reversed(self.requests):
            if requested == address:
                return epoch
        raise KeyError(address)

    def complete(self, address: TileAddress, pixels: np.ndarray) -> None:
        self.tileLoaded.emit(address, self._epoch_of(address), pixels)

    def complete_all(self, pixels: np.ndarray) -> None:
        for address, epoch in list(self.requests):
            self.tileLoaded.emit(address, epoch, pixels)

    def fail(self, address: TileAddress, reason: str = "HTTP 404") -> None:
        self.tileFailed.emit(address, self._epoch_of(address), reason)


@pytest.fixture
def fake_loader(qapp) -> FakeLoader:  # noqa: ARG001
    return FakeLoader()


@pytest.fixture
def four_tile_host() -> WebMercatorHost:
    """256x256 viewport at zoom 7 centred on the corner shared by four tiles.

    Covers columns 99-100 and rows 59-60.
    """
    lon, lat = tile_top_left_lonlat(100, 60, 7)
    return WebMercatorHost(lon, lat, 7, width=TILE, height=TILE)
