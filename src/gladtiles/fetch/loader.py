"""Asynchronous tile loading on a Qt thread pool."""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from gladtiles.config import FETCH_THREADS
from gladtiles.core.types import TileAddress
from gladtiles.fetch.fetcher import TileFetcher

logger = logging.getLogger(__name__)


class _FetchTask(QRunnable):
    """Fetches one tile on a pool thread and reports back through the loader."""

    def __init__(self, loader: TileLoader, address: TileAddress, epoch: int) -> None:
        super().__init__()
        self._loader = loader
        self._address = address
        self._epoch = epoch

    def run(self) -> None:
        try:
            pixels = self._loader.fetcher.fetch(self._address)
        except Exception as e:
            logger.exception("Tile fetch crashed: %s", self._address.key)
            self._loader.tileFailed.emit(self._address, self._epoch, str(e))
            return

        if pixels is None:
            self._loader.tileFailed.emit(self._address, self._epoch, "fetch failed")
        else:
            self._loader.tileLoaded.emit(self._address, self._epoch, pixels)


class TileLoader(QObject):
    """Runs tile fetches in the background and signals their results.

    Signals are emitted from pool threads; connected slots on objects living
    in the GUI thread are invoked there through queued connections, so
    receivers never run concurrently with each other.

    Each request carries the caller's epoch, which is echoed back unchanged.
    """

    tileLoaded = Signal(object, int, object)  # TileAddress, epoch, ndarray
    tileFailed = Signal(object, int, str)  # TileAddress, epoch, reason

    def __init__(
        self,
        fetcher: TileFetcher | None = None,
        max_threads: int = FETCH_THREADS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.fetcher = fetcher if fetcher is not None else TileFetcher()
        self._pool = QThreadPool(self)
        self._pool.setMaxThreadCount(max_threads)

    def request(self, address: TileAddress, epoch: int) -> None:
        """Start fetching ``address`` in the background."""
        logger.debug("Requesting tile %s (epoch %d)", address.key, epoch)
        self._pool.start(_FetchTask(self, address, epoch))

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Block until every running fetch has finished."""
        return self._pool.waitForDone(msecs)

    def close(self, msecs: int = -1) -> bool:
        """Cancel queued fetches, wait up to ``msecs`` for running ones, close the fetcher.

        Returns:
            False if fetches were still running when the wait ended.
        """
        self._pool.clear()
        done = self._pool.waitForDone(msecs)
        if not done:
            logger.warning(
                "%d tile fetch(es) still running after %d ms",
                self._pool.activeThreadCount(), msecs,
            )
        self.fetcher.close()
        return done
