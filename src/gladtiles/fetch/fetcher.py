"""Blocking tile download and image decode."""

from __future__ import annotations

import io
import logging
import threading
from typing import Callable

import numpy as np
import requests
from PIL import Image as PILImage, UnidentifiedImageError

from gladtiles.config import FETCH_TIMEOUT, TILE_SIZE, URL_TEMPLATE
from gladtiles.core.types import TileAddress

logger = logging.getLogger(__name__)


def format_tile_url(template: str, address: TileAddress) -> str:
    """Substitute ``{z}``, ``{x}`` and ``{y}`` in a tile URL template."""
    return (
        template.replace("{z}", str(address.zoom))
        .replace("{x}", str(address.col))
        .replace("{y}", str(address.row))
    )


def decode_tile_image(data: bytes, tile_size: int = TILE_SIZE) -> np.ndarray | None:
    """Decode PNG/JPEG bytes into an ``(tile_size, tile_size, 4)`` uint8 array.

    The source alpha channel carries no codec data and is replaced by 255.

    Returns:
        The pixel array, or None if the bytes are not a tile-sized image.
    """
    try:
        with PILImage.open(io.BytesIO(data)) as img:
            rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8).copy()
    except (UnidentifiedImageError, OSError) as e:
        logger.warning("Malformed tile image (%d bytes): %s", len(data), e)
        return None

    if rgba.shape[:2] != (tile_size, tile_size):
        logger.warning(
            "Unexpected tile size %dx%d (expected %d)",
            rgba.shape[1], rgba.shape[0], tile_size,
        )
        return None

    rgba[..., 3] = 255
    return rgba


class TileFetcher:
    """Downloads and decodes tiles from a URL template.

    Each call is independent; failures are logged and reported as ``None``
    rather than raised. Every calling thread gets its own session from
    ``session_factory``, since a ``requests.Session`` may not be shared
    between threads.
    """

    def __init__(
        self,
        url_template: str = URL_TEMPLATE,
        tile_size: int = TILE_SIZE,
        timeout: float = FETCH_TIMEOUT,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.url_template = url_template
        self.tile_size = tile_size
        self.timeout = timeout
        self._session_factory = session_factory
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def _session(self) -> requests.Session:
        """Session owned by the calling thread."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def tile_url(self, address: TileAddress) -> str:
        return format_tile_url(self.url_template, address)

    def fetch_bytes(self, address: TileAddress) -> bytes | None:
        """Download the encoded image for ``address``."""
        url = self.tile_url(address)
        try:
            resp = self._session().get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Tile request failed: %s: %s", url, e)
            return None

        if not 200 <= resp.status_code < 300:
            logger.warning("Tile request failed: %s returned HTTP %d", url, resp.status_code)
            return None
        return resp.content

    def fetch(self, address: TileAddress) -> np.ndarray | None:
        """Download and decode a tile.

        Returns:
            RGBA pixels of the tile, or None on any transport or decode error.
        """
        data = self.fetch_bytes(address)
        if data is None:
            return None
        pixels = decode_tile_image(data, self.tile_size)
        if pixels is not None:
            logger.debug("Tile fetched: %s (%d bytes)", address.key, len(data))
        return pixels

    def close(self) -> None:
        """Close every session created so far."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()
