"""Centralized configuration for gladtiles.

All tunable parameters are defined here with sensible defaults.
Values can be overridden via environment variables.

Environment Variables:
    GLADTILES_URL_TEMPLATE: Tile URL with {z}/{x}/{y} placeholders
    GLADTILES_TILE_SIZE: Tile edge length in pixels (default: 256)
    GLADTILES_MAX_ZOOM: Deepest zoom level with real tiles (default: 12)
    GLADTILES_MAX_OVERFLOW_STEPS: Max zoom levels past MAX_ZOOM for the CLI (default: 4)
    GLADTILES_MIN_DATE: Initial lower bound of the date filter, YYDDD (default: 15000)
    GLADTILES_MAX_DATE: Initial upper bound of the date filter, YYDDD (default: 16365)
    GLADTILES_FETCH_TIMEOUT: HTTP timeout per tile in seconds (default: 10.0)
    GLADTILES_FETCH_THREADS: Max concurrent tile fetches (default: 8)
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


def _get_env_int(name: str, default: int) -> int:
    """Get an integer from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Invalid integer for %s: %r, using default %d", name, value, default
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Get a float from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(
                "Invalid float for %s: %r, using default %.1f", name, value, default
            )
    return default


def _get_env_str(name: str, default: str) -> str:
    """Get a string from environment variable with fallback."""
    return os.environ.get(name, default)


# =============================================================================
# Tile Source
# =============================================================================

#: Tile URL template, {z}/{x}/{y} are zoom, column and row
URL_TEMPLATE: str = _get_env_str(
    "GLADTILES_URL_TEMPLATE",
    "http://wri-tiles.s3.amazonaws.com/glad_test/test2/{z}/{x}/{y}.png",
)

#: Tile edge length in pixels
TILE_SIZE: int = _get_env_int("GLADTILES_TILE_SIZE", 256)

#: Deepest zoom level the tile source serves; deeper zooms magnify these tiles
MAX_ZOOM: int = _get_env_int("GLADTILES_MAX_ZOOM", 12)

#: Most levels past MAX_ZOOM the CLI renders; each level quadruples surface memory
MAX_OVERFLOW_STEPS: int = _get_env_int("GLADTILES_MAX_OVERFLOW_STEPS", 4)


# =============================================================================
# Filter Defaults
# =============================================================================

#: Initial lower bound of the date filter (YYDDD)
MIN_DATE: int = _get_env_int("GLADTILES_MIN_DATE", 15000)

#: Initial upper bound of the date filter (YYDDD)
MAX_DATE: int = _get_env_int("GLADTILES_MAX_DATE", 16365)

#: Confidence values shown by default (0 = unconfirmed, 1 = confirmed)
DEFAULT_CONFIDENCE: frozenset[int] = frozenset({0, 1})

#: Colour painted over every visible alert pixel
HIGHLIGHT_COLOR: tuple[int, int, int] = (220, 102, 153)


# =============================================================================
# Fetching
# =============================================================================

#: HTTP timeout per tile request, in seconds
FETCH_TIMEOUT: float = _get_env_float("GLADTILES_FETCH_TIMEOUT", 10.0)

#: Maximum number of tile fetches running at once
FETCH_THREADS: int = _get_env_int("GLADTILES_FETCH_THREADS", 8)


# =============================================================================
# Pixel Layout
# =============================================================================

#: RGBA bytes per pixel (for stride calculations)
RGBA_BYTES_PER_PIXEL: int = 4


# =============================================================================
# Validation
# =============================================================================


def _validate_config() -> None:
    """Validate configuration values and log warnings for out-of-range settings."""
    global TILE_SIZE, MAX_ZOOM, MAX_OVERFLOW_STEPS, FETCH_TIMEOUT, FETCH_THREADS

    if TILE_SIZE < 1:
        logger.warning("TILE_SIZE=%d is too low, clamping to 256", TILE_SIZE)
        TILE_SIZE = 256

    if MAX_ZOOM < 0:
        logger.warning("MAX_ZOOM=%d is negative, clamping to 0", MAX_ZOOM)
        MAX_ZOOM = 0

    if MAX_OVERFLOW_STEPS < 0:
        logger.warning(
            "MAX_OVERFLOW_STEPS=%d is negative, clamping to 0", MAX_OVERFLOW_STEPS
        )
        MAX_OVERFLOW_STEPS = 0

    if FETCH_TIMEOUT <= 0:
        logger.warning(
            "FETCH_TIMEOUT=%.1f is not positive, clamping to 1.0", FETCH_TIMEOUT
        )
        FETCH_TIMEOUT = 1.0

    if FETCH_THREADS < 1:
        logger.warning("FETCH_THREADS=%d is too low, clamping to 1", FETCH_THREADS)
        FETCH_THREADS = 1


_validate_config()
