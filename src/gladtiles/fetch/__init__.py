"""Tile transport for gladtiles."""

from .fetcher import TileFetcher, decode_tile_image, format_tile_url
from .loader import TileLoader

__all__ = [
    "TileFetcher",
    "TileLoader",
    "decode_tile_image",
    "format_tile_url",
]
