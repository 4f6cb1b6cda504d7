"""Codec, addressing and cache for gladtiles."""

from .types import DecodedPixel, Extent, FilterParams, ScreenPoint, TileAddress, ViewState
from .codec import decode_pixel, decode_buffer, encode_pixel, filter_buffer
from .cache import CachedTile, TileCache
from .surface import PixelSurface, TileContainer, SurfaceUnavailableError

__all__ = [
    "DecodedPixel",
    "Extent",
    "FilterParams",
    "ScreenPoint",
    "TileAddress",
    "ViewState",
    "decode_pixel",
    "decode_buffer",
    "encode_pixel",
    "filter_buffer",
    "CachedTile",
    "TileCache",
    "PixelSurface",
    "TileContainer",
    "SurfaceUnavailableError",
]
