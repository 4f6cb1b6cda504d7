"""Map layer integration for gladtiles."""

from .host import MapHost, WebMercatorHost
from .compositor import AlertTileLayer, LayerState

__all__ = [
    "AlertTileLayer",
    "LayerState",
    "MapHost",
    "WebMercatorHost",
]
