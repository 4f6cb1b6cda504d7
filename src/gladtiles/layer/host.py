"""Host map contract and a self-contained Web-Mercator host.

A layer only needs a handful of things from the map it is drawn on: the
visible extent, zoom level and resolution, a projection from longitude and
latitude to screen pixels, and event subscription. :class:`MapHost`
captures that contract; :class:`WebMercatorHost` implements it without any
GUI, for rendering off-screen and for tests.

Events and their handler arguments:

- ``extent-change``: ``(view: ViewState)`` after every pan or zoom
- ``pan``: ``(delta: ScreenPoint)`` while dragging, relative to pan start
- ``pan-end``: ``(delta: ScreenPoint)`` once, with the final drag delta
- ``zoom-start``: no arguments, before the zoom level changes
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Protocol

from gladtiles.core.addressing import lonlat_to_meters, meters_to_lonlat, resolution_for_zoom
from gladtiles.core.types import Extent, ScreenPoint, ViewState

logger = logging.getLogger(__name__)

EXTENT_CHANGE = "extent-change"
PAN = "pan"
PAN_END = "pan-end"
ZOOM_START = "zoom-start"

EVENTS = (EXTENT_CHANGE, PAN, PAN_END, ZOOM_START)


class MapHost(Protocol):
    """Capabilities a layer consumes from the map it is attached to."""

    @property
    def extent(self) -> Extent: ...

    @property
    def level(self) -> int: ...

    @property
    def resolution(self) -> float: ...

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def view_state(self) -> ViewState: ...

    def to_screen(self, lon: float, lat: float) -> ScreenPoint: ...

    def on(self, event: str, handler: Callable) -> None: ...

    def off(self, event: str, handler: Callable) -> None: ...


class WebMercatorHost:
    """A map viewport defined by a centre, a zoom level and a pixel size."""

    def __init__(self, lon: float, lat: float, zoom: int, width: int = 512, height: int = 512) -> None:
        self._center = lonlat_to_meters(lon, lat)
        self._zoom = int(zoom)
        self._width = int(width)
        self._height = int(height)
        self._handlers: dict[str, list[Callable]] = defaultdict(list)

    # ------------------------------------------------------------------
    # MapHost
    # ------------------------------------------------------------------

    @property
    def level(self) -> int:
        return self._zoom

    @property
    def resolution(self) -> float:
        return resolution_for_zoom(self._zoom)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def extent(self) -> Extent:
        half_w = self._width / 2 * self.resolution
        half_h = self._height / 2 * self.resolution
        cx, cy = self._center
        return Extent(cx - half_w, cy - half_h, cx + half_w, cy + half_h)

    @property
    def center(self) -> tuple[float, float]:
        """Centre of the view as (lon, lat)."""
        return meters_to_lonlat(*self._center)

    def view_state(self) -> ViewState:
        return ViewState(self.extent, self._zoom, self.resolution)

    def to_screen(self, lon: float, lat: float) -> ScreenPoint:
        x, y = lonlat_to_meters(lon, lat)
        extent = self.extent
        return ScreenPoint(
            (x - extent.xmin) / self.resolution,
            (extent.ymax - y) / self.resolution,
        )

    def on(self, event: str, handler: Callable) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown map event: {event!r}")
        self._handlers[event].append(handler)

    def off(self, event: str, handler: Callable) -> None:
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            pass

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def emit(self, event: str, *args) -> None:
        """Call every handler subscribed to ``event``."""
        for handler in list(self._handlers[event]):
            handler(*args)

    def refresh(self) -> None:
        """Announce the current extent, as a map does after loading."""
        self.emit(EXTENT_CHANGE, self.view_state())

    def pan(self, dx: float, dy: float, steps: int = 1) -> None:
        """Drag the map by ``(dx, dy)`` screen pixels.

        Emits ``pan`` for each intermediate step, then ``pan-end`` and
        ``extent-change``.
        """
        steps = max(1, steps)
        for i in range(1, steps + 1):
            self.emit(PAN, ScreenPoint(dx * i / steps, dy * i / steps))

        cx, cy = self._center
        self._center = (cx - dx * self.resolution, cy + dy * self.resolution)
        delta = ScreenPoint(float(dx), float(dy))
        logger.debug("Panned by (%.1f, %.1f)", dx, dy)
        self.emit(PAN_END, delta)
        self.refresh()

    def zoom_to(self, zoom: int) -> None:
        """Change zoom level around the current centre."""
        self.emit(ZOOM_START)
        self._zoom = int(zoom)
        logger.debug("Zoomed to level %d", self._zoom)
        self.refresh()
