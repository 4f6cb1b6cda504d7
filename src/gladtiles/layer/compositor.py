"""AlertTileLayer: fetches, filters, caches and places alert tiles."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

import numpy as np
from PySide6.QtCore import Property, QObject, Signal, Slot

from gladtiles.config import MAX_ZOOM, RGBA_BYTES_PER_PIXEL, TILE_SIZE
from gladtiles.core.addressing import in_pyramid, needed_tiles, tile_top_left_lonlat
from gladtiles.core.cache import CachedTile, TileCache
from gladtiles.core.codec import filter_buffer
from gladtiles.core.surface import (
    PixelSurface,
    SurfaceUnavailableError,
    TileContainer,
    create_surface,
    magnify,
)
from gladtiles.core.types import ORIGIN_POINT, FilterParams, ScreenPoint, TileAddress, ViewState
from gladtiles.fetch.loader import TileLoader
from gladtiles.layer.host import EXTENT_CHANGE, PAN, PAN_END, ZOOM_START, MapHost

logger = logging.getLogger(__name__)


class LayerState(str, Enum):
    """Lifecycle of a layer; visibility is tracked separately."""

    UNLOADED = "unloaded"
    ATTACHED = "attached"
    POPULATED = "populated"


class AlertTileLayer(QObject):
    """Map overlay that renders codec-encoded alert tiles.

    The layer owns its tile cache, filter parameters and pan offset. Host
    map events drive tile requests; fetch results arrive from the loader on
    the layer's thread. Changing the filter re-renders every cached tile
    from its raw pixels without fetching anything.

    A fetch is tagged with the cache epoch it was issued in. When the zoom
    level changes the cache moves to a new epoch and late results from the
    old one are dropped instead of drawn with stale positions.
    """

    tilePlaced = Signal(object)  # CachedTile
    tilesRefreshed = Signal(int)
    visibilityChanged = Signal(bool)
    stateChanged = Signal(str)

    def __init__(
        self,
        loader: TileLoader | None = None,
        max_zoom: int = MAX_ZOOM,
        tile_size: int = TILE_SIZE,
        params: FilterParams | None = None,
        surface_factory: Callable[[int, int], PixelSurface] = create_surface,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._max_zoom = max_zoom
        self._tile_size = tile_size
        self._params = params if params is not None else FilterParams()
        self._surface_factory = surface_factory
        self._cache = TileCache()
        self._in_flight: dict[TileAddress, int] = {}
        self._pan_offset: ScreenPoint = ORIGIN_POINT
        self._host: MapHost | None = None
        self._container: TileContainer | None = None
        self._visible = True
        self._state = LayerState.UNLOADED

        self._inert = not self._supports_surfaces()

        self._loader = loader if loader is not None else TileLoader(parent=self)
        self._loader.tileLoaded.connect(self._on_tile_loaded)
        self._loader.tileFailed.connect(self._on_tile_failed)

    def _supports_surfaces(self) -> bool:
        """Check once that pixel surfaces can be created and displayed.

        Probes the surface factory with a 1x1 surface and its QImage
        conversion. The factory is the hook for hosts whose canvas may be
        missing; such a factory raises :class:`SurfaceUnavailableError`.
        """
        try:
            probe = self._surface_factory(1, 1)
            if probe.to_qimage().isNull():
                raise SurfaceUnavailableError("QImage allocation failed")
        except SurfaceUnavailableError as e:
            logger.error("Pixel surfaces unavailable, alert layer disabled: %s", e)
            return False
        return True

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @Property(bool, notify=visibilityChanged)
    def visible(self) -> bool:
        return self._visible

    @Property(str, notify=stateChanged)
    def stateName(self) -> str:
        return self._state.value

    @property
    def state(self) -> LayerState:
        return self._state

    @property
    def is_inert(self) -> bool:
        return self._inert

    @property
    def filter_params(self) -> FilterParams:
        return self._params

    @property
    def pan_offset(self) -> ScreenPoint:
        return self._pan_offset

    @property
    def cache(self) -> TileCache:
        return self._cache

    @property
    def container(self) -> TileContainer | None:
        return self._container

    @property
    def in_flight(self) -> frozenset[TileAddress]:
        """Addresses with a fetch outstanding."""
        return frozenset(self._in_flight)

    def _set_state(self, state: LayerState) -> None:
        if state is not self._state:
            self._state = state
            self.stateChanged.emit(state.value)

    # ------------------------------------------------------------------
    # Host lifecycle
    # ------------------------------------------------------------------

    def attach(self, host: MapHost) -> TileContainer:
        """Attach to a host map and return the container to display.

        An inert layer still returns a container, but it stays empty.
        """
        if self._host is not None:
            self.detach()

        self._host = host
        self._container = TileContainer()
        self._container.visible = self._visible
        self._container.translate = self._pan_offset

        if self._inert:
            return self._container

        host.on(EXTENT_CHANGE, self.on_extent_changed)
        host.on(PAN, self._handle_pan)
        host.on(PAN_END, self._handle_pan_end)
        host.on(ZOOM_START, self.on_zoom_start)
        self._set_state(LayerState.ATTACHED)
        return self._container

    def detach(self) -> None:
        """Unsubscribe from the host and drop every tile."""
        host = self._host
        if host is None:
            return
        if not self._inert:
            host.off(EXTENT_CHANGE, self.on_extent_changed)
            host.off(PAN, self._handle_pan)
            host.off(PAN_END, self._handle_pan_end)
            host.off(ZOOM_START, self.on_zoom_start)

        if self._container is not None:
            self._container.clear()
        self._cache.invalidate_all()
        self._pan_offset = ORIGIN_POINT
        self._host = None
        self._container = None
        self._set_state(LayerState.UNLOADED)

    # ------------------------------------------------------------------
    # Map events
    # ------------------------------------------------------------------

    def on_extent_changed(self, view: ViewState | None = None) -> None:
        """Request or place every tile needed for the current view."""
        if self._inert or self._host is None or not self._visible:
            return

        if view is None:
            view = self._host.view_state()

        epoch = self._cache.epoch
        for address in needed_tiles(view.extent, view.zoom, view.resolution, self._max_zoom):
            if not in_pyramid(address):
                continue
            self._get_tile(address, epoch)

    def _get_tile(self, address: TileAddress, epoch: int) -> None:
        tile = self._cache.get(address)
        if tile is not None:
            self._place(tile)
            return

        if address in self._in_flight:
            # A fetch for this address is already running; accept its result
            # in the current epoch instead of issuing a second request.
            self._in_flight[address] = epoch
            return

        self._in_flight[address] = epoch
        self._loader.request(address, epoch)

    def _handle_pan(self, delta: ScreenPoint) -> None:
        self.on_pan(delta.x, delta.y)

    def _handle_pan_end(self, delta: ScreenPoint) -> None:
        self.on_pan_end(delta.x, delta.y)

    def on_pan(self, dx: float, dy: float) -> None:
        """Shift the whole container by the in-progress drag delta."""
        if self._inert or self._container is None:
            return
        self._container.translate = ScreenPoint(
            self._pan_offset.x + dx, self._pan_offset.y + dy
        )

    def on_pan_end(self, dx: float, dy: float) -> None:
        """Fold the final drag delta into the pan offset."""
        if self._inert or self._container is None:
            return
        self._pan_offset = ScreenPoint(self._pan_offset.x + dx, self._pan_offset.y + dy)
        self._container.translate = self._pan_offset

    def on_zoom_start(self) -> None:
        """Drop every tile; addresses from the old zoom level no longer apply."""
        if self._inert:
            return
        if self._container is not None:
            self._container.clear()
            self._container.translate = ORIGIN_POINT
        self._cache.invalidate_all()
        self._pan_offset = ORIGIN_POINT
        if self._host is not None:
            self._set_state(LayerState.ATTACHED)

    # ------------------------------------------------------------------
    # Fetch results
    # ------------------------------------------------------------------

    @Slot(object, int, object)
    def _on_tile_loaded(self, address: TileAddress, epoch: int, pixels: np.ndarray) -> None:
        expected = self._in_flight.pop(address, None)
        current = self._cache.epoch
        if self._inert or self._host is None or expected != current:
            logger.debug(
                "Discarding stale tile %s (issued in epoch %d, current %d)",
                address.key, epoch, current,
            )
            return

        expected_shape = (self._tile_size, self._tile_size, RGBA_BYTES_PER_PIXEL)
        if pixels.shape != expected_shape:
            logger.warning(
                "Discarding tile %s with shape %s (expected %s)",
                address.key, pixels.shape, expected_shape,
            )
            return

        scale = 2 ** max(0, self._host.level - address.zoom)
        size = self._tile_size * scale
        try:
            tile = CachedTile(
                address=address,
                raw_pixels=np.array(pixels, dtype=np.uint8),
                rendered=self._surface_factory(size, size),
            )
            self._render(tile)
        except MemoryError:
            # Left uncached; the next extent change requests it again
            logger.warning(
                "Not enough memory for a %dx%d surface, dropping tile %s",
                size, size, address.key,
            )
            return
        self._cache.put(address, tile)
        self._set_state(LayerState.POPULATED)

        if self._visible:
            self._place(tile)

    @Slot(object, int, str)
    def _on_tile_failed(self, address: TileAddress, epoch: int, reason: str) -> None:
        self._in_flight.pop(address, None)
        logger.warning("Tile %s not loaded (epoch %d): %s", address.key, epoch, reason)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render(self, tile: CachedTile) -> None:
        """Filter a tile's raw pixels into its rendered surface."""
        filtered = filter_buffer(tile.raw_pixels, self._params)
        tile.rendered.put_pixels(magnify(filtered, tile.scale))

    def _place(self, tile: CachedTile) -> None:
        """Put a tile's surface into the container at its screen position."""
        if self._container is None or self._host is None:
            return
        key = tile.address.key
        if self._container.is_placed(key):
            return

        lon, lat = tile_top_left_lonlat(*tile.address)
        screen = self._host.to_screen(lon, lat)
        # Container coordinates: the container itself is shifted by the pan offset
        anchor = ScreenPoint(screen.x - self._pan_offset.x, screen.y - self._pan_offset.y)
        tile.anchor = anchor
        self._container.place(key, tile.rendered, anchor)
        logger.debug("Placed tile %s at (%.1f, %.1f)", key, anchor.x, anchor.y)
        self.tilePlaced.emit(tile)

    def refresh_tiles(self) -> int:
        """Re-filter every cached tile from its raw pixels.

        Returns:
            Number of tiles re-rendered.
        """
        if self._inert:
            return 0
        tiles = self._cache.tiles()
        for tile in tiles:
            self._render(tile)
        logger.debug("Refreshed %d cached tiles", len(tiles))
        self.tilesRefreshed.emit(len(tiles))
        return len(tiles)

    def render_mosaic(self) -> np.ndarray:
        """Composite the visible tiles into one viewport-sized RGBA image.

        Raises:
            RuntimeError: If the layer is not attached to a host.
        """
        if self._container is None or self._host is None:
            raise RuntimeError("Layer is not attached to a map")
        return self._container.composite(self._host.width, self._host.height)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    @Slot(int, int)
    def setDateRange(self, min_date: int, max_date: int) -> None:
        """Show only alerts dated within ``[min_date, max_date]`` (YYDDD).

        The range is not validated; an inverted range shows nothing.
        """
        self._params = self._params.with_date_range(min_date, max_date)
        self.refresh_tiles()

    @Slot(str)
    def setConfidenceLevel(self, level: str) -> None:
        """Show all alerts for ``"all"``, only confirmed ones otherwise."""
        self._params = self._params.with_confidence_level(level)
        self.refresh_tiles()

    @Slot()
    def show(self) -> None:
        self._visible = True
        if self._container is not None:
            self._container.visible = True
        self.visibilityChanged.emit(True)
        self.on_extent_changed()

    @Slot()
    def hide(self) -> None:
        """Hide the layer and clear what is on screen; the cache is kept."""
        self._visible = False
        if self._container is not None:
            self._container.visible = False
            self._container.clear()
        self.visibilityChanged.emit(False)
