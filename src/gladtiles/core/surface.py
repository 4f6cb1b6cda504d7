"""Pixel surfaces and the container that positions them on screen."""

from __future__ import annotations

import logging

import numpy as np
from PySide6.QtGui import QImage

from gladtiles.config import RGBA_BYTES_PER_PIXEL
from gladtiles.core.types import ORIGIN_POINT, ScreenPoint

logger = logging.getLogger(__name__)


class SurfaceUnavailableError(RuntimeError):
    """The environment cannot provide pixel surfaces."""


def magnify(pixels: np.ndarray, factor: int) -> np.ndarray:
    """Scale an ``(H, W, C)`` array up by ``factor`` with nearest-neighbour.

    Every source pixel becomes a ``factor x factor`` block of identical
    values, so codec bytes survive unchanged.
    """
    if factor == 1:
        return pixels
    return np.repeat(np.repeat(pixels, factor, axis=0), factor, axis=1)


class PixelSurface:
    """Addressable RGBA pixel surface with block get/put operations."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise SurfaceUnavailableError(
                f"Cannot create a {width}x{height} pixel surface"
            )
        self._pixels = np.zeros((height, width, RGBA_BYTES_PER_PIXEL), dtype=np.uint8)

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def pixels(self) -> np.ndarray:
        """The live pixel buffer (``(H, W, 4)`` uint8)."""
        return self._pixels

    def get_pixels(self, x: int = 0, y: int = 0, width: int | None = None,
                   height: int | None = None) -> np.ndarray:
        """Copy a block of pixels out of the surface."""
        width = self.width - x if width is None else width
        height = self.height - y if height is None else height
        return self._pixels[y:y + height, x:x + width].copy()

    def put_pixels(self, pixels: np.ndarray, x: int = 0, y: int = 0) -> None:
        """Write a block of RGBA pixels with its upper-left corner at ``(x, y)``.

        Raises:
            ValueError: If the block does not fit inside the surface.
        """
        height, width = pixels.shape[:2]
        if x < 0 or y < 0 or x + width > self.width or y + height > self.height:
            raise ValueError(
                f"Block {width}x{height} at ({x}, {y}) exceeds "
                f"{self.width}x{self.height} surface"
            )
        self._pixels[y:y + height, x:x + width] = pixels

    def clear(self) -> None:
        """Make every pixel fully transparent."""
        self._pixels.fill(0)

    def release(self) -> None:
        """Drop the pixel buffer; the surface is unusable afterwards."""
        self._pixels = np.zeros((0, 0, RGBA_BYTES_PER_PIXEL), dtype=np.uint8)

    def to_qimage(self) -> QImage:
        """Copy the surface into an RGBA8888 QImage."""
        data = np.ascontiguousarray(self._pixels).tobytes()
        qimage = QImage(
            data, self.width, self.height,
            self.width * RGBA_BYTES_PER_PIXEL,
            QImage.Format.Format_RGBA8888,
        )
        return qimage.copy()  # Detach from data buffer


def create_surface(width: int, height: int) -> PixelSurface:
    """Default surface factory."""
    return PixelSurface(width, height)


def _blend_over(dst: np.ndarray, src: np.ndarray) -> None:
    """Alpha-composite ``src`` over ``dst`` in place (both RGBA uint8)."""
    src_a = src[..., 3:4].astype(np.float32) / 255.0
    dst_a = dst[..., 3:4].astype(np.float32) / 255.0
    out_a = src_a + dst_a * (1.0 - src_a)
    src_rgb = src[..., :3].astype(np.float32)
    dst_rgb = dst[..., :3].astype(np.float32)
    with np.errstate(divide="ignore", invalid="ignore"):
        out_rgb = np.where(
            out_a > 0,
            (src_rgb * src_a + dst_rgb * dst_a * (1.0 - src_a)) / out_a,
            0.0,
        )
    dst[..., :3] = np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)
    dst[..., 3:4] = np.clip(np.rint(out_a * 255.0), 0, 255).astype(np.uint8)


class TileContainer:
    """Holds placed tile surfaces and the translation applied to all of them.

    Surfaces are positioned in container coordinates; what the user sees is
    each anchor shifted by :attr:`translate`. Panning only moves the
    translation.
    """

    def __init__(self) -> None:
        self._placed: dict[str, tuple[PixelSurface, ScreenPoint]] = {}
        self._translate: ScreenPoint = ORIGIN_POINT
        self._visible = True

    @property
    def translate(self) -> ScreenPoint:
        return self._translate

    @translate.setter
    def translate(self, point: ScreenPoint) -> None:
        self._translate = ScreenPoint(float(point[0]), float(point[1]))

    @property
    def visible(self) -> bool:
        return self._visible

    @visible.setter
    def visible(self, value: bool) -> None:
        self._visible = bool(value)

    def place(self, key: str, surface: PixelSurface, anchor: ScreenPoint) -> None:
        """Add (or move) a surface with its upper-left corner at ``anchor``."""
        self._placed[key] = (surface, anchor)

    def remove(self, key: str) -> None:
        self._placed.pop(key, None)

    def is_placed(self, key: str) -> bool:
        return key in self._placed

    def anchor_of(self, key: str) -> ScreenPoint | None:
        entry = self._placed.get(key)
        return entry[1] if entry is not None else None

    def screen_position(self, key: str) -> ScreenPoint | None:
        """Where the surface currently appears on screen."""
        anchor = self.anchor_of(key)
        if anchor is None:
            return None
        return ScreenPoint(anchor.x + self._translate.x, anchor.y + self._translate.y)

    def placed_keys(self) -> list[str]:
        return list(self._placed)

    def clear(self) -> None:
        """Remove every surface from the container."""
        self._placed.clear()

    def __len__(self) -> int:
        return len(self._placed)

    def composite(self, width: int, height: int) -> np.ndarray:
        """Flatten the visible container into a ``(height, width, 4)`` image.

        Surfaces are drawn in placement order at their screen positions and
        clipped to the viewport. A hidden container composites to all zeros.
        """
        canvas = np.zeros((height, width, RGBA_BYTES_PER_PIXEL), dtype=np.uint8)
        if not self._visible:
            return canvas

        for key, (surface, anchor) in self._placed.items():
            left = int(round(anchor.x + self._translate.x))
            top = int(round(anchor.y + self._translate.y))

            x0, y0 = max(left, 0), max(top, 0)
            x1 = min(left + surface.width, width)
            y1 = min(top + surface.height, height)
            if x0 >= x1 or y0 >= y1:
                continue

            block = surface.pixels[y0 - top:y1 - top, x0 - left:x1 - left]
            _blend_over(canvas[y0:y1, x0:x1], block)
            logger.debug("Composited %s at (%d, %d)", key, left, top)

        return canvas
