"""Per-pixel alert codec.

Each tile pixel packs three values into its RGB channels:

- red/green: days since 2015-01-01, ``red * 255 + green``. The year is
  ``days // 365 + 15`` and the day of year ``days % 365``, giving a YYDDD
  date such as ``16045``.
- blue, read as a zero-padded three-digit decimal ``CII``: ``C`` is the
  confidence stored as 1 or 2, ``II`` a raw intensity of 0..55 that is
  scaled by 50 and capped at 255 for display.

Bilinear resampling upstream can leave blue values below 100. Those pad to
``"0II"`` and decode to confidence ``-1``; they are kept as-is and simply
never match a confidence filter.

The filter functions never write to the buffer they decode from. Their
output overwrites RGB with the highlight colour, so it cannot be decoded
again; callers always filter from the pristine raw pixels.
"""

from __future__ import annotations

import numpy as np

from gladtiles.config import HIGHLIGHT_COLOR
from gladtiles.core.types import DecodedPixel, FilterParams

#: First year of the encoding, as the YY part of YYDDD
BASE_YEAR = 15

DAYS_PER_YEAR = 365

#: Multiplier that brings the 0..55 raw intensity into a visible alpha range
INTENSITY_SCALE = 50

MAX_RAW_INTENSITY = 55


def _pad(value: int) -> str:
    """Left-pad a channel value with zeros to three digits."""
    return f"{value:03d}"


def decode_pixel(pixel) -> DecodedPixel:
    """Decode one RGB(A) pixel into its date, confidence and intensity.

    Args:
        pixel: Sequence whose first three items are R, G, B (0..255).
            Anything after the blue channel is ignored.

    Returns:
        DecodedPixel for the pixel. Total for every RGB triple.
    """
    red, green, blue = int(pixel[0]), int(pixel[1]), int(pixel[2])

    total_days = red * 255 + green
    year = (total_days // DAYS_PER_YEAR + BASE_YEAR) * 1000
    date = year + total_days % DAYS_PER_YEAR

    band3 = _pad(blue)
    confidence = int(band3[0]) - 1
    raw_intensity = int(band3[1:3])
    intensity = min(raw_intensity * INTENSITY_SCALE, 255)

    return DecodedPixel(date=date, confidence=confidence, intensity=intensity)


def decode_buffer(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorised :func:`decode_pixel` over an ``(H, W, 3|4)`` uint8 array.

    Returns:
        ``(dates, confidence, intensity)`` int32 arrays of shape ``(H, W)``.
    """
    rgb = pixels[..., :3].astype(np.int32)
    red, green, blue = rgb[..., 0], rgb[..., 1], rgb[..., 2]

    total_days = red * 255 + green
    dates = (total_days // DAYS_PER_YEAR + BASE_YEAR) * 1000 + total_days % DAYS_PER_YEAR

    # Leading and trailing digits of the zero-padded decimal blue value
    confidence = blue // 100 - 1
    intensity = np.minimum((blue % 100) * INTENSITY_SCALE, 255)

    return dates, confidence, intensity


def visibility_mask(pixels: np.ndarray, params: FilterParams) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(visible, intensity)`` for a raw pixel buffer."""
    dates, confidence, intensity = decode_buffer(pixels)
    visible = (
        (dates >= params.min_date)
        & (dates <= params.max_date)
        & np.isin(confidence, sorted(params.confidence_set))
    )
    return visible, intensity


def filter_into(raw: np.ndarray, params: FilterParams, out: np.ndarray) -> np.ndarray:
    """Filter ``raw`` RGBA pixels into the caller-owned ``out`` buffer.

    Visible pixels get the highlight colour and ``alpha = intensity``; hidden
    pixels get ``alpha = 0`` and keep their source RGB.

    Raises:
        ValueError: If ``out`` has another shape or shares memory with ``raw``.
    """
    if out.shape != raw.shape:
        raise ValueError(f"Output shape {out.shape} does not match input {raw.shape}")
    if np.shares_memory(out, raw):
        raise ValueError("Cannot filter a tile buffer in place")

    visible, intensity = visibility_mask(raw, params)

    out[...] = raw
    out[visible, :3] = HIGHLIGHT_COLOR
    out[..., 3] = np.where(visible, intensity, 0).astype(np.uint8)
    return out


def filter_buffer(raw: np.ndarray, params: FilterParams) -> np.ndarray:
    """Return a new display-ready RGBA buffer for ``raw``.

    Idempotent on raw input: calling it twice with the same arguments gives
    identical output, since ``raw`` itself is never modified.
    """
    return filter_into(raw, params, np.empty_like(raw))


def encode_pixel(date: int, confidence: int, raw_intensity: int) -> tuple[int, int, int]:
    """Pack a date, confidence and raw intensity into an RGB triple.

    Inverse of :func:`decode_pixel` for well-formed values.

    Args:
        date: YYDDD date, year 15 or later, day of year 0..364
        confidence: 0 (unconfirmed) or 1 (confirmed)
        raw_intensity: Raw intensity, 0..55

    Raises:
        ValueError: If a value cannot be represented in the codec.
    """
    year, day = divmod(int(date), 1000)
    if year < BASE_YEAR or day >= DAYS_PER_YEAR:
        raise ValueError(f"Date {date} is outside the encodable range")
    if confidence not in (0, 1):
        raise ValueError(f"Confidence must be 0 or 1, got {confidence}")
    if not 0 <= raw_intensity <= MAX_RAW_INTENSITY:
        raise ValueError(
            f"Raw intensity must be 0-{MAX_RAW_INTENSITY}, got {raw_intensity}"
        )

    total_days = (year - BASE_YEAR) * DAYS_PER_YEAR + day
    red, green = divmod(total_days, 255)
    if red > 255:
        raise ValueError(f"Date {date} is outside the encodable range")

    blue = (confidence + 1) * 100 + raw_intensity
    return red, green, blue
