"""Micro-benchmark for alert filtering + QImage conversion.

Times the work done for every cached tile when the date or confidence
filter changes: decode and filter the raw pixels, magnify for overflow
zooms, then copy into a QImage. Tiles come from the synthetic source, so
no network access is needed.

Examples:
  uv run python scripts/bench_filter.py --tiles 64 --iters 3
  uv run python scripts/bench_filter.py --scale 4 --density 0.8
"""

from __future__ import annotations

import argparse
import statistics
import time

from gladtiles.core.codec import filter_buffer
from gladtiles.core.surface import PixelSurface, magnify
from gladtiles.core.types import FilterParams, TileAddress
from gladtiles.fetch.synthetic import synthetic_tile


def _percentile_ms(values_s: list[float], p: float) -> float:
    if not values_s:
        return 0.0
    xs = sorted(values_s)
    # Nearest-rank
    k = int(round((p / 100.0) * (len(xs) - 1)))
    k = max(0, min(k, len(xs) - 1))
    return xs[k] * 1000.0


def _run_pass(tiles, params: FilterParams, *, scale: int, to_qimage: bool, iters: int) -> dict:
    filter_s: list[float] = []
    qimage_s: list[float] = []

    surfaces = [PixelSurface(raw.shape[1] * scale, raw.shape[0] * scale) for raw in tiles]

    for _ in range(iters):
        for raw, surface in zip(tiles, surfaces):
            t0 = time.perf_counter()
            surface.put_pixels(magnify(filter_buffer(raw, params), scale))
            t1 = time.perf_counter()
            if to_qimage:
                _ = surface.to_qimage()
            t2 = time.perf_counter()

            filter_s.append(t1 - t0)
            qimage_s.append(t2 - t1)

    return {
        "tiles": len(filter_s),
        "filter_ms_p50": _percentile_ms(filter_s, 50),
        "filter_ms_p95": _percentile_ms(filter_s, 95),
        "filter_ms_mean": (statistics.mean(filter_s) * 1000.0) if filter_s else 0.0,
        "qimage_ms_p50": _percentile_ms(qimage_s, 50),
        "qimage_ms_p95": _percentile_ms(qimage_s, 95),
    }


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tiles", type=int, default=32, help="Number of distinct tiles")
    parser.add_argument("--zoom", type=int, default=7)
    parser.add_argument("--iters", type=int, default=5)
    parser.add_argument("--density", type=float, default=0.3, help="Fraction of alert pixels")
    parser.add_argument(
        "--scale",
        type=int,
        default=1,
        help="Nearest-neighbour magnification (2**levels past the max zoom)",
    )
    parser.add_argument("--no-qimage", action="store_true", help="Skip the QImage copy")
    args = parser.parse_args()

    tiles = [
        synthetic_tile(TileAddress(col, 0, args.zoom), density=args.density)
        for col in range(args.tiles)
    ]
    print(
        f"tiles={len(tiles)} iters={args.iters} density={args.density} "
        f"scale={args.scale} qimage={not args.no_qimage}"
    )

    passes = {
        "all dates": FilterParams(),
        "one quarter": FilterParams().with_date_range(16000, 16090),
        "confirmed": FilterParams().with_confidence_level("confirmed"),
    }
    for label, params in passes.items():
        r = _run_pass(
            tiles, params, scale=args.scale, to_qimage=not args.no_qimage, iters=args.iters
        )
        print(
            f"{label}: tiles={r['tiles']} filter(ms) p50={r['filter_ms_p50']:.3f} "
            f"p95={r['filter_ms_p95']:.3f} mean={r['filter_ms_mean']:.3f} | "
            f"qimage(ms) p50={r['qimage_ms_p50']:.3f} p95={r['qimage_ms_p95']:.3f}"
        )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
