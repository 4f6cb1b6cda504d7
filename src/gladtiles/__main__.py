"""CLI entry point: render a filtered alert overlay to a PNG."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

import click
from PIL import Image as PILImage
from PySide6.QtCore import QCoreApplication
from tqdm import tqdm

from gladtiles.config import (
    FETCH_TIMEOUT,
    MAX_DATE,
    MAX_OVERFLOW_STEPS,
    MAX_ZOOM,
    MIN_DATE,
    TILE_SIZE,
    URL_TEMPLATE,
)
from gladtiles.core.dates import julian_to_date, parse_julian
from gladtiles.fetch.fetcher import TileFetcher
from gladtiles.fetch.loader import TileLoader
from gladtiles.fetch.synthetic import SyntheticTileFetcher
from gladtiles.layer.compositor import AlertTileLayer
from gladtiles.layer.host import WebMercatorHost

logger = logging.getLogger(__name__)


class _JulianDate(click.ParamType):
    """Accepts YYDDD integers or ISO dates."""

    name = "date"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            return parse_julian(value)
        except ValueError:
            self.fail(f"{value!r} is neither a YYDDD value nor an ISO date", param, ctx)


def _wait_for_tiles(app: QCoreApplication, layer: AlertTileLayer, loader: TileLoader,
                    deadline: float) -> bool:
    """Pump the event loop until no fetch is outstanding or time runs out."""
    total = len(layer.in_flight)
    with tqdm(total=total, desc="Fetching tiles", unit="tile") as pbar:
        while layer.in_flight:
            if time.monotonic() > deadline:
                return False
            loader.wait_for_done(50)
            app.processEvents()
            pbar.update(total - len(layer.in_flight) - pbar.n)
    return True


@click.command()
@click.option("--lon", type=float, default=113.763, show_default=True, help="View centre longitude")
@click.option("--lat", type=float, default=0.334, show_default=True, help="View centre latitude")
@click.option("--zoom", "-z", type=click.IntRange(0, 22), default=7, show_default=True,
              help="Map zoom level")
@click.option("--width", type=click.IntRange(1, 8192), default=1024, show_default=True,
              help="Output width in pixels")
@click.option("--height", type=click.IntRange(1, 8192), default=768, show_default=True,
              help="Output height in pixels")
@click.option("--url-template", default=URL_TEMPLATE, show_default=True,
              help="Tile URL with {z}/{x}/{y} placeholders")
@click.option("--demo", is_flag=True, help="Use synthetic tiles instead of downloading")
@click.option("--start", type=_JulianDate(), default=MIN_DATE, show_default=True,
              help="First alert date shown (YYDDD or YYYY-MM-DD)")
@click.option("--end", type=_JulianDate(), default=MAX_DATE, show_default=True,
              help="Last alert date shown (YYDDD or YYYY-MM-DD)")
@click.option("--confidence", type=click.Choice(["all", "confirmed"]), default="all",
              show_default=True, help="Which alerts to show")
@click.option("--max-zoom", type=click.IntRange(0, 22), default=MAX_ZOOM, show_default=True,
              help="Deepest zoom level served by the tile source")
@click.option("--timeout", type=float, default=FETCH_TIMEOUT * 6, show_default=True,
              help="Seconds to wait for all tiles")
@click.option("-o", "--output", type=click.Path(dir_okay=False), default="alerts.png",
              show_default=True, help="Output PNG path")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(
    lon: float,
    lat: float,
    zoom: int,
    width: int,
    height: int,
    url_template: str,
    demo: bool,
    start: int,
    end: int,
    confidence: str,
    max_zoom: int,
    timeout: float,
    output: str,
    verbose: bool,
) -> None:
    """Render deforestation alerts around a point into a transparent PNG.

    Examples:

        # Alerts in Borneo during 2016, confirmed only
        python -m gladtiles --start 2016-01-01 --end 16365 --confidence confirmed

        # Offline rendering with generated tiles
        python -m gladtiles --demo -z 9 -o demo.png
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if zoom - max_zoom > MAX_OVERFLOW_STEPS:
        raise click.BadParameter(
            f"zoom {zoom} is more than {MAX_OVERFLOW_STEPS} levels past --max-zoom {max_zoom}",
            param_hint="'--zoom'",
        )

    if start > end:
        click.echo(click.style(
            f"Warning: start {start} is after end {end}, no alerts will be shown",
            fg="yellow",
        ), err=True)

    app = QCoreApplication.instance() or QCoreApplication([])

    fetcher = SyntheticTileFetcher(TILE_SIZE) if demo else TileFetcher(url_template)
    loader = TileLoader(fetcher)
    try:
        layer = AlertTileLayer(loader=loader, max_zoom=max_zoom)
        if layer.is_inert:
            click.echo(click.style("Error: pixel surfaces are not available", fg="red"), err=True)
            sys.exit(1)

        layer.setDateRange(start, end)
        layer.setConfidenceLevel(confidence)

        host = WebMercatorHost(lon, lat, zoom, width, height)
        layer.attach(host)

        click.echo(click.style("gladtiles render", fg="cyan", bold=True))
        click.echo(f"Centre: {lon:.4f}, {lat:.4f} | zoom {zoom} | {width}x{height}px")
        click.echo(
            f"Dates: {julian_to_date(start)} to {julian_to_date(end)} | confidence: {confidence}"
        )

        host.refresh()
        completed = _wait_for_tiles(app, layer, loader, time.monotonic() + timeout)
        if not completed:
            click.echo(click.style(
                f"Timed out with {len(layer.in_flight)} tile(s) outstanding", fg="yellow"
            ), err=True)

        mosaic = layer.render_mosaic()
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        PILImage.fromarray(mosaic).save(output_path)

        stats = layer.cache.get_cache_stats()
        logger.debug("Cache stats: %s", stats)
    finally:
        # Running fetches finish within one HTTP timeout
        loader.close(int(FETCH_TIMEOUT * 1000))

    click.echo(click.style("Completed: ", bold=True)
               + click.style(f"{stats['size']} tile(s) rendered", fg="green")
               + f" -> {output_path}")


if __name__ == "__main__":
    main()
