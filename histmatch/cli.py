from __future__ import annotations

import logging

import click

from . import image_io
from .histogram import EmptyImageError, compute_histogram, normalized_cdf, quantize_cdf
from .image_buffer import Channel, ShapeMismatchError
from .matching import equalize_histograms, match_histograms
from .ppm import PPMFormatError
from .settings import COLLISION_POLICIES, MatchSettings, SettingsError, load_settings

logger = logging.getLogger(__name__)

_LIBRARY_ERRORS = (
    EmptyImageError,
    ShapeMismatchError,
    SettingsError,
    PPMFormatError,
    image_io.ImageFormatError,
    OSError,
)


def _settings(config: str | None, **overrides) -> MatchSettings:
    try:
        base = load_settings(config) if config else MatchSettings()
        return base.with_overrides(**overrides)
    except SettingsError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("-v", "--verbose", count=True, help="Log progress (-v) or debug details (-vv).")
def main(verbose: int) -> None:
    """Histogram matching for 8-bit RGB images."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@main.command("match")
@click.argument("srcpath", type=click.Path(exists=True, dir_okay=False))
@click.argument("refpath", type=click.Path(exists=True, dir_okay=False))
@click.argument("dstpath", type=click.Path(dir_okay=False))
@click.option("--collision", type=click.Choice(COLLISION_POLICIES), default=None,
              help="Reference value kept for equal cumulative levels.")
@click.option("--parallel/--serial", default=None, help="Build channel tables on worker threads.")
@click.option("--quality", type=click.IntRange(1, 95), default=None, help="JPEG/WebP quality.")
@click.option("--config", type=click.Path(exists=True, dir_okay=False), default=None,
              help="JSON settings file; command line options take precedence.")
def match_command(srcpath, refpath, dstpath, collision, parallel, quality, config) -> None:
    """
    Apply the colour distribution of a reference image to a source image.
    """
    settings = _settings(config, collision=collision, parallel=parallel, jpeg_quality=quality)
    try:
        source = image_io.load_image(srcpath)
        reference = image_io.load_image(refpath)
        result = match_histograms(source, reference, settings.with_overrides(in_place=True))
        image_io.save_image(result, dstpath, quality=settings.jpeg_quality)
    except _LIBRARY_ERRORS as exc:
        raise click.ClickException(str(exc)) from exc
    logger.info("Matched %s to %s -> %s", srcpath, refpath, dstpath)


@main.command("equalize")
@click.argument("srcpath", type=click.Path(exists=True, dir_okay=False))
@click.argument("dstpath", type=click.Path(dir_okay=False))
@click.option("--quality", type=click.IntRange(1, 95), default=None, help="JPEG/WebP quality.")
@click.option("--config", type=click.Path(exists=True, dir_okay=False), default=None)
def equalize_command(srcpath, dstpath, quality, config) -> None:
    """Equalize every channel of an image (match to a flat histogram)."""
    settings = _settings(config, jpeg_quality=quality)
    try:
        image = image_io.load_image(srcpath)
        result = equalize_histograms(image, settings.with_overrides(in_place=True))
        image_io.save_image(result, dstpath, quality=settings.jpeg_quality)
    except _LIBRARY_ERRORS as exc:
        raise click.ClickException(str(exc)) from exc


@main.command("histogram")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--channel", "channel_name", type=click.Choice(["red", "green", "blue"]),
              default="red", show_default=True)
@click.option("--all-levels", is_flag=True, help="Also print values with zero count.")
def histogram_command(path, channel_name, all_levels) -> None:
    """Print count, cumulative fraction and quantized level per value."""
    channel = Channel.from_name(channel_name)
    try:
        image = image_io.load_image(path)
        hist = compute_histogram(image, channel)
        cdf = normalized_cdf(hist)
    except _LIBRARY_ERRORS as exc:
        raise click.ClickException(str(exc)) from exc
    levels = quantize_cdf(cdf)
    click.echo("value\tcount\tcdf\tlevel")
    for value, count in enumerate(hist):
        if count or all_levels:
            click.echo(f"{value}\t{count}\t{cdf[value]:.6f}\t{levels[value]}")


@main.command("gui")
def gui_command() -> None:
    """Open the desktop viewer."""
    from .ui_qt import run_app

    run_app()
