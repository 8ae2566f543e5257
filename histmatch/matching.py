from __future__ import annotations

import logging
from bisect import bisect_left
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Sequence, TypeVar

from .histogram import LEVELS, MAX_LEVEL, PixelSource, channel_levels, uniform_levels
from .image_buffer import Channel, ChannelPlanes, ImageBuffer
from .settings import MatchSettings

logger = logging.getLogger(__name__)

ImageT = TypeVar("ImageT", ImageBuffer, ChannelPlanes)

# Used when no reference key lies on one side of the searched level: (key, index).
FALLBACK_ENTRY = (0, MAX_LEVEL)


class KeyCollision(str, Enum):
    """Which reference value represents a run of equal quantized levels."""

    FIRST = "first"
    LAST = "last"


def reference_entries(
    reference_levels: Sequence[int],
    collision: KeyCollision = KeyCollision.FIRST,
) -> list[tuple[int, int]]:
    """
    Invert a quantized CDF into (level, value) pairs sorted by level,
    keeping one value per distinct level according to `collision`.
    """
    collision = KeyCollision(collision)
    inverse: dict[int, int] = {}
    for value, level in enumerate(reference_levels):
        if collision is KeyCollision.FIRST and level in inverse:
            continue
        inverse[level] = value
    return sorted(inverse.items())


def build_lookup_table(
    source_levels: Sequence[int],
    reference_levels: Sequence[int],
    collision: KeyCollision = KeyCollision.FIRST,
) -> bytes:
    """
    Map every source value to the reference value with the closest quantized
    cumulative level.

    For each source level the nearest present reference level at or above it
    (upper) and strictly below it (lower) are considered; a missing side is
    replaced by FALLBACK_ENTRY. Upper wins when both are equally close.
    """
    entries = reference_entries(reference_levels, collision)
    keys = [key for key, _ in entries]
    table = bytearray(LEVELS)
    for value in range(LEVELS):
        key = source_levels[value]
        pos = bisect_left(keys, key)
        upper = entries[pos] if pos < len(entries) else FALLBACK_ENTRY
        lower = entries[pos - 1] if pos > 0 else FALLBACK_ENTRY
        if abs(upper[0] - key) <= abs(key - lower[0]):
            chosen = upper
        else:
            chosen = lower
        table[value] = chosen[1] & 0xFF
    return bytes(table)


def apply_lookup_table(
    image: ImageT,
    channel: Channel,
    table: Sequence[int],
    in_place: bool = False,
) -> ImageT:
    """Replace every sample s of `channel` with table[s]."""
    target = image if in_place else image.copy()
    if isinstance(target, ChannelPlanes):
        plane = target.plane(channel)
        plane[:] = plane.translate(bytes(table))
    else:
        data = target.data
        data[channel::3] = data[channel::3].translate(bytes(table))
    return target


def _channel_table(
    source: PixelSource,
    reference_levels: Sequence[int],
    channel: Channel,
    collision: KeyCollision,
) -> bytes:
    table = build_lookup_table(channel_levels(source, channel), reference_levels, collision)
    logger.debug("Built %s lookup table", channel.name.lower())
    return table


def channel_lookup_tables(
    source: PixelSource,
    reference: PixelSource,
    collision: KeyCollision = KeyCollision.FIRST,
) -> dict[Channel, bytes]:
    """Lookup tables that carry the source distribution onto the reference."""
    return {
        channel: _channel_table(source, channel_levels(reference, channel), channel, collision)
        for channel in Channel
    }


def _remap(
    source: ImageT,
    reference_levels: dict[Channel, list[int]],
    settings: MatchSettings,
) -> ImageT:
    collision = KeyCollision(settings.collision)

    def table_for(channel: Channel) -> bytes:
        return _channel_table(source, reference_levels[channel], channel, collision)

    # Channels share no state until the tables are applied.
    if settings.parallel:
        with ThreadPoolExecutor(max_workers=len(Channel)) as pool:
            tables = list(pool.map(table_for, Channel))
    else:
        tables = [table_for(channel) for channel in Channel]

    target = source if settings.in_place else source.copy()
    for channel, table in zip(Channel, tables):
        apply_lookup_table(target, channel, table, in_place=True)
    return target


def match_histograms(
    source: ImageT,
    reference: PixelSource,
    settings: MatchSettings | None = None,
) -> ImageT:
    """
    Match the per-channel histograms of `source` to those of `reference`.

    The images may differ in size and in layout (interleaved or planar); the
    result has the layout of `source`. With `settings.in_place` the source is
    rewritten and returned, otherwise a new image is returned.
    """
    settings = settings or MatchSettings()
    logger.debug(
        "Matching %dx%d source against %dx%d reference",
        source.width,
        source.height,
        reference.width,
        reference.height,
    )
    levels = {channel: channel_levels(reference, channel) for channel in Channel}
    return _remap(source, levels, settings)


def equalize_histograms(image: ImageT, settings: MatchSettings | None = None) -> ImageT:
    """Histogram equalization: match every channel to a flat distribution."""
    settings = settings or MatchSettings()
    flat = uniform_levels()
    return _remap(image, {channel: flat for channel in Channel}, settings)
