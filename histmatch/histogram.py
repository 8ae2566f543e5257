from __future__ import annotations

import math
from typing import NamedTuple, Sequence, Union

from .image_buffer import ChannelPlanes, Channel, ImageBuffer

LEVELS = 256
MAX_LEVEL = LEVELS - 1

PixelSource = Union[ImageBuffer, ChannelPlanes]


class EmptyImageError(ValueError):
    """Raised when a histogram holds no pixels, so no distribution exists."""


class ChannelHistograms(NamedTuple):
    red: list[int]
    green: list[int]
    blue: list[int]

    def for_channel(self, channel: Channel) -> list[int]:
        return self[channel]


def compute_histogram(image: PixelSource, channel: Channel) -> list[int]:
    """
    Compute histogram for a single channel.
    Returns list of 256 integers representing pixel count for each intensity level.
    """
    hist = [0] * LEVELS
    samples = image.channel_samples(channel)
    for i in range(image.pixel_count):
        hist[samples[i]] += 1
    return hist


def compute_histograms(image: PixelSource) -> ChannelHistograms:
    """Compute the red, green and blue histograms of an image."""
    return ChannelHistograms(*(compute_histogram(image, channel) for channel in Channel))


def cumulative_sum(hist: Sequence[int]) -> list[int]:
    """Inclusive prefix sum: entry i counts pixels with value <= i."""
    cdf = [0] * len(hist)
    running = 0
    for i, count in enumerate(hist):
        running += count
        cdf[i] = running
    return cdf


def normalized_cdf(hist: Sequence[int]) -> list[float]:
    """
    Cumulative distribution of a histogram scaled to [0, 1].
    Raises EmptyImageError when the histogram is empty.
    """
    cdf = cumulative_sum(hist)
    total = cdf[-1] if cdf else 0
    if total == 0:
        raise EmptyImageError("Cannot build a distribution from an image without pixels")
    return [value / total for value in cdf]


def quantize_cdf(cdf: Sequence[float]) -> list[int]:
    """
    Rescale a normalized CDF to integer levels with ceil(cdf * 255).
    Ceiling keeps the sequence non-decreasing and drives the last bin to 255.
    """
    return [min(MAX_LEVEL, max(0, math.ceil(value * MAX_LEVEL))) for value in cdf]


def channel_levels(image: PixelSource, channel: Channel) -> list[int]:
    """Histogram, CDF and quantization of one channel in a single call."""
    return quantize_cdf(normalized_cdf(compute_histogram(image, channel)))


def uniform_levels() -> list[int]:
    """Quantized CDF of a perfectly flat 256-bin histogram."""
    return quantize_cdf(normalized_cdf([1] * LEVELS))
