"""Histogram matching for 8-bit RGB images."""

from .histogram import (
    ChannelHistograms,
    EmptyImageError,
    compute_histogram,
    compute_histograms,
    cumulative_sum,
    normalized_cdf,
    quantize_cdf,
)
from .image_buffer import Channel, ChannelPlanes, ImageBuffer, ShapeMismatchError
from .matching import (
    KeyCollision,
    apply_lookup_table,
    build_lookup_table,
    channel_lookup_tables,
    equalize_histograms,
    match_histograms,
)
from .settings import MatchSettings

__version__ = "0.1.0"
