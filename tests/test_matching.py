import random

import pytest

from histmatch.histogram import EmptyImageError, channel_levels, uniform_levels
from histmatch.image_buffer import Channel, ChannelPlanes, ImageBuffer
from histmatch.matching import (
    KeyCollision,
    apply_lookup_table,
    build_lookup_table,
    channel_lookup_tables,
    equalize_histograms,
    match_histograms,
    reference_entries,
)
from histmatch.settings import MatchSettings


def _random_image(width, height, seed):
    rng = random.Random(seed)
    data = bytearray(rng.randrange(256) for _ in range(width * height * 3))
    return ImageBuffer(width, height, 255, data)


def _gray(values):
    return ImageBuffer.from_pixels(len(values), 1, [(v, v, v) for v in values])


def test_reference_entries_collision_policies():
    levels = [3, 3, 7, 7, 7]
    assert reference_entries(levels, KeyCollision.FIRST) == [(3, 0), (7, 2)]
    assert reference_entries(levels, KeyCollision.LAST) == [(3, 1), (7, 4)]
    assert reference_entries(levels, "last") == [(3, 1), (7, 4)]


def test_lookup_nearest_level_and_tie_prefers_upper():
    reference = [10] * 128 + [255] * 128
    source = [3, 5, 7, 100, 200] + [255] * 251
    table = build_lookup_table(source, reference)
    # 3 is closer to the (0, 255) fallback than to level 10
    assert table[0] == 255
    # 5 is equally far from both sides: upper wins
    assert table[1] == 0
    assert table[2] == 0
    assert table[3] == 0
    assert table[4] == 128
    assert set(table[5:]) == {128}


def test_missing_upper_uses_fallback_entry():
    table = build_lookup_table([0, 4] + [0] * 254, [0] * 256)
    assert table[0] == 0
    # level 4 lies above every reference level; fallback ties with level 0
    assert table[1] == 255


def test_lookup_table_is_total():
    rng = random.Random(4)
    for _ in range(20):
        source = sorted(rng.randrange(256) for _ in range(256))
        reference = sorted(rng.randrange(256) for _ in range(256))
        table = build_lookup_table(source, reference)
        assert len(table) == 256
        assert all(0 <= value <= 255 for value in table)


def test_self_matching_preserves_cumulative_level():
    image = _random_image(6, 6, seed=5)
    tables = channel_lookup_tables(image, image)
    for channel in Channel:
        levels = channel_levels(image, channel)
        table = tables[channel]
        assert all(levels[table[v]] == levels[v] for v in range(256))


def test_self_matching_every_value_once():
    image = _gray(range(256))
    first = channel_lookup_tables(image, image)[Channel.RED]
    last = channel_lookup_tables(image, image, KeyCollision.LAST)[Channel.RED]
    # levels 254 and 255 both quantize to 255
    assert list(first[:255]) == list(range(255))
    assert first[255] == 254
    assert list(last[:254]) == list(range(254))
    assert last[254] == 255 and last[255] == 255


def test_degenerate_reference_maps_everything_to_its_value():
    source = ImageBuffer.from_pixels(2, 1, [(0, 0, 0), (255, 255, 255)])
    reference = ImageBuffer.from_pixels(2, 1, [(0, 0, 0), (0, 0, 0)])
    result = match_histograms(source, reference)
    assert list(result.iter_pixels()) == [(0, 0, 0), (0, 0, 0)]


def test_degenerate_reference_with_last_value_policy():
    source = ImageBuffer.from_pixels(2, 1, [(0, 0, 0), (255, 255, 255)])
    reference = ImageBuffer.from_pixels(2, 1, [(0, 0, 0), (0, 0, 0)])
    result = match_histograms(source, reference, MatchSettings(collision="last"))
    assert list(result.iter_pixels()) == [(255, 255, 255), (255, 255, 255)]


def test_uniform_reference_equalizes():
    source = _gray([0, 0, 128, 255])
    # levels of the source: 128, 192, 255
    expected = [127, 127, 191, 254]
    assert list(equalize_histograms(source).channel_samples(Channel.RED)) == expected
    flat_reference = _gray(range(256))
    assert channel_levels(flat_reference, Channel.RED) == uniform_levels()
    matched = match_histograms(source, flat_reference)
    assert list(matched.channel_samples(Channel.GREEN)) == expected


def test_different_dimensions():
    source = _random_image(4, 1, seed=6)
    reference = _random_image(2, 3, seed=7)
    result = match_histograms(source, reference)
    assert (result.width, result.height) == (4, 1)
    assert len(result.data) == 12


def test_channels_are_matched_independently():
    source = ImageBuffer.from_pixels(2, 1, [(0, 50, 0), (255, 60, 0)])
    reference = ImageBuffer.from_pixels(2, 1, [(0, 50, 9), (0, 60, 9)])
    result = match_histograms(source, reference)
    assert [p[0] for p in result.iter_pixels()] == [0, 0]
    assert [p[1] for p in result.iter_pixels()] == [50, 60]
    assert [p[2] for p in result.iter_pixels()] == [9, 9]


def test_planar_and_interleaved_agree():
    source = _random_image(5, 4, seed=8)
    reference = _random_image(3, 3, seed=9)
    interleaved = match_histograms(source, reference)
    planar = match_histograms(source.to_planes(), reference.to_planes())
    assert isinstance(planar, ChannelPlanes)
    assert planar.to_buffer() == interleaved
    mixed = match_histograms(source.to_planes(), reference)
    assert mixed.to_buffer() == interleaved


def test_parallel_matches_serial():
    source = _random_image(8, 8, seed=10)
    reference = _random_image(6, 6, seed=11)
    serial = match_histograms(source, reference)
    parallel = match_histograms(source, reference, MatchSettings(parallel=True))
    assert parallel == serial
    planar = match_histograms(source.to_planes(), reference, MatchSettings(parallel=True))
    assert planar.to_buffer() == serial


def test_copy_leaves_source_untouched():
    source = _random_image(3, 3, seed=12)
    before = bytearray(source.data)
    result = match_histograms(source, _gray([0, 0, 0]))
    assert result is not source
    assert source.data == before


def test_in_place_rewrites_source():
    source = ImageBuffer.from_pixels(2, 1, [(0, 0, 0), (255, 255, 255)])
    reference = ImageBuffer.from_pixels(1, 1, [(0, 0, 0)])
    result = match_histograms(source, reference, MatchSettings(in_place=True))
    assert result is source
    assert source.data == bytearray(6)


def test_apply_lookup_table_touches_one_channel():
    image = ImageBuffer.from_pixels(2, 1, [(1, 2, 3), (4, 5, 6)])
    inverted = bytes(255 - i for i in range(256))
    result = apply_lookup_table(image, Channel.GREEN, inverted)
    assert list(result.iter_pixels()) == [(1, 253, 3), (4, 250, 6)]
    assert image.get_pixel(0, 0) == (1, 2, 3)


def test_apply_lookup_table_in_place_on_planes():
    planes = ChannelPlanes.from_sequences(2, 1, [1, 4], [2, 5], [3, 6])
    inverted = bytes(255 - i for i in range(256))
    result = apply_lookup_table(planes, Channel.BLUE, inverted, in_place=True)
    assert result is planes
    assert planes.blue == bytearray([252, 249])
    assert planes.red == bytearray([1, 4])


def test_empty_images_are_rejected():
    empty = ImageBuffer(0, 0, 255, bytearray())
    image = _gray([1, 2])
    with pytest.raises(EmptyImageError):
        match_histograms(empty, image)
    with pytest.raises(EmptyImageError):
        match_histograms(image, empty)
