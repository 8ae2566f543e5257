from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, Sequence, Tuple

Pixel = Tuple[int, int, int]


class ShapeMismatchError(ValueError):
    """Raised when pixel data does not agree with the declared dimensions."""


class Channel(IntEnum):
    """Colour channel of an RGB image. The value is the interleaved offset."""

    RED = 0
    GREEN = 1
    BLUE = 2

    @classmethod
    def from_name(cls, name: str) -> "Channel":
        key = name.strip().upper()
        aliases = {"R": "RED", "G": "GREEN", "B": "BLUE"}
        key = aliases.get(key, key)
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown channel: {name!r}") from None


@dataclass
class ImageBuffer:
    """Simple RGB image container backed by a flat interleaved bytearray."""

    width: int
    height: int
    max_value: int
    data: bytearray

    def __post_init__(self) -> None:
        _check_dimensions(self.width, self.height)
        if len(self.data) != self.width * self.height * 3:
            raise ShapeMismatchError(
                f"Interleaved data has {len(self.data)} samples, "
                f"expected {self.width}x{self.height}x3"
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @classmethod
    def from_dimensions(
        cls,
        width: int,
        height: int,
        color: Pixel | None = None,
        max_value: int = 255,
    ) -> "ImageBuffer":
        r, g, b = color or (0, 0, 0)
        data = bytearray((r, g, b)) * (width * height)
        return cls(width, height, max_value, data)

    @classmethod
    def from_pixels(
        cls,
        width: int,
        height: int,
        pixels: Iterable[Pixel],
        max_value: int = 255,
    ) -> "ImageBuffer":
        data = bytearray()
        for r, g, b in pixels:
            data.extend([r, g, b])
        return cls(width, height, max_value, data)

    def copy(self) -> "ImageBuffer":
        return ImageBuffer(self.width, self.height, self.max_value, bytearray(self.data))

    def get_pixel(self, x: int, y: int) -> Pixel:
        self._validate_coordinates(x, y)
        idx = self._offset(x, y)
        return self.data[idx], self.data[idx + 1], self.data[idx + 2]

    def iter_pixels(self) -> Iterator[Pixel]:
        for i in range(0, len(self.data), 3):
            yield self.data[i], self.data[i + 1], self.data[i + 2]

    def channel_samples(self, channel: Channel) -> Sequence[int]:
        return self.data[channel::3]

    def to_planes(self) -> "ChannelPlanes":
        return ChannelPlanes(
            self.width,
            self.height,
            self.data[Channel.RED::3],
            self.data[Channel.GREEN::3],
            self.data[Channel.BLUE::3],
        )

    def to_pillow_image(self):
        from PIL import Image

        return Image.frombytes("RGB", (self.width, self.height), bytes(self.data))

    @classmethod
    def from_pillow_image(cls, image) -> "ImageBuffer":
        rgb_image = image.convert("RGB")
        return cls(rgb_image.width, rgb_image.height, 255, bytearray(rgb_image.tobytes()))

    def _validate_coordinates(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError("Pixel coordinates out of bounds")

    def _offset(self, x: int, y: int) -> int:
        return (y * self.width + x) * 3


@dataclass
class ChannelPlanes:
    """
    Planar RGB image: one bytearray per channel, each width*height long.
    Interchangeable with ImageBuffer everywhere in the matching pipeline.
    """

    width: int
    height: int
    red: bytearray
    green: bytearray
    blue: bytearray

    def __post_init__(self) -> None:
        _check_dimensions(self.width, self.height)
        expected = self.width * self.height
        for channel in Channel:
            plane = self.plane(channel)
            if len(plane) != expected:
                raise ShapeMismatchError(
                    f"{channel.name.lower()} plane has {len(plane)} samples, "
                    f"expected {self.width}x{self.height}"
                )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @classmethod
    def from_sequences(
        cls,
        width: int,
        height: int,
        red: Iterable[int],
        green: Iterable[int],
        blue: Iterable[int],
    ) -> "ChannelPlanes":
        return cls(width, height, bytearray(red), bytearray(green), bytearray(blue))

    def plane(self, channel: Channel) -> bytearray:
        return (self.red, self.green, self.blue)[channel]

    def channel_samples(self, channel: Channel) -> Sequence[int]:
        return self.plane(channel)

    def copy(self) -> "ChannelPlanes":
        return ChannelPlanes(
            self.width,
            self.height,
            bytearray(self.red),
            bytearray(self.green),
            bytearray(self.blue),
        )

    def to_buffer(self, max_value: int = 255) -> ImageBuffer:
        data = bytearray(self.pixel_count * 3)
        data[Channel.RED::3] = self.red
        data[Channel.GREEN::3] = self.green
        data[Channel.BLUE::3] = self.blue
        return ImageBuffer(self.width, self.height, max_value, data)


def _check_dimensions(width: int, height: int) -> None:
    if width < 0 or height < 0:
        raise ShapeMismatchError(f"Image dimensions must not be negative: {width}x{height}")
