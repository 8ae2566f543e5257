from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO, Iterator

from .image_buffer import ImageBuffer

logger = logging.getLogger(__name__)

MAX_PPM_VALUE = 65535


class PPMFormatError(RuntimeError):
    pass


def read_ppm(path: str | Path) -> ImageBuffer:
    with open(path, "rb") as stream:
        image = decode_ppm(stream)
    logger.info("Read PPM %s (%dx%d)", path, image.width, image.height)
    return image


def write_ppm(image: ImageBuffer, path: str | Path, binary: bool = True) -> None:
    with open(path, "wb") as stream:
        stream.write(encode_ppm(image, binary=binary))
    logger.info("Wrote %s PPM %s", "P6" if binary else "P3", path)


def decode_ppm(stream: BinaryIO | bytes) -> ImageBuffer:
    """Decode a P3 or P6 image; samples are rescaled to 8 bits."""
    if isinstance(stream, (bytes, bytearray)):
        stream = io.BytesIO(stream)
    magic, width, height, max_value = _read_header(stream)
    total_values = width * height * 3
    if magic == "P3":
        data = _read_ascii_pixels(stream, total_values, max_value)
    else:
        data = _read_binary_pixels(stream, total_values, max_value)
    return ImageBuffer(width, height, 255, data)


def encode_ppm(image: ImageBuffer, binary: bool = True) -> bytes:
    magic = "P6" if binary else "P3"
    header = f"{magic}\n{image.width} {image.height}\n255\n".encode("ascii")
    if binary:
        return header + bytes(image.data)
    return header + _ascii_rows(image)


def _read_header(stream: BinaryIO) -> tuple[str, int, int, int]:
    magic = stream.read(2).decode("ascii", errors="replace")
    if magic not in {"P3", "P6"}:
        raise PPMFormatError("File is not a valid PPM (expected P3 or P6)")
    tokens = list(_read_tokens(stream, 3))
    if len(tokens) < 3:
        raise PPMFormatError("PPM header is incomplete")
    try:
        width, height, max_value = map(int, tokens)
    except ValueError:
        raise PPMFormatError(f"PPM header is not numeric: {' '.join(tokens)}") from None
    if width <= 0 or height <= 0:
        raise PPMFormatError(f"PPM dimensions must be positive: {width}x{height}")
    if not (0 < max_value <= MAX_PPM_VALUE):
        raise PPMFormatError(f"PPM max value out of range: {max_value}")
    return magic, width, height, max_value


def _read_tokens(stream: BinaryIO, required: int) -> Iterator[str]:
    # Consumes exactly one whitespace byte after the last token, as P6 requires.
    token = bytearray()
    comment = False
    while required:
        chunk = stream.read(1)
        if not chunk:
            break
        ch = chunk[0]
        if comment:
            if ch in (10, 13):
                comment = False
            continue
        if ch == 35:
            comment = True
            continue
        if ch in b" \t\r\n\v\f":
            if token:
                yield _decode_token(token)
                token.clear()
                required -= 1
        else:
            token.append(ch)
    if token and required > 0:
        yield _decode_token(token)


def _read_ascii_pixels(stream: BinaryIO, total_values: int, max_value: int) -> bytearray:
    data = bytearray(total_values)
    idx = 0
    for token in _ascii_value_generator(stream):
        if idx >= total_values:
            break
        try:
            value = int(token)
        except ValueError:
            raise PPMFormatError(f"Invalid ASCII sample: {token!r}") from None
        if not (0 <= value <= max_value):
            raise PPMFormatError(f"Sample {value} exceeds max value {max_value}")
        data[idx] = _to_8bit(value, max_value)
        idx += 1
    if idx != total_values:
        raise PPMFormatError("Unexpected end of ASCII pixel data")
    return data


def _ascii_value_generator(stream: BinaryIO) -> Iterator[str]:
    token = bytearray()
    comment = False
    while True:
        chunk = stream.read(4096)
        if not chunk:
            break
        for ch in chunk:
            if comment:
                if ch in (10, 13):
                    comment = False
                continue
            if ch == 35:
                comment = True
                continue
            if chr(ch).isspace():
                if token:
                    yield _decode_token(token)
                    token.clear()
            else:
                token.append(ch)
    if token:
        yield _decode_token(token)


def _read_binary_pixels(stream: BinaryIO, total_values: int, max_value: int) -> bytearray:
    sample_size = 1 if max_value < 256 else 2
    raw = stream.read(total_values * sample_size)
    if len(raw) != total_values * sample_size:
        raise PPMFormatError("Binary pixel data shorter than expected")
    if sample_size == 2:
        values = (int.from_bytes(raw[i : i + 2], "big") for i in range(0, len(raw), 2))
        return bytearray(_to_8bit(min(v, max_value), max_value) for v in values)
    if max_value == 255:
        return bytearray(raw)
    return bytearray(_to_8bit(min(b, max_value), max_value) for b in raw)


def _ascii_rows(image: ImageBuffer) -> bytes:
    row_length = image.width * 3
    lines = []
    for y in range(image.height):
        offset = y * row_length
        row = image.data[offset : offset + row_length]
        lines.append(" ".join(str(value) for value in row))
    return ("\n".join(lines) + "\n").encode("ascii")


def _to_8bit(value: int, max_value: int) -> int:
    if max_value == 255:
        return value
    return int(round((value / max_value) * 255))


def _decode_token(token: bytearray) -> str:
    try:
        return token.decode("ascii")
    except UnicodeDecodeError:
        raise PPMFormatError(f"Non-ASCII bytes in PPM data: {bytes(token)!r}") from None
