from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .image_buffer import ImageBuffer

logger = logging.getLogger(__name__)

# Formats whose encoder accepts the `quality` option.
LOSSY_FORMATS = {"JPEG", "WEBP"}


class ImageFormatError(RuntimeError):
    pass


def read_image(path: str | Path) -> ImageBuffer:
    """Decode any Pillow-readable file into RGB; alpha and palettes are flattened."""
    try:
        with Image.open(path) as img:
            image = ImageBuffer.from_pillow_image(img)
    except UnidentifiedImageError as exc:
        raise ImageFormatError(f"Cannot decode image: {path}") from exc
    logger.info("Read %s (%dx%d)", path, image.width, image.height)
    return image


def write_image(image: ImageBuffer, path: str | Path, quality: int = 90) -> None:
    path = Path(path)
    fmt = Image.registered_extensions().get(path.suffix.lower())
    if fmt not in Image.SAVE:
        raise ImageFormatError(f"Cannot write {fmt or path.suffix or '<none>'} images: {path}")
    pil_image = image.to_pillow_image()
    if fmt in LOSSY_FORMATS:
        quality = max(1, min(95, quality))
        pil_image.save(path, format=fmt, quality=quality, optimize=True)
    else:
        pil_image.save(path, format=fmt)
    logger.info("Wrote %s as %s", path, fmt)
