from __future__ import annotations

from pathlib import Path

from PIL import Image

from .image_buffer import ImageBuffer
from .pillow_io import ImageFormatError, read_image, write_image
from .ppm import read_ppm, write_ppm

__all__ = ["ImageFormatError", "load_image", "save_image"]


def _check_suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix != ".ppm" and suffix not in Image.registered_extensions():
        raise ImageFormatError(f"Unsupported file extension: {path.suffix or '<none>'}")
    return suffix


def load_image(path: str | Path) -> ImageBuffer:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    if _check_suffix(path) == ".ppm":
        return read_ppm(path)
    return read_image(path)


def save_image(image: ImageBuffer, path: str | Path, quality: int = 90, binary: bool = True) -> None:
    """Write an image; the format follows the file extension."""
    path = Path(path)
    if _check_suffix(path) == ".ppm":
        write_ppm(image, path, binary=binary)
    else:
        write_image(image, path, quality=quality)
