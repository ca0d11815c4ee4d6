"""
cropper.py — cut the four fixed wardrobe regions out of a source photo.

Region boundaries are constant fractions of the image size (see
wardrobe.CROP_GEOMETRY), not the output of a pose detector. Each crop is a
1:1 copy of the source pixels encoded as PNG, so there is no resampling and
no compression loss.
"""
from __future__ import annotations

import io
import logging
from decimal import Decimal

from PIL import Image, UnidentifiedImageError

from errors import RenderError
from wardrobe import CROP_GEOMETRY, Region

logger = logging.getLogger(__name__)

# Modes Pillow can write to PNG without conversion
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


def _scale(fraction: float, size: int) -> int:
    # Decimal keeps 0.3 × 2000 at exactly 600 (float gives 599.999…)
    return int(Decimal(repr(fraction)) * size)


def crop_box(width: int, height: int, region: Region) -> tuple[int, int, int, int]:
    """Return the pixel rectangle (x, y, w, h) of `region`, rounded down."""
    geo = CROP_GEOMETRY[region]
    return (
        _scale(geo.x_fraction, width),
        _scale(geo.y_fraction, height),
        _scale(geo.width_fraction, width),
        _scale(geo.height_fraction, height),
    )


def load_image(data: bytes) -> Image.Image:
    """Decode an uploaded photo. Raises RenderError for unreadable input."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise RenderError(f"could not decode source image: {exc}") from exc
    return img


def crop(image: Image.Image, region: Region) -> bytes:
    """
    Copy the region's rectangle into a same-size PNG buffer.
    Raises RenderError when no surface can be produced for this region.
    """
    x, y, w, h = crop_box(image.width, image.height, region)
    if w <= 0 or h <= 0:
        raise RenderError(
            f"{region.value}: empty crop {w}x{h} from {image.width}x{image.height} image"
        )
    try:
        tile = image.crop((x, y, x + w, y + h))
        if tile.mode not in _PNG_MODES:
            tile = tile.convert("RGBA" if "A" in tile.getbands() else "RGB")
        buffer = io.BytesIO()
        tile.save(buffer, format="PNG")
    except (OSError, ValueError, MemoryError) as exc:
        raise RenderError(f"{region.value}: could not render crop: {exc}") from exc

    logger.debug("Cropped %s → (%d, %d, %d, %d)", region.value, x, y, w, h)
    return buffer.getvalue()
