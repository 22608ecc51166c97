"""Thumbnail generation.

Two stages: a sampled decode bounded by a multiple of the thumbnail size
(cheap, integer factor, never more than 2x the target per edge), then a
uniform resample so the width lands on the target exactly.
"""

from __future__ import annotations

from dataclasses import replace

from uri_image.logger import get_logger

from .backend import DecodeBackend, VipsBackend
from .decoder import DecodedImage, DecodeOptions, full_size_bitmap
from .resource import ResourceHandle

_logger = get_logger("thumbnail")

THUMBNAIL_TARGET_SIZE = 320

# Coarse decode bound, as a multiple of the thumbnail size.
COARSE_FACTOR = 2


def thumbnail_scale(width: int, target_size: int) -> float:
    """Width-driven scale factor, capped at 1.0 (never upscales)."""
    if width <= 0:
        return 1.0
    return min(1.0, target_size / float(width))


def make_thumbnail(
    image: DecodedImage | None, target_size: int = THUMBNAIL_TARGET_SIZE, backend: DecodeBackend | None = None
) -> DecodedImage | None:
    """Scale ``image`` uniformly so its width is at most ``target_size``.

    Returns None for a None input; the result is always a new buffer.
    """
    if image is None:
        return None
    if target_size <= 0:
        raise ValueError(f"target_size must be positive: {target_size}")
    scale = thumbnail_scale(image.width, target_size)
    if scale >= 1.0:
        return DecodedImage.from_array(image.pixels.copy(), image.pixel_format)
    backend = backend or VipsBackend()
    pixels = backend.resize(image.pixels, scale)
    _logger.debug("thumbnail: %dx%d -> %dx%d", image.width, image.height, pixels.shape[1], pixels.shape[0])
    return DecodedImage.from_array(pixels, image.pixel_format)


def thumbnail_for(
    handle: ResourceHandle,
    target_size: int = THUMBNAIL_TARGET_SIZE,
    options: DecodeOptions | None = None,
    backend: DecodeBackend | None = None,
) -> DecodedImage | None:
    """Coarse sampled decode, then a fine uniform rescale to ``target_size``."""
    backend = backend or VipsBackend()
    coarse = target_size * COARSE_FACTOR
    if options is None:
        options = DecodeOptions(target_max_dimension=coarse)
    elif options.target_max_dimension != coarse:
        options = replace(options, target_max_dimension=coarse)
    decoded = full_size_bitmap(handle, coarse, options=options, backend=backend)
    return make_thumbnail(decoded, target_size, backend=backend)
