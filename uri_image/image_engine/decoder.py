"""Sampled bitmap decoding.

``decode_bitmap`` turns one opened descriptor into a ``DecodeOutcome``. It
never raises for bad input: corrupt data, unsupported formats and I/O errors
become ``FAILED`` outcomes, and a set cancel flag becomes ``CANCELED``.
``full_size_bitmap`` is the convenience path: probe, pick a sample size,
decode.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO

import numpy as np

from uri_image.logger import get_logger

from .backend import DecodeBackend, DecodeCanceled, PixelFormat, VipsBackend
from .metrics import metrics
from .probe import probe_descriptor
from .resource import ResourceHandle, acquired_descriptor
from .sample_size import NO_LIMIT, compute_sample_size

_logger = get_logger("decoder")


@dataclass(frozen=True)
class DecodeOptions:
    target_max_dimension: int = NO_LIMIT
    just_bounds: bool = False
    pixel_format: PixelFormat = PixelFormat.ARGB_8888
    dither: bool = False

    def __post_init__(self) -> None:
        if self.target_max_dimension != NO_LIMIT and self.target_max_dimension <= 0:
            raise ValueError(f"target_max_dimension must be positive or NO_LIMIT: {self.target_max_dimension}")


@dataclass(frozen=True, eq=False)
class DecodedImage:
    pixels: np.ndarray = field(repr=False)
    width: int
    height: int
    pixel_format: PixelFormat

    @classmethod
    def from_array(cls, pixels: np.ndarray, pixel_format: PixelFormat) -> DecodedImage:
        height, width = int(pixels.shape[0]), int(pixels.shape[1])
        return cls(pixels, width, height, pixel_format)

    @property
    def nbytes(self) -> int:
        return int(self.pixels.nbytes)


class OperationState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.COMPLETED, OperationState.CANCELED, OperationState.FAILED)


@dataclass(frozen=True)
class DecodeOutcome:
    state: OperationState
    image: DecodedImage | None = None
    reason: str | None = None

    @classmethod
    def completed(cls, image: DecodedImage) -> DecodeOutcome:
        return cls(OperationState.COMPLETED, image=image)

    @classmethod
    def canceled(cls) -> DecodeOutcome:
        return cls(OperationState.CANCELED)

    @classmethod
    def failed(cls, reason: str) -> DecodeOutcome:
        return cls(OperationState.FAILED, reason=reason)


def decode_bitmap(
    fileobj: BinaryIO,
    sample_size: int,
    pixel_format: PixelFormat = PixelFormat.ARGB_8888,
    dither: bool = False,
    cancel_flag: threading.Event | None = None,
    backend: DecodeBackend | None = None,
) -> DecodeOutcome:
    """Decode pixels from ``fileobj``, downsampled by ``sample_size``.

    The descriptor is read but not closed; its owner releases it.
    """
    backend = backend or VipsBackend()
    if cancel_flag is not None and cancel_flag.is_set():
        metrics.inc("decode.canceled")
        return DecodeOutcome.canceled()
    try:
        with metrics.timed("decode.duration"):
            pixels = backend.decode(fileobj, max(1, int(sample_size)), pixel_format, dither, cancel_flag)
    except DecodeCanceled:
        _logger.debug("decode canceled")
        metrics.inc("decode.canceled")
        return DecodeOutcome.canceled()
    except Exception as e:
        if cancel_flag is not None and cancel_flag.is_set():
            _logger.debug("decode aborted after cancel: %s", e)
            metrics.inc("decode.canceled")
            return DecodeOutcome.canceled()
        _logger.debug("decode failed: %s", e)
        metrics.inc("decode.failed")
        return DecodeOutcome.failed(str(e) or type(e).__name__)
    metrics.inc("decode.completed")
    return DecodeOutcome.completed(DecodedImage.from_array(pixels, pixel_format))


def full_size_bitmap(
    handle: ResourceHandle,
    target_max_dimension: int = NO_LIMIT,
    options: DecodeOptions | None = None,
    backend: DecodeBackend | None = None,
) -> DecodedImage | None:
    """Decode ``handle`` so its longest edge is at most ``target_max_dimension``.

    Returns None when the resource cannot be opened or decoded.
    """
    options = options or DecodeOptions(target_max_dimension=target_max_dimension)
    if options.just_bounds:
        raise ValueError("bounds-only decodes go through probe()")
    backend = backend or VipsBackend()
    with acquired_descriptor(handle) as fileobj:
        if fileobj is None:
            _logger.debug("full_size_bitmap: cannot open %s", handle.location)
            return None
        bounds = probe_descriptor(fileobj, backend)
        if bounds.is_empty:
            _logger.error("got exception decoding bitmap %s: unreadable header", handle.location)
            return None
        sample_size = compute_sample_size(bounds.width, bounds.height, options.target_max_dimension)
        _logger.debug(
            "full_size_bitmap: %s %dx%d target=%s sample=%d",
            handle.location,
            bounds.width,
            bounds.height,
            options.target_max_dimension,
            sample_size,
        )
        outcome = decode_bitmap(fileobj, sample_size, options.pixel_format, options.dither, backend=backend)
    if outcome.state is not OperationState.COMPLETED:
        _logger.error("got exception decoding bitmap %s: %s", handle.location, outcome.reason)
        return None
    return outcome.image
