"""Decode backends.

The decode path never calls an image library directly; it goes through a
``DecodeBackend`` passed in by the caller. ``VipsBackend`` is the default and
decodes with libvips (via pyvips), streaming from the opened file object so
only the sampled pixels are ever materialized.
"""

from __future__ import annotations

import contextlib
import os
import threading
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO

import numpy as np

from uri_image.logger import get_logger

_logger = get_logger("backend")

# Locate bundled libvips (for frozen exe/_MEIPASS and source tree)
_BASE_DIR = Path(getattr(os.sys, "_MEIPASS", Path(__file__).resolve().parent.parent))
_LIBVIPS_DIR = _BASE_DIR / "libvips"
if os.name == "nt" and _LIBVIPS_DIR.exists():
    with contextlib.suppress(Exception):
        os.add_dll_directory(str(_LIBVIPS_DIR))

_SIXTEEN_BIT_SCALE = 257.0

# 4x4 ordered dither thresholds in (0, 1)
_BAYER_4 = (np.array([[0, 8, 2, 10], [12, 4, 14, 6], [3, 11, 1, 9], [15, 7, 13, 5]], dtype=np.float32) + 0.5) / 16.0

_LOADER_MIME = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "tiff": "image/tiff",
    "heif": "image/heif",
    "svg": "image/svg+xml",
    "jp2k": "image/jp2",
    "jxl": "image/jxl",
    "pdf": "application/pdf",
    "rad": "image/vnd.radiance",
    "ppm": "image/x-portable-anymap",
}


class PixelFormat(Enum):
    """In-memory pixel layouts; all are 8 bits per channel."""

    ARGB_8888 = "ARGB_8888"  # stored as R, G, B, A
    RGB_888 = "RGB_888"
    ALPHA_8 = "ALPHA_8"

    @property
    def bands(self) -> int:
        return {PixelFormat.ARGB_8888: 4, PixelFormat.RGB_888: 3, PixelFormat.ALPHA_8: 1}[self]


class DecodeCanceled(Exception):
    """Raised by a backend when it notices the cancel flag mid-decode."""


class DecodeBackend(ABC):
    """Decode capability the decoder calls through."""

    @abstractmethod
    def read_header(self, fileobj: BinaryIO) -> tuple[int, int, str]:
        """Read (width, height, mime_type) without decoding pixels."""

    @abstractmethod
    def decode(
        self,
        fileobj: BinaryIO,
        sample_size: int,
        pixel_format: PixelFormat,
        dither: bool,
        cancel_flag: threading.Event | None,
    ) -> np.ndarray:
        """Decode pixels downsampled by ``sample_size`` into an (H, W, bands) uint8 array.

        Must poll ``cancel_flag`` while working and raise DecodeCanceled once it
        is set.
        """

    @abstractmethod
    def resize(self, pixels: np.ndarray, scale: float) -> np.ndarray:
        """Uniformly rescale an (H, W, bands) uint8 array."""


_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Decodes are one-shot; the operation cache only grows memory.
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


def _source_for(pyvips: Any, fileobj: BinaryIO) -> Any:
    """Wrap a seekable Python file object as a libvips source."""
    fileobj.seek(0)
    source = pyvips.SourceCustom()

    def _read(size: int) -> bytes:
        return fileobj.read(size)

    def _seek(offset: int, whence: int) -> int:
        fileobj.seek(offset, whence)
        return fileobj.tell()

    source.on_read(_read)
    source.on_seek(_seek)
    return source


def mime_for_loader(loader: str) -> str:
    """Map a libvips loader name ("jpegload_source") to a mime type."""
    prefix = loader.split("load", 1)[0] if "load" in loader else ""
    return _LOADER_MIME.get(prefix, "")


def quantize(pixels: np.ndarray, dither: bool) -> np.ndarray:
    """Reduce a uint16 array to uint8, optionally with ordered dithering.

    uint8 input is returned as a private copy.
    """
    if pixels.dtype == np.uint8:
        return pixels.copy()
    scaled = pixels.astype(np.float32) / _SIXTEEN_BIT_SCALE
    if dither:
        h, w = scaled.shape[:2]
        threshold = np.tile(_BAYER_4, (h // 4 + 1, w // 4 + 1))[:h, :w]
        scaled = np.floor(scaled + threshold[..., None])
    else:
        scaled = np.rint(scaled)
    return np.clip(scaled, 0, 255).astype(np.uint8)


class VipsBackend(DecodeBackend):
    """libvips decode backend.

    ``gate`` is an optional lock held around native calls, for hosts that need
    decodes serialized process-wide. Cancellation is polled from libvips'
    ``eval`` progress signal, which fires once per batch of computed
    scanlines; a set flag kills the pipeline.
    """

    def __init__(self, gate: threading.Lock | None = None) -> None:
        self._gate = gate

    def _gated(self):
        return self._gate if self._gate is not None else contextlib.nullcontext()

    def read_header(self, fileobj: BinaryIO) -> tuple[int, int, str]:
        pyvips = _get_pyvips_module()
        with self._gated():
            image = pyvips.Image.new_from_source(_source_for(pyvips, fileobj), "", access="sequential")
            width, height = int(image.width), int(image.height)
            loader = ""
            with contextlib.suppress(Exception):
                loader = str(image.get("vips-loader"))
        return width, height, mime_for_loader(loader)

    def decode(
        self,
        fileobj: BinaryIO,
        sample_size: int,
        pixel_format: PixelFormat,
        dither: bool,
        cancel_flag: threading.Event | None,
    ) -> np.ndarray:
        pyvips = _get_pyvips_module()
        if cancel_flag is not None and cancel_flag.is_set():
            raise DecodeCanceled()
        with self._gated():
            if cancel_flag is not None and cancel_flag.is_set():
                raise DecodeCanceled()
            image = pyvips.Image.new_from_source(_source_for(pyvips, fileobj), "", access="sequential")
            if sample_size > 1:
                # Keep at least one pixel on a very thin axis.
                image = image.shrink(min(sample_size, image.width), min(sample_size, image.height))
            image = _convert_layout(pyvips, image, pixel_format)
            if cancel_flag is not None:
                image.set_progress(True)
                image.signal_connect("eval", _kill_when_set(cancel_flag))
            try:
                mem = image.write_to_memory()
            except pyvips.Error:
                if cancel_flag is not None and cancel_flag.is_set():
                    raise DecodeCanceled() from None
                raise
            dtype = np.uint16 if image.format == "ushort" else np.uint8
            shape = (int(image.height), int(image.width), int(image.bands))
        array = np.frombuffer(mem, dtype=dtype).reshape(shape)
        if array.shape[2] != pixel_format.bands:
            raise RuntimeError(f"Unsupported band count after conversion: {array.shape[2]}")
        return quantize(array, dither)

    def resize(self, pixels: np.ndarray, scale: float) -> np.ndarray:
        pyvips = _get_pyvips_module()
        arr = np.ascontiguousarray(pixels, dtype=np.uint8)
        h, w, bands = arr.shape
        with self._gated():
            image = pyvips.Image.new_from_memory(arr.tobytes(), w, h, bands, "uchar")
            out = image.resize(scale)
            mem = out.write_to_memory()
            shape = (int(out.height), int(out.width), int(out.bands))
        return np.frombuffer(mem, dtype=np.uint8).reshape(shape).copy()


def _kill_when_set(cancel_flag: threading.Event):
    def _on_eval(image: Any, _progress: Any) -> None:
        if cancel_flag.is_set():
            image.set_kill(True)

    return _on_eval


def _convert_layout(pyvips: Any, image: Any, pixel_format: PixelFormat) -> Any:
    """Convert to sRGB (or RGB16) with the bands ``pixel_format`` needs."""
    sixteen = image.format == "ushort" or image.interpretation in ("rgb16", "grey16")
    space = "rgb16" if sixteen else "srgb"
    max_alpha = 65535 if sixteen else 255
    if image.interpretation != space:
        image = image.colourspace(space)

    if pixel_format is PixelFormat.RGB_888:
        if image.hasalpha():
            image = image.flatten(background=[0, 0, 0])
        if image.bands > 3:
            image = image.extract_band(0, n=3)
    elif pixel_format is PixelFormat.ARGB_8888:
        if not image.hasalpha():
            image = image.bandjoin(max_alpha)
        if image.bands > 4:
            image = image.extract_band(0, n=4)
    elif image.hasalpha():
        image = image.extract_band(image.bands - 1)
    else:
        image = image.extract_band(0).new_from_image(max_alpha)

    target = "ushort" if sixteen else "uchar"
    if image.format != target:
        image = image.cast(target)
    return image
