"""Image Engine - read-only access to one image resource.

This package provides:
- Resource handles and scoped descriptors (resource)
- Metadata probing (probe)
- Sample-size computation and sampled decoding (sample_size, decoder, backend)
- Cancelable decode operations (cancelable)
- Thumbnails (thumbnail)
- The read-only image facade (uri_image)
- Qt background decode and QImage conversion (loader, convert_worker, engine)

Usage:
    from uri_image.image_engine import UriImage

    image = UriImage(None, None, "file:///photos/big.jpg")
    op = image.full_size_bitmap_cancelable(1024)
    outcome = op.start()  # on a worker thread; op.cancel() from another
"""

from .backend import DecodeBackend, DecodeCanceled, PixelFormat, VipsBackend
from .cancelable import CancelableDecodeOperation
from .decoder import DecodedImage, DecodeOptions, DecodeOutcome, OperationState, decode_bitmap, full_size_bitmap
from .probe import ProbeResult, probe, probe_descriptor
from .resource import ContentResolver, ResourceHandle, acquired_descriptor
from .sample_size import NO_LIMIT, compute_sample_size
from .thumbnail import THUMBNAIL_TARGET_SIZE, make_thumbnail, thumbnail_for
from .uri_image import ImageCapability, UnsupportedOperationError, UriImage

try:
    from .convert_worker import ConvertWorker, to_qimage
    from .engine import ImageEngine
    from .loader import DecodeLoader
except Exception:  # pragma: no cover - allow importing the engine core without PySide6
    ConvertWorker = None
    DecodeLoader = None
    ImageEngine = None
    to_qimage = None

__all__ = [
    "NO_LIMIT",
    "THUMBNAIL_TARGET_SIZE",
    "CancelableDecodeOperation",
    "ContentResolver",
    "ConvertWorker",
    "DecodeBackend",
    "DecodeCanceled",
    "DecodeLoader",
    "DecodeOptions",
    "DecodeOutcome",
    "DecodedImage",
    "ImageCapability",
    "ImageEngine",
    "OperationState",
    "PixelFormat",
    "ProbeResult",
    "ResourceHandle",
    "UnsupportedOperationError",
    "UriImage",
    "VipsBackend",
    "acquired_descriptor",
    "compute_sample_size",
    "decode_bitmap",
    "full_size_bitmap",
    "make_thumbnail",
    "probe",
    "probe_descriptor",
    "thumbnail_for",
    "to_qimage",
]
