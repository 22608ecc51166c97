"""Read-only image addressed by a location string.

``UriImage`` is what a gallery hands out for images it does not manage
itself (files opened from elsewhere, provider references). It can be probed,
decoded and thumbnailed, but never edited; callers check ``supports()``
before routing an image through an editing path.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, BinaryIO

from uri_image.logger import get_logger
from uri_image.settings_manager import SettingsManager

from .backend import DecodeBackend, PixelFormat, VipsBackend
from .cancelable import CancelableDecodeOperation
from .decoder import DecodedImage, DecodeOptions, full_size_bitmap
from .probe import ProbeResult, probe
from .resource import ContentResolver, ResourceHandle
from .sample_size import NO_LIMIT
from .thumbnail import thumbnail_for

_logger = get_logger("uri_image")


class UnsupportedOperationError(NotImplementedError):
    """A mutating operation was invoked on a read-only image."""

    def __init__(self, operation: str, location: str = "") -> None:
        self.operation = operation
        self.location = location
        super().__init__(f"{operation} is not supported on read-only image {location}".rstrip())


class ImageCapability(Enum):
    PROBE = "probe"
    DECODE = "decode"
    THUMBNAIL = "thumbnail"
    EDIT = "edit"
    RENAME = "rename"
    ROTATE = "rotate"
    REMOVE = "remove"


READ_ONLY_CAPABILITIES = frozenset({ImageCapability.PROBE, ImageCapability.DECODE, ImageCapability.THUMBNAIL})


class UriImage:
    def __init__(
        self,
        container: Any | None,
        resolver: ContentResolver | None,
        location: str,
        backend: DecodeBackend | None = None,
        settings: SettingsManager | None = None,
    ) -> None:
        self._handle = ResourceHandle(location, resolver, container)
        self._backend = backend or VipsBackend()
        self._settings = settings or SettingsManager()

    def __repr__(self) -> str:
        return f"UriImage({self.location!r})"

    # ---- identity --------------------------------------------------
    @property
    def handle(self) -> ResourceHandle:
        return self._handle

    @property
    def location(self) -> str:
        return self._handle.location

    @property
    def data_path(self) -> str:
        return self._handle.data_path

    @property
    def title(self) -> str:
        return self.location

    @property
    def display_name(self) -> str:
        return self.title

    @property
    def container(self) -> Any | None:
        return self._handle.container

    @property
    def full_size_image_id(self) -> int:
        return 0

    @property
    def date_taken(self) -> int:
        return 0

    @property
    def is_readonly(self) -> bool:
        return True

    @property
    def is_drm(self) -> bool:
        return False

    @property
    def capabilities(self) -> frozenset[ImageCapability]:
        return READ_ONLY_CAPABILITIES

    def supports(self, capability: ImageCapability) -> bool:
        return capability in self.capabilities

    # ---- metadata (probed on every call) ---------------------------
    def probe(self) -> ProbeResult:
        return probe(self._handle, self._backend)

    @property
    def mime_type(self) -> str:
        return self.probe().mime_type

    @property
    def width(self) -> int:
        return self.probe().width

    @property
    def height(self) -> int:
        return self.probe().height

    # ---- pixels ----------------------------------------------------
    def full_size_image_data(self) -> BinaryIO | None:
        return self._handle.open_stream()

    def decode_options(self, target_max_dimension: int = NO_LIMIT) -> DecodeOptions:
        try:
            pixel_format = PixelFormat(self._settings.pixel_format_name)
        except ValueError:
            _logger.warning("unknown pixel_format setting: %s", self._settings.pixel_format_name)
            pixel_format = PixelFormat.ARGB_8888
        return DecodeOptions(
            target_max_dimension=target_max_dimension,
            pixel_format=pixel_format,
            dither=self._settings.dither,
        )

    def full_size_bitmap(self, target_max_dimension: int = NO_LIMIT) -> DecodedImage | None:
        return full_size_bitmap(
            self._handle,
            target_max_dimension,
            options=self.decode_options(target_max_dimension),
            backend=self._backend,
        )

    def full_size_bitmap_cancelable(self, target_max_dimension: int = NO_LIMIT) -> CancelableDecodeOperation | None:
        """Cancelable decode bound to a freshly opened descriptor, or None if it cannot be opened."""
        fileobj = self._handle.open_descriptor()
        if fileobj is None:
            return None
        return CancelableDecodeOperation(
            fileobj,
            self.decode_options(target_max_dimension),
            backend=self._backend,
            location=self.location,
        )

    def thumb_bitmap(self) -> DecodedImage | None:
        size = self._settings.thumbnail_target_size
        return thumbnail_for(self._handle, size, options=self.decode_options(size), backend=self._backend)

    def mini_thumb_bitmap(self) -> DecodedImage | None:
        return self.thumb_bitmap()

    # ---- unsupported mutations -------------------------------------
    def commit_changes(self) -> None:
        raise UnsupportedOperationError("commit_changes", self.location)

    def set_title(self, name: str) -> None:
        raise UnsupportedOperationError("set_title", self.location)

    def rotate_image_by(self, degrees: int) -> bool:
        raise UnsupportedOperationError("rotate_image_by", self.location)

    def on_remove(self) -> None:
        raise UnsupportedOperationError("on_remove", self.location)

    @property
    def row(self) -> int:
        raise UnsupportedOperationError("row", self.location)

    def thumb_uri(self) -> str:
        raise UnsupportedOperationError("thumb_uri", self.location)
