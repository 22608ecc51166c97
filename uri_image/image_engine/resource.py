"""Resource handles: open byte streams and seekable descriptors for a location.

The scheme dispatch below is the only place that knows about local files vs.
provider references. Everything downstream works on opened file objects.
"""

from __future__ import annotations

import contextlib
import io
import weakref
from collections.abc import Iterator
from typing import Any, BinaryIO, Protocol

from uri_image.logger import get_logger
from uri_image.path_utils import is_local, local_path, uri_path

_logger = get_logger("resource")

# Missing files, directories, unreadable or malformed names (ENAMETOOLONG, NUL
# bytes) and provider failures all mean the resource cannot be located.
_ABSENT_ERRORS = (OSError, ValueError)


class ContentResolver(Protocol):
    """Opens provider references (anything that is not a local file).

    Both methods return None, or raise FileNotFoundError, when the location
    cannot be resolved.
    """

    def open_stream(self, location: str) -> BinaryIO | None: ...

    def open_descriptor(self, location: str) -> BinaryIO | None: ...


class ResourceHandle:
    """Identifies one image resource and reopens it on demand.

    Every open returns a new, independently closable file object; the handle
    itself owns nothing that needs releasing.
    """

    __slots__ = ("_location", "_resolver", "_container_ref")

    def __init__(self, location: str, resolver: ContentResolver | None = None, container: Any | None = None):
        self._location = str(location)
        self._resolver = resolver
        self._container_ref = weakref.ref(container) if container is not None else None

    def __repr__(self) -> str:
        return f"ResourceHandle({self._location!r})"

    @property
    def location(self) -> str:
        return self._location

    @property
    def resolver(self) -> ContentResolver | None:
        return self._resolver

    @property
    def container(self) -> Any | None:
        """Owning container, if it is still alive. Lookup only."""
        return self._container_ref() if self._container_ref is not None else None

    @property
    def is_local(self) -> bool:
        return is_local(self._location)

    @property
    def data_path(self) -> str:
        if self.is_local:
            return str(local_path(self._location))
        return uri_path(self._location)

    def open_stream(self) -> BinaryIO | None:
        """Read-only byte stream, or None if the resource cannot be located."""
        try:
            if self.is_local:
                return open(local_path(self._location), "rb")
            if self._resolver is None:
                _logger.debug("no resolver for provider location: %s", self._location)
                return None
            return self._resolver.open_stream(self._location)
        except _ABSENT_ERRORS as e:
            _logger.debug("open_stream: cannot open %s (%s)", self._location, e)
            return None

    def open_descriptor(self) -> BinaryIO | None:
        """Seekable handle, or None if the resource cannot be located."""
        try:
            if self.is_local:
                return open(local_path(self._location), "rb")
            if self._resolver is None:
                _logger.debug("no resolver for provider location: %s", self._location)
                return None
            fileobj = self._resolver.open_descriptor(self._location)
        except _ABSENT_ERRORS as e:
            _logger.debug("open_descriptor: cannot open %s (%s)", self._location, e)
            return None
        if fileobj is None:
            return None
        return _ensure_seekable(fileobj)


def _ensure_seekable(fileobj: BinaryIO) -> BinaryIO:
    # Probe and decode each need their own pass over the bytes.
    seekable = False
    with contextlib.suppress(Exception):
        seekable = bool(fileobj.seekable())
    if seekable:
        return fileobj
    try:
        data = fileobj.read()
    finally:
        with contextlib.suppress(Exception):
            fileobj.close()
    _logger.debug("buffered non-seekable descriptor: %d bytes", len(data))
    return io.BytesIO(data)


@contextlib.contextmanager
def acquired_descriptor(handle: ResourceHandle) -> Iterator[BinaryIO | None]:
    """Open a fresh descriptor for the duration of a block.

    Yields None when the resource cannot be opened. The descriptor is closed
    on every exit path, including exceptions raised inside the block.
    """
    fileobj = handle.open_descriptor()
    try:
        yield fileobj
    finally:
        if fileobj is not None:
            with contextlib.suppress(Exception):
                fileobj.close()
