"""Metadata probe: dimensions and format without decoding pixels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

from uri_image.logger import get_logger

from .backend import DecodeBackend, VipsBackend
from .metrics import metrics
from .resource import ResourceHandle, acquired_descriptor

_logger = get_logger("probe")


@dataclass(frozen=True)
class ProbeResult:
    width: int
    height: int
    mime_type: str

    @classmethod
    def empty(cls) -> ProbeResult:
        return cls(0, 0, "")

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


def probe_descriptor(fileobj: BinaryIO, backend: DecodeBackend | None = None) -> ProbeResult:
    """Read the header from an already opened descriptor.

    The descriptor is rewound first and is left open. Unreadable headers give
    ``ProbeResult.empty()``.
    """
    backend = backend or VipsBackend()
    try:
        width, height, mime_type = backend.read_header(fileobj)
    except Exception as e:
        _logger.debug("header read failed: %s", e)
        metrics.inc("probe.empty")
        return ProbeResult.empty()
    if width <= 0 or height <= 0:
        metrics.inc("probe.empty")
        return ProbeResult.empty()
    return ProbeResult(int(width), int(height), mime_type or "")


def probe(handle: ResourceHandle, backend: DecodeBackend | None = None) -> ProbeResult:
    """Probe a resource on a fresh descriptor; ``ProbeResult.empty()`` if it cannot be opened."""
    with acquired_descriptor(handle) as fileobj:
        if fileobj is None:
            _logger.debug("probe: cannot open %s", handle.location)
            metrics.inc("probe.empty")
            return ProbeResult.empty()
        return probe_descriptor(fileobj, backend)
