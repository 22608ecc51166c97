"""Decode loader running cancelable decodes on a worker pool.

The core decode path spawns no threads. This loader is the optional piece a
Qt host can use to provide them: one pool thread per running operation,
results reported through ``image_decoded``.
"""

from __future__ import annotations

import contextlib
import threading
from concurrent.futures import ThreadPoolExecutor

from PySide6.QtCore import QObject, Signal

from uri_image.logger import get_logger
from uri_image.settings_manager import SettingsManager

from .cancelable import CancelableDecodeOperation
from .decoder import OperationState
from .sample_size import NO_LIMIT
from .uri_image import UriImage

_logger = get_logger("loader")


class DecodeLoader(QObject):
    """Schedules one cancelable decode per location.

    A newer request for a location cancels the older one; canceled and stale
    results are never emitted.
    """

    image_decoded = Signal(str, object, object)  # location, DecodedImage|None, error|None

    def __init__(self, settings: SettingsManager | None = None, max_workers: int | None = None):
        super().__init__()
        settings = settings or SettingsManager()
        workers = max_workers or settings.loader_workers
        self.io_pool = ThreadPoolExecutor(max_workers=workers)
        self._active: dict[str, CancelableDecodeOperation] = {}
        self._latest_params: dict[str, int] = {}
        self._lock = threading.Lock()
        _logger.debug("DecodeLoader init: io_workers=%s", workers)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._active)

    def request_load(self, image: UriImage, target_max_dimension: int = NO_LIMIT) -> CancelableDecodeOperation | None:
        location = image.location
        with self._lock:
            current = self._active.get(location)
            if (
                current is not None
                and self._latest_params.get(location) == target_max_dimension
                and not current.cancel_requested
            ):
                _logger.debug("request_load dedupe(pending): location=%s target=%s", location, target_max_dimension)
                return current

        op = image.full_size_bitmap_cancelable(target_max_dimension)
        if op is None:
            _logger.debug("request_load: cannot open %s", location)
            self.image_decoded.emit(location, None, "resource not found")
            return None

        with self._lock:
            previous = self._active.get(location)
            self._active[location] = op
            self._latest_params[location] = target_max_dimension
            pending_count = len(self._active)
        if previous is not None:
            _logger.debug("request_load supersedes %r", previous)
            previous.request_cancel()
            previous.close()

        op.add_done_callback(self._on_decode_finished)
        _logger.debug(
            "request_load queued: location=%s target=%s pending=%s", location, target_max_dimension, pending_count
        )
        try:
            self.io_pool.submit(op.start)
        except Exception as e:
            _logger.exception("submit decode failed for %s", location)
            with self._lock:
                if self._active.get(location) is op:
                    self._active.pop(location, None)
                    self._latest_params.pop(location, None)
            op.close()
            self.image_decoded.emit(location, None, str(e))
            return None
        return op

    def _on_decode_finished(self, op: CancelableDecodeOperation) -> None:
        outcome = op.outcome
        with self._lock:
            current = self._active.get(op.location) is op
            if current:
                self._active.pop(op.location, None)
                self._latest_params.pop(op.location, None)
        if not current:
            _logger.debug("decode_finished stale: %r (dropped)", op)
            return
        if outcome is None or outcome.state is OperationState.CANCELED:
            _logger.debug("decode_finished canceled: %s", op.location)
            return
        if outcome.state is OperationState.COMPLETED:
            image = outcome.image
            _logger.debug(
                "decode_finished emit: location=%s size=%sx%s",
                op.location,
                getattr(image, "width", None),
                getattr(image, "height", None),
            )
            self.image_decoded.emit(op.location, image, None)
        else:
            self.image_decoded.emit(op.location, None, outcome.reason)

    def cancel(self, location: str) -> bool:
        with self._lock:
            op = self._active.pop(location, None)
            self._latest_params.pop(location, None)
        if op is None:
            return False
        recorded = op.request_cancel()
        op.close()
        return recorded

    def cancel_all(self) -> None:
        with self._lock:
            ops = list(self._active.values())
            self._active.clear()
            self._latest_params.clear()
        for op in ops:
            op.request_cancel()
            op.close()

    def shutdown(self) -> None:
        self.cancel_all()
        try:
            self.io_pool.shutdown(wait=False, cancel_futures=True)  # type: ignore
        except TypeError:
            with contextlib.suppress(Exception):
                self.io_pool.shutdown(wait=False)
