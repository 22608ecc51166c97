"""Cancelable decode operations.

A ``CancelableDecodeOperation`` wraps one sampled decode as a unit of work
that runs on whatever thread calls ``start()``. Cancellation is cooperative:
``request_cancel()`` sets a shared ``threading.Event`` that the decoder polls.

State machine::

    PENDING -> RUNNING -> COMPLETED | CANCELED | FAILED

The terminal state is assigned under the same lock that ``request_cancel()``
takes, so a cancel request either lands before the assignment (and the
operation resolves to CANCELED, dropping any image) or after it (and is a
no-op).
"""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Callable
from typing import BinaryIO

from uri_image.logger import get_logger

from .backend import DecodeBackend, VipsBackend
from .decoder import DecodedImage, DecodeOptions, DecodeOutcome, OperationState, decode_bitmap
from .metrics import metrics
from .probe import probe_descriptor
from .sample_size import compute_sample_size

_logger = get_logger("cancelable")

DoneCallback = Callable[["CancelableDecodeOperation"], None]


class CancelableDecodeOperation:
    """One decode of an opened descriptor, cancelable from any thread.

    The operation owns ``fileobj`` and closes it when ``start()`` returns, or
    on ``close()`` if it is never started.
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        options: DecodeOptions,
        backend: DecodeBackend | None = None,
        location: str = "",
    ) -> None:
        if options.just_bounds:
            raise ValueError("bounds-only decodes go through probe()")
        self._fileobj: BinaryIO | None = fileobj
        self._options = options
        self._backend = backend or VipsBackend()
        self._location = location
        self._cancel_flag = threading.Event()
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._state = OperationState.PENDING
        self._outcome: DecodeOutcome | None = None
        self._acknowledged = False
        self._callbacks: list[DoneCallback] = []

    def __repr__(self) -> str:
        return f"CancelableDecodeOperation({self._location!r}, state={self._state.value})"

    def __enter__(self) -> CancelableDecodeOperation:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- state -----------------------------------------------------
    @property
    def location(self) -> str:
        return self._location

    @property
    def options(self) -> DecodeOptions:
        return self._options

    @property
    def state(self) -> OperationState:
        with self._lock:
            return self._state

    @property
    def outcome(self) -> DecodeOutcome | None:
        """Terminal outcome, or None while pending/running."""
        with self._lock:
            return self._outcome

    @property
    def image(self) -> DecodedImage | None:
        outcome = self.outcome
        return outcome.image if outcome is not None else None

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_flag.is_set()

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> DecodeOutcome | None:
        """Block until acknowledged; returns the outcome or None on timeout."""
        if not self._done.wait(timeout):
            return None
        return self.outcome

    # ---- running ---------------------------------------------------
    def start(self) -> DecodeOutcome:
        """Run the decode on the calling thread. May be called once."""
        with self._lock:
            if self._state is not OperationState.PENDING:
                raise RuntimeError(f"operation already started ({self._state.value})")
            self._state = OperationState.RUNNING
        _logger.debug("start: %s target=%s", self._location, self._options.target_max_dimension)
        outcome = DecodeOutcome.failed("decode did not finish")
        try:
            outcome = self._run()
        finally:
            outcome = self._finish(outcome)
            self._release()
            self.acknowledge_cancel()
        return outcome

    def _run(self) -> DecodeOutcome:
        fileobj = self._fileobj
        if self._cancel_flag.is_set():
            return DecodeOutcome.canceled()
        if fileobj is None:
            return DecodeOutcome.failed("descriptor already released")
        bounds = probe_descriptor(fileobj, self._backend)
        if self._cancel_flag.is_set():
            return DecodeOutcome.canceled()
        if bounds.is_empty:
            return DecodeOutcome.failed("unreadable image header")
        sample_size = compute_sample_size(bounds.width, bounds.height, self._options.target_max_dimension)
        _logger.debug("decode: %s %dx%d sample=%d", self._location, bounds.width, bounds.height, sample_size)
        return decode_bitmap(
            fileobj,
            sample_size,
            self._options.pixel_format,
            self._options.dither,
            cancel_flag=self._cancel_flag,
            backend=self._backend,
        )

    def _finish(self, outcome: DecodeOutcome) -> DecodeOutcome:
        with self._lock:
            if self._cancel_flag.is_set() and outcome.state is not OperationState.CANCELED:
                _logger.debug("cancel won over %s result: %s", outcome.state.value, self._location)
                metrics.inc("cancelable.late_cancel")
                outcome = DecodeOutcome.canceled()
            self._outcome = outcome
            self._state = outcome.state
        return outcome

    def _release(self) -> None:
        with self._lock:
            fileobj, self._fileobj = self._fileobj, None
        if fileobj is not None:
            with contextlib.suppress(Exception):
                fileobj.close()

    # ---- cancellation ----------------------------------------------
    def request_cancel(self) -> bool:
        """Ask the decode to stop. Returns False once a terminal state is reached."""
        with self._lock:
            if self._state.is_terminal:
                return False
            self._cancel_flag.set()
        _logger.debug("cancel requested: %s", self._location)
        return True

    def cancel(self, timeout: float | None = None) -> bool:
        """Request cancellation and, if the decode is running, wait for it to stop.

        Returns True when the operation is (or will be, once started) CANCELED.
        """
        if not self.request_cancel():
            return self.state is OperationState.CANCELED
        state = self.state
        if state is OperationState.PENDING:
            # start() checks the flag before touching the descriptor.
            return True
        if state is OperationState.RUNNING:
            self._done.wait(timeout)
            state = self.state
        return state is OperationState.CANCELED

    def acknowledge_cancel(self) -> None:
        """Signal waiters that the operation reached a terminal state.

        ``start()`` calls this on every exit path; only the first call after the
        terminal state is assigned has any effect. Earlier calls are ignored.
        """
        with self._lock:
            if self._acknowledged or not self._state.is_terminal:
                return
            self._acknowledged = True
            callbacks, self._callbacks = self._callbacks, []
        self._done.set()
        for fn in callbacks:
            try:
                fn(self)
            except Exception:
                _logger.exception("done callback failed for %s", self._location)

    def add_done_callback(self, fn: DoneCallback) -> None:
        """Call ``fn(op)`` once after acknowledgment (immediately if already done)."""
        with self._lock:
            if not self._acknowledged:
                self._callbacks.append(fn)
                return
        fn(self)

    def close(self) -> None:
        """Release the descriptor of an operation that was never started.

        A closed pending operation resolves to CANCELED if started later.
        """
        with self._lock:
            if self._state is not OperationState.PENDING:
                return
            self._cancel_flag.set()
        self._release()
