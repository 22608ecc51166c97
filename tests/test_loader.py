import time
from pathlib import Path

import pytest

PySide6 = pytest.importorskip("PySide6")  # noqa: F401

from PySide6.QtCore import QCoreApplication

from tests.helpers.fakes import FakeBackend, write_fake_image
from uri_image.image_engine.decoder import OperationState
from uri_image.image_engine.loader import DecodeLoader
from uri_image.image_engine.uri_image import UriImage


class _FakePool:
    def __init__(self) -> None:
        self.submits: list[tuple[object, tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs):  # noqa: ANN001
        self.submits.append((fn, args, kwargs))
        return None

    def shutdown(self, wait=True, cancel_futures=False):  # noqa: ANN001
        return None


def _collect(loader: DecodeLoader) -> list:
    received: list = []
    loader.image_decoded.connect(lambda loc, img, err: received.append((loc, img, err)))
    return received


def _pump_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        QCoreApplication.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_request_load_dedupes_identical_pending_request(tmp_path: Path) -> None:
    f = write_fake_image(tmp_path / "a.jpg", 100, 100)
    image = UriImage(None, None, str(f), backend=FakeBackend())
    loader = DecodeLoader(max_workers=1)
    try:
        fake_pool = _FakePool()
        loader.io_pool = fake_pool  # type: ignore[assignment]

        first = loader.request_load(image, 50)
        assert len(fake_pool.submits) == 1

        # Identical pending request should be dropped.
        assert loader.request_load(image, 50) is first
        assert len(fake_pool.submits) == 1

        # Different params supersede (and cancel) the earlier operation.
        second = loader.request_load(image, 20)
        assert len(fake_pool.submits) == 2
        assert second is not first
        assert first is not None and first.cancel_requested
        assert loader.pending_count == 1
    finally:
        loader.shutdown()


def test_loader_emits_decoded_image(tmp_path: Path) -> None:
    f = write_fake_image(tmp_path / "a.jpg", 400, 300)
    image = UriImage(None, None, str(f), backend=FakeBackend())
    loader = DecodeLoader(max_workers=2)
    received = _collect(loader)
    try:
        op = loader.request_load(image, 100)
        assert op is not None
        assert _pump_until(lambda: bool(received))
        location, decoded, error = received[0]
        assert location == str(f)
        assert error is None
        assert decoded.width == 100
        assert loader.pending_count == 0
    finally:
        loader.shutdown()


def test_loader_reports_missing_resource(tmp_path: Path) -> None:
    image = UriImage(None, None, str(tmp_path / "gone.jpg"), backend=FakeBackend())
    loader = DecodeLoader(max_workers=1)
    received = _collect(loader)
    try:
        assert loader.request_load(image, 100) is None
        assert _pump_until(lambda: bool(received))
        assert received[0][1] is None
        assert received[0][2] == "resource not found"
    finally:
        loader.shutdown()


def test_loader_cancel_suppresses_result(tmp_path: Path) -> None:
    f = write_fake_image(tmp_path / "a.jpg", 400, 300)
    backend = FakeBackend(steps=300, step_delay=0.01)
    image = UriImage(None, None, str(f), backend=backend)
    loader = DecodeLoader(max_workers=1)
    received = _collect(loader)
    try:
        op = loader.request_load(image, 100)
        assert op is not None
        assert backend.decode_started.wait(2)
        assert loader.cancel(str(f)) is True
        assert op.wait(5) is not None
        assert op.state is OperationState.CANCELED
        _pump_until(lambda: False, timeout=0.1)
        assert received == []
    finally:
        loader.shutdown()
