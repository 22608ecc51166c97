import io

import pytest

from tests.helpers.fakes import FakeBackend, fake_image_bytes
from uri_image.image_engine.cancelable import CancelableDecodeOperation
from uri_image.image_engine.decoder import DecodeOptions, decode_bitmap
from uri_image.image_engine.metrics import metrics


def test_metrics_basic_counters_and_timings():
    metrics.inc("x")
    metrics.inc("x", 2)
    with metrics.timed("t"):
        pass
    snap = metrics.snapshot()
    assert snap["counters"]["x"] == 3
    assert snap["timings"]["t"]["count"] == 1
    assert metrics.timing("t").mean >= 0.0
    assert metrics.timing("missing").count == 0
    metrics.reset()
    assert metrics.snapshot() == {"counters": {}, "timings": {}}


def test_metrics_decode_outcomes():
    backend = FakeBackend()
    decode_bitmap(io.BytesIO(fake_image_bytes(10, 10)), 1, backend=backend)
    decode_bitmap(io.BytesIO(b"junk"), 1, backend=backend)
    op = CancelableDecodeOperation(io.BytesIO(fake_image_bytes(10, 10)), DecodeOptions(), backend)
    op.request_cancel()
    op.start()

    snap = metrics.snapshot()
    assert snap["counters"]["decode.completed"] == 1
    assert snap["counters"]["decode.failed"] == 1
    assert "decode.duration" in snap["timings"]
    assert metrics.count("decode.canceled") == 0  # never reached the decoder


def test_timing_summary_tracks_longest():
    metrics.record("decode.duration", 0.5)
    metrics.record("decode.duration", 1.5)
    stats = metrics.timing("decode.duration")
    assert stats.count == 2
    assert stats.total == pytest.approx(2.0)
    assert stats.mean == pytest.approx(1.0)
    assert stats.longest == pytest.approx(1.5)
    # The returned summary is a copy.
    stats.add(10.0)
    assert metrics.timing("decode.duration").count == 2
