from pathlib import Path

import pytest

from tests.helpers.fakes import DictResolver, FakeBackend, fake_image_bytes, write_fake_image
from uri_image.image_engine.metrics import metrics
from uri_image.image_engine.probe import ProbeResult, probe
from uri_image.image_engine.resource import ResourceHandle


def test_probe_reads_dimensions(tmp_path: Path):
    f = write_fake_image(tmp_path / "a.jpg", 4000, 3000)
    result = probe(ResourceHandle(str(f)), FakeBackend())
    assert result == ProbeResult(4000, 3000, "image/jpeg")


def test_probe_is_idempotent(tmp_path: Path):
    f = write_fake_image(tmp_path / "a.png", 64, 48, "image/png")
    backend = FakeBackend()
    handle = ResourceHandle(str(f))
    results = [probe(handle, backend) for _ in range(3)]
    assert results[0] == results[1] == results[2]
    # No caching: every call reads the header again.
    assert backend.header_reads == 3


def test_probe_missing_resource_returns_empty(tmp_path: Path):
    result = probe(ResourceHandle(str(tmp_path / "missing.jpg")), FakeBackend())
    assert result == ProbeResult(0, 0, "")
    assert result.is_empty
    assert metrics.count("probe.empty") == 1


def test_probe_corrupt_header_returns_empty(tmp_path: Path):
    f = tmp_path / "junk.jpg"
    f.write_bytes(b"not an image at all")
    assert probe(ResourceHandle(str(f)), FakeBackend()) == ProbeResult.empty()


def test_probe_releases_provider_descriptor():
    resolver = DictResolver({"content://media/9": fake_image_bytes(10, 10)})
    assert probe(ResourceHandle("content://media/9", resolver), FakeBackend()).width == 10
    resolver.entries["content://media/bad"] = b"garbage"
    assert probe(ResourceHandle("content://media/bad", resolver), FakeBackend()).is_empty
    assert len(resolver.opened) == 2
    assert resolver.all_closed


def test_probe_real_png(tmp_path: Path):
    pyvips = pytest.importorskip("pyvips")
    img = pyvips.Image.black(37, 21, bands=3) + 90
    f = tmp_path / "real.png"
    img.cast("uchar").write_to_file(str(f))

    result = probe(ResourceHandle(f.as_uri()))
    assert (result.width, result.height) == (37, 21)
    assert result.mime_type == "image/png"
