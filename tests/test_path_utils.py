from pathlib import Path

import pytest

from uri_image.path_utils import is_local, local_path, location_scheme, uri_path


def test_schemes():
    assert location_scheme("/tmp/a.jpg") == ""
    assert location_scheme("file:///tmp/a.jpg") == "file"
    assert location_scheme("CONTENT://media/1") == "content"
    # Windows drive letters are not schemes.
    assert location_scheme("C:/photos/a.jpg") == ""


def test_is_local():
    assert is_local("/tmp/a.jpg")
    assert is_local("relative/a.jpg")
    assert is_local("file:///tmp/a.jpg")
    assert not is_local("content://media/1")
    assert not is_local("https://example.com/a.jpg")


def test_local_path_decodes_file_uri(tmp_path: Path):
    f = tmp_path / "with space.jpg"
    assert local_path(f.as_uri()) == f.resolve()
    assert local_path(str(f)) == f.resolve()


def test_local_path_rejects_provider():
    with pytest.raises(ValueError):
        local_path("content://media/1")


def test_uri_path():
    assert uri_path("content://media/external/images/5") == "/external/images/5"
    assert uri_path("/plain/path") == "/plain/path"
