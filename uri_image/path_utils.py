"""Location parsing utilities.

A location is either a ``file://`` URI, a bare filesystem path, or a
provider reference with any other scheme (``content://media/12``). This
module centralizes the rules for telling them apart and for turning local
locations into filesystem paths.

Keep this module free of Qt dependencies.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlsplit

LOCAL_SCHEME = "file"

# "C:/x.jpg" parses with scheme "c"; single-letter schemes are drive letters.
_DRIVE_SCHEME_LEN = 1


def location_scheme(location: str) -> str:
    """Lower-cased scheme of a location, or "" for bare paths."""
    scheme = urlsplit(location).scheme.lower()
    if len(scheme) <= _DRIVE_SCHEME_LEN:
        return ""
    return scheme


def is_local(location: str) -> bool:
    return location_scheme(location) in ("", LOCAL_SCHEME)


def uri_path(location: str) -> str:
    """Path component of a location, percent-decoded.

    Bare paths are returned unchanged.
    """
    if not location_scheme(location):
        return location
    return unquote(urlsplit(location).path)


def local_path(location: str) -> Path:
    """Filesystem path for a local location.

    Raises ValueError for provider references.
    """
    if not is_local(location):
        raise ValueError(f"not a local location: {location}")
    p = Path(uri_path(location)).expanduser()
    try:
        return p.resolve(strict=False)
    except Exception:
        return p.absolute()
