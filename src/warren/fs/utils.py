"""Path utilities and content-type detection."""

from __future__ import annotations

import mimetypes
import posixpath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize an absolute storage path.

    - Ensures leading /
    - Resolves .. and . references
    - Removes double slashes
    - Removes trailing slash (except for root)

    Examples:
        normalize_path("zone/home") -> "/zone/home"
        normalize_path("/zone//home/") -> "/zone/home"
        normalize_path("/zone/home/../trash") -> "/zone/trash"
        normalize_path("") -> "/"
    """
    if not path:
        return "/"

    path = path.strip()

    if not path.startswith("/"):
        path = "/" + path

    path = posixpath.normpath(path)

    # normpath keeps a leading "//" per POSIX
    if path.startswith("//"):
        path = "/" + path.lstrip("/")

    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return path


def split_path(path: str) -> tuple[str, str]:
    """Split path into (parent_dir, name).

    Examples:
        split_path("/zone/home/alice") -> ("/zone/home", "alice")
        split_path("/zone") -> ("/", "zone")
        split_path("/") -> ("/", "")
    """
    path = normalize_path(path)
    if path == "/":
        return "/", ""
    return posixpath.split(path)


def path_join(*parts: str) -> str:
    """Join path segments with a single ``/`` between each.

    Unlike ``posixpath.join``, an absolute later segment does not discard
    the earlier ones, and relative inputs stay relative.

    Examples:
        path_join("/zone", "home", "alice") -> "/zone/home/alice"
        path_join("/zone/home/", "/alice") -> "/zone/home/alice"
        path_join("a/b", "c.txt") -> "a/b/c.txt"
    """
    pieces = [p for p in parts if p]
    if not pieces:
        return ""
    head = pieces[0].rstrip("/")
    tail = [p.strip("/") for p in pieces[1:] if p.strip("/")]
    if not head and pieces[0].startswith("/"):
        return "/" + "/".join(tail)
    return "/".join([head, *tail])


def basename(path: str) -> str:
    """Last segment of *path*, ignoring a trailing slash."""
    stripped = path.rstrip("/")
    return stripped.rsplit("/", 1)[-1]


def dirname(path: str) -> str:
    """Everything before the last segment of *path*.

    Returns ``"/"`` for top-level absolute paths and ``""`` for a relative
    path with a single segment.
    """
    stripped = path.rstrip("/")
    if "/" not in stripped:
        return ""
    parent = stripped.rsplit("/", 1)[0]
    return parent or "/"


def trim_leading_slash(path: str) -> str:
    return path[1:] if path.startswith("/") else path


def is_under(path: str, prefix: str) -> bool:
    """True when *path* equals *prefix* or lies beneath it."""
    path = normalize_path(path)
    prefix = normalize_path(prefix)
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")


def ancestors(path: str, stop: str = "/") -> Iterator[str]:
    """Yield the ancestors of *path*, nearest first.

    Starts at the parent and ends just before *stop*.  Also ends at ``/``
    so a path outside *stop* still terminates.

    Examples:
        list(ancestors("/zone/home/alice/proj", "/zone"))
            -> ["/zone/home/alice", "/zone/home"]
    """
    stop = normalize_path(stop)
    current = split_path(path)[0]
    while current not in (stop, "/"):
        yield current
        current = split_path(current)[0]


def validate_path(path: str) -> tuple[bool, str]:
    """Check that *path* can be stored by the remote service.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if "\x00" in path:
        return False, "Path contains null bytes"

    for ch in path:
        code = ord(ch)
        if 0x01 <= code <= 0x1F:
            return False, f"Path contains control character: 0x{code:02x}"

    if len(path) > 1088:
        return False, "Path too long (max 1088 characters)"

    _, name = split_path(path)
    if name in (".", ".."):
        return False, f"Invalid name: {name}"
    if len(name) > 255:
        return False, "Name too long (max 255 characters)"

    return True, ""


def guess_mime_type(filename: str) -> str:
    """Guess the MIME type of a file based on its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"
