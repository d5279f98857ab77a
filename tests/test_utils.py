"""Tests for path utilities."""

from __future__ import annotations

from warren.fs.utils import (
    ancestors,
    basename,
    dirname,
    guess_mime_type,
    is_under,
    normalize_path,
    path_join,
    split_path,
    trim_leading_slash,
    validate_path,
)


class TestNormalizePath:
    def test_basic(self):
        assert normalize_path("/zone/home") == "/zone/home"

    def test_adds_leading_slash(self):
        assert normalize_path("zone/home") == "/zone/home"

    def test_double_slashes(self):
        assert normalize_path("//zone//home/") == "/zone/home"

    def test_dotdot(self):
        assert normalize_path("/zone/home/../trash") == "/zone/trash"

    def test_empty(self):
        assert normalize_path("") == "/"


class TestSplitAndJoin:
    def test_split(self):
        assert split_path("/zone/home/alice") == ("/zone/home", "alice")
        assert split_path("/zone") == ("/", "zone")
        assert split_path("/") == ("/", "")

    def test_join_absolute_segments(self):
        assert path_join("/zone/home/", "/alice") == "/zone/home/alice"

    def test_join_relative(self):
        assert path_join("a/b", "c.txt") == "a/b/c.txt"

    def test_join_root(self):
        assert path_join("/", "zone") == "/zone"

    def test_join_skips_empty(self):
        assert path_join("/zone", "", "home") == "/zone/home"


class TestNames:
    def test_basename(self):
        assert basename("/zone/home/alice/") == "alice"
        assert basename("f.txt") == "f.txt"

    def test_dirname(self):
        assert dirname("/zone/home/alice") == "/zone/home"
        assert dirname("/zone") == "/"
        assert dirname("f.txt") == ""

    def test_trim_leading_slash(self):
        assert trim_leading_slash("/a/b") == "a/b"
        assert trim_leading_slash("a/b") == "a/b"


class TestHierarchy:
    def test_ancestors_stop_at_realm(self):
        assert list(ancestors("/zone/home/alice/proj", "/zone")) == [
            "/zone/home/alice",
            "/zone/home",
        ]

    def test_ancestors_outside_stop(self):
        assert list(ancestors("/other/a/b", "/zone")) == ["/other/a", "/other"]

    def test_is_under(self):
        assert is_under("/zone/home/alice", "/zone/home")
        assert is_under("/zone/home", "/zone/home")
        assert not is_under("/zone/homestead", "/zone/home")
        assert is_under("/anything", "/")


class TestValidatePath:
    def test_valid(self):
        assert validate_path("/zone/home/alice/data.csv") == (True, "")

    def test_null_byte(self):
        ok, msg = validate_path("/zone/a\x00b")
        assert not ok
        assert "null" in msg

    def test_control_character(self):
        ok, msg = validate_path("/zone/a\nb")
        assert not ok
        assert "0x0a" in msg

    def test_name_too_long(self):
        ok, msg = validate_path("/zone/" + "n" * 256)
        assert not ok
        assert "Name too long" in msg

    def test_path_too_long(self):
        ok, msg = validate_path("/zone/" + "/".join(["d" * 200] * 6))
        assert not ok
        assert "Path too long" in msg


class TestGuessMimeType:
    def test_known(self):
        assert guess_mime_type("notes.txt") == "text/plain"

    def test_unknown(self):
        assert guess_mime_type("blob.qqq") == "application/octet-stream"
