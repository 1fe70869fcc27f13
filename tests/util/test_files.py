# SPDX-License-Identifier: MIT
"""Tests for pbsys.util.files."""

from __future__ import annotations

from pbsys.util.files import copy, copytree, remove_dir


class TestCopy:
    def test_creates_parents(self, tmp_path):
        src = tmp_path / "a.txt"
        src.write_text("hello")
        dest = copy(src, tmp_path / "out" / "deep" / "a.txt")

        assert dest.read_text() == "hello"

    def test_preserves_mtime(self, tmp_path):
        src = tmp_path / "a.txt"
        src.write_text("hello")
        dest = copy(src, tmp_path / "b.txt")
        assert dest.stat().st_mtime_ns == src.stat().st_mtime_ns


class TestCopytree:
    def test_merges_into_existing(self, tmp_path):
        src = tmp_path / "include"
        (src / "sub").mkdir(parents=True)
        (src / "a.h").write_text("a")
        (src / "sub" / "b.h").write_text("b")
        dest = tmp_path / "out"
        dest.mkdir()
        (dest / "existing.h").write_text("x")

        copied = copytree(src, dest)

        assert copied == [dest / "a.h", dest / "sub" / "b.h"]
        assert (dest / "existing.h").exists()

    def test_empty_source(self, tmp_path):
        (tmp_path / "empty").mkdir()
        assert copytree(tmp_path / "empty", tmp_path / "out") == []


class TestRemoveDir:
    def test_remove(self, tmp_path):
        target = tmp_path / "build"
        (target / "x").mkdir(parents=True)
        assert remove_dir(target)
        assert not target.exists()

    def test_missing(self, tmp_path):
        assert not remove_dir(tmp_path / "missing")
