# SPDX-License-Identifier: MIT
"""Tests for pbsys.core.artifact."""

from __future__ import annotations

import json

import pytest

from pbsys.core.artifact import (
    ArtifactDescriptor,
    load_artifact,
    metadata_path,
    save_artifact,
)
from pbsys.core.errors import PbsysError
from pbsys.core.project import ArtifactKind


def sample() -> ArtifactDescriptor:
    return ArtifactDescriptor(
        output_name="mylib",
        kind=ArtifactKind.STATIC,
        lib_dirs=("/build/mylib", "/opt/z/lib"),
        libs=("mylib", "z"),
        dependencies=("zlib",),
        toolchain="gnu",
    )


class TestArtifactDescriptor:
    def test_to_dict(self):
        data = sample().to_dict()
        assert data == {
            "output_name": "mylib",
            "kind": "static",
            "lib_dirs": ["/build/mylib", "/opt/z/lib"],
            "libs": ["mylib", "z"],
            "dependencies": ["zlib"],
            "toolchain": "gnu",
        }

    def test_from_dict_optional_fields(self):
        artifact = ArtifactDescriptor.from_dict(
            {"output_name": "x", "kind": "both", "toolchain": "gnu"}
        )
        assert artifact.kind is ArtifactKind.BOTH
        assert artifact.libs == ()

    @pytest.mark.parametrize(
        "data",
        [
            {"kind": "static", "toolchain": "gnu"},
            {"output_name": "x", "kind": "shared", "toolchain": "gnu"},
            {"output_name": "x", "kind": "static"},
        ],
    )
    def test_from_dict_invalid(self, data):
        with pytest.raises(PbsysError, match="invalid artifact metadata"):
            ArtifactDescriptor.from_dict(data)


class TestMetadataFiles:
    def test_metadata_path(self, tmp_path):
        assert metadata_path(tmp_path, "mylib") == tmp_path / "mylib.config"

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "lib" / "pbsys" / "mylib.config"
        save_artifact(sample(), path)

        assert load_artifact(path) == sample()
        assert json.loads(path.read_text())["toolchain"] == "gnu"

    def test_save_leaves_no_temporary_files(self, tmp_path):
        path = tmp_path / "mylib.config"
        save_artifact(sample(), path)
        save_artifact(sample(), path)

        assert [p.name for p in tmp_path.iterdir()] == ["mylib.config"]

    def test_load_malformed(self, tmp_path):
        path = tmp_path / "bad.config"
        path.write_text("{not json")
        with pytest.raises(PbsysError, match="invalid artifact metadata"):
            load_artifact(path)

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_artifact(tmp_path / "missing.config")
