# SPDX-License-Identifier: MIT
"""Artifact metadata descriptors.

An ArtifactDescriptor records what a consumer needs to link against a
built library: where it lives, which libraries to pass to the linker,
what it depends on, and which toolchain produced it. One JSON file per
library is written next to the artifact, and another copy into the
install root when the project is installed.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pbsys.core.errors import PbsysError
from pbsys.core.project import ArtifactKind

METADATA_SUFFIX = ".config"
METADATA_DIR = "pbsys"


@dataclass(frozen=True)
class ArtifactDescriptor:
    """Persisted linkage description of a built library.

    Attributes:
        output_name: Output name of the library (without prefix/suffix).
        kind: Artifact kind the library was built as.
        lib_dirs: Library search paths a consumer must add.
        libs: Library names a consumer must link, in link order.
        dependencies: Output names of the library's own dependencies.
        toolchain: Name of the toolchain that built it.
    """

    output_name: str
    kind: ArtifactKind
    lib_dirs: tuple[str, ...] = ()
    libs: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    toolchain: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "output_name": self.output_name,
            "kind": self.kind.value,
            "lib_dirs": list(self.lib_dirs),
            "libs": list(self.libs),
            "dependencies": list(self.dependencies),
            "toolchain": self.toolchain,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArtifactDescriptor:
        try:
            return cls(
                output_name=data["output_name"],
                kind=ArtifactKind(data["kind"]),
                lib_dirs=tuple(data.get("lib_dirs", ())),
                libs=tuple(data.get("libs", ())),
                dependencies=tuple(data.get("dependencies", ())),
                toolchain=data["toolchain"],
            )
        except (KeyError, ValueError, TypeError) as e:
            raise PbsysError(f"invalid artifact metadata: {e}") from e


def metadata_path(directory: Path, output_name: str) -> Path:
    """Path of the metadata file for ``output_name`` inside ``directory``."""
    return directory / f"{output_name}{METADATA_SUFFIX}"


def save_artifact(artifact: ArtifactDescriptor, path: Path) -> None:
    """Write metadata atomically (temporary file, then rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(artifact.to_dict(), f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def load_artifact(path: Path) -> ArtifactDescriptor:
    """Read a metadata file.

    Raises:
        FileNotFoundError: If the file does not exist.
        PbsysError: If the file is not valid metadata.
    """
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise PbsysError(f"{path}: invalid artifact metadata: {e}") from e
    return ArtifactDescriptor.from_dict(data)
