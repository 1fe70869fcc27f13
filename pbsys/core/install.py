# SPDX-License-Identifier: MIT
"""Installing and cleaning built projects.

Install copies a project's published headers, its artifact and its
metadata into the install root:

    include/<name>/...            published include dirs, merged
    lib/<static library>
    bin/<executable>
    lib/pbsys/<output name>.config

The installed metadata points its first library search path at the
install root's ``lib/`` so other build runs can link against it.
Local libraries the project was built against are installed with it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from pbsys.core.artifact import load_artifact, metadata_path, save_artifact
from pbsys.core.errors import PbsysError
from pbsys.core.project import ArtifactKind, LocalDependency
from pbsys.core.resolver import InstallLayout
from pbsys.util.files import copy, copytree, remove_dir

if TYPE_CHECKING:
    from pbsys.core.options import BuildOptions
    from pbsys.core.project import ProjectDescriptor
    from pbsys.toolchains.descriptor import ToolchainDescriptor

logger = logging.getLogger(__name__)


def clean(project: ProjectDescriptor, options: BuildOptions) -> bool:
    """Remove a project's build directory.

    Returns:
        True if a directory was removed.
    """
    build_dir = options.project_dir(project.name)
    if remove_dir(build_dir):
        logger.info("Removed %s", build_dir)
        return True
    logger.info("'%s': nothing to clean", project.name)
    return False


class Installer:
    """Copies built projects into an install root.

    Installing a library also installs the installable local libraries it
    was built against, so its installed metadata never points into the
    build tree. A dependency marked ``no_install`` keeps its build
    directory in the metadata.

    Attributes:
        layout: Install root layout.
        build_root: Parent of the per-project build directories.
    """

    def __init__(self, options: BuildOptions) -> None:
        self.layout = InstallLayout(options.install_root)
        self.build_root = options.build_root
        self._installed: set[str] = set()

    def install(
        self, project: ProjectDescriptor, toolchain: ToolchainDescriptor
    ) -> list[Path]:
        """Install a built project.

        Returns:
            Installed files (empty if the project is not installable or was
            already installed by this installer).

        Raises:
            PbsysError: If the project has not been built.
        """
        if not project.installable:
            logger.info("'%s' is not installable, skipping", project.name)
            return []
        if project.name in self._installed:
            return []
        self._installed.add(project.name)

        build_dir = self.build_root / project.name
        installed: list[Path] = []
        dependency_files: list[Path] = []

        if project.kind is ArtifactKind.NONE:
            binary = build_dir / toolchain.output_filename("exec", project.output_name)
            self._require(binary, project)
            installed.append(copy(binary, self.layout.bin_dir / binary.name))
        else:
            library = build_dir / toolchain.output_filename(
                "staticLib", project.output_name
            )
            meta = metadata_path(build_dir, project.output_name)
            self._require(library, project)
            self._require(meta, project)

            for dep in project.dependencies:
                if isinstance(dep, LocalDependency):
                    dependency_files.extend(self.install(dep.project, toolchain))

            headers = self.layout.headers_dir(project.output_name)
            for inc_dir in project.public_include_dirs:
                installed.extend(copytree(project.path(inc_dir), headers))
            installed.append(copy(library, self.layout.lib_dir / library.name))

            artifact = load_artifact(meta)
            moved = {str((self.build_root / n).absolute()) for n in self._installed}
            lib_dirs = [str(self.layout.lib_dir.absolute())]
            for lib_dir in artifact.lib_dirs:
                if lib_dir in moved or lib_dir in lib_dirs:
                    continue
                if Path(lib_dir).is_relative_to(self.build_root.absolute()):
                    logger.warning(
                        "'%s': installed metadata still refers to %s",
                        project.name,
                        lib_dir,
                    )
                lib_dirs.append(lib_dir)
            installed_meta = self.layout.metadata_file(project.output_name)
            save_artifact(replace(artifact, lib_dirs=tuple(lib_dirs)), installed_meta)
            installed.append(installed_meta)

        for path in installed:
            logger.info("Installed %s", path)
        return dependency_files + installed

    def _require(self, path: Path, project: ProjectDescriptor) -> None:
        if not path.exists():
            raise PbsysError(f"'{project.name}' must be built before install: {path}")
