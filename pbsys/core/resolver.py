# SPDX-License-Identifier: MIT
"""Dependency resolution.

The DependencyResolver turns a project's declared dependencies into
resolved ones:

- A LocalDependency (a project defined in this run) is kept as-is; the
  BuildEngine builds it before the dependent.
- A PendingDependency (a name + link type) is looked up in the install
  root and becomes an InstalledDependency.

Both shapes are validated for link-type and toolchain compatibility.
Resolution has no side effects and never triggers a build.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pbsys.core.artifact import METADATA_DIR, load_artifact, metadata_path
from pbsys.core.errors import (
    DependencyNotFound,
    LinkTypeMismatch,
    ToolchainMismatch,
)
from pbsys.core.project import (
    InstalledDependency,
    LocalDependency,
    PendingDependency,
)

if TYPE_CHECKING:
    from pbsys.core.project import ProjectDescriptor, ResolvedDependency

logger = logging.getLogger(__name__)


class InstallLayout:
    """Directory layout of an install root.

    Layout:
        <root>/include/<name>/...   published headers
        <root>/lib/                 libraries
        <root>/bin/                 executables
        <root>/lib/pbsys/<name>.config   artifact metadata
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    @property
    def include_dir(self) -> Path:
        return self.root / "include"

    @property
    def lib_dir(self) -> Path:
        return self.root / "lib"

    @property
    def bin_dir(self) -> Path:
        return self.root / "bin"

    @property
    def metadata_dir(self) -> Path:
        return self.lib_dir / METADATA_DIR

    def headers_dir(self, name: str) -> Path:
        return self.include_dir / name

    def metadata_file(self, name: str) -> Path:
        return metadata_path(self.metadata_dir, name)

    def __repr__(self) -> str:
        return f"InstallLayout({str(self.root)!r})"


class DependencyResolver:
    """Resolves declared dependencies against the install root.

    Attributes:
        layout: The install root consulted for PendingDependency entries.
    """

    def __init__(self, install_root: Path | str) -> None:
        self.layout = InstallLayout(install_root)

    def resolve(self, project: ProjectDescriptor) -> list[ResolvedDependency]:
        """Resolve every dependency of ``project`` in declaration order.

        Raises:
            DependencyNotFound: No installed metadata exists for a name.
            LinkTypeMismatch: Provider kind does not satisfy the link type.
            ToolchainMismatch: Provider was built with another toolchain.
        """
        resolved: list[ResolvedDependency] = []
        for dep in project.dependencies:
            if isinstance(dep, LocalDependency):
                self._check_local(project, dep)
                resolved.append(dep)
            else:
                resolved.append(self._resolve_installed(project, dep))
        return resolved

    def _check_local(self, project: ProjectDescriptor, dep: LocalDependency) -> None:
        provider = dep.project
        if not provider.kind.is_library:
            raise LinkTypeMismatch(
                provider.name,
                dep.link_type.value if dep.link_type else "library",
                provider.kind.value,
            )
        if dep.link_type is not None and not provider.kind.satisfies(dep.link_type):
            raise LinkTypeMismatch(
                provider.name, dep.link_type.value, provider.kind.value
            )
        if provider.toolchain != project.toolchain:
            raise ToolchainMismatch(provider.name, project.toolchain, provider.toolchain)

    def _resolve_installed(
        self, project: ProjectDescriptor, dep: PendingDependency
    ) -> InstalledDependency:
        path = self.layout.metadata_file(dep.name)
        if not path.is_file():
            raise DependencyNotFound(dep.name, path)
        artifact = load_artifact(path)
        if not artifact.kind.satisfies(dep.link_type):
            raise LinkTypeMismatch(dep.name, dep.link_type.value, artifact.kind.value)
        if artifact.toolchain != project.toolchain:
            raise ToolchainMismatch(dep.name, project.toolchain, artifact.toolchain)
        logger.debug("Resolved '%s' to installed %s", dep.name, path)
        return InstalledDependency(artifact, self.layout.root)
