# SPDX-License-Identifier: MIT
"""Derived flag sets.

A ResolvedFlags instance is computed fresh for every build of a project
from its immutable descriptor and its resolved dependencies. The declared
configuration is never modified, so building a dependency twice (or from
two dependents) always sees the same inputs.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from pbsys.core.project import InstalledDependency, LocalDependency
from pbsys.core.resolver import InstallLayout

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from pbsys.core.artifact import ArtifactDescriptor
    from pbsys.core.project import Define, ProjectDescriptor, ResolvedDependency


def _append_unique(items: list, new_items: Iterable) -> None:
    """Append items that are not present yet, preserving order."""
    for item in new_items:
        if item not in items:
            items.append(item)


def split_flags(strings: Iterable[str]) -> list[str]:
    """Split flag strings (e.g. pkg-config output) into tokens."""
    tokens: list[str] = []
    for s in strings:
        tokens.extend(shlex.split(s))
    return tokens


def public_include_dirs(project: ProjectDescriptor) -> list[Path]:
    """Published include dirs of a project and of its local dependencies."""
    dirs = [project.path(d) for d in project.public_include_dirs]
    for dep in project.dependencies:
        if isinstance(dep, LocalDependency):
            _append_unique(dirs, public_include_dirs(dep.project))
    return dirs


@dataclass
class ResolvedFlags:
    """Everything the compiler and linker need for one project build.

    Attributes:
        include_dirs: Private, published and dependency include dirs.
        defines: Preprocessor defines.
        flags: Project-level extra compiler flags.
        cflags: Third-party compile flags (package query output).
        lib_dirs: Library search paths, dependencies first.
        libs: Libraries to link, dependencies first.
        ldflags: Third-party link flags (package query output).
        dependencies: Output names of the direct dependencies.
        debug: Whether to compile with debug information.
    """

    include_dirs: list[Path] = field(default_factory=list)
    defines: list[Define] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)
    cflags: list[str] = field(default_factory=list)
    lib_dirs: list[Path] = field(default_factory=list)
    libs: list[str] = field(default_factory=list)
    ldflags: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    debug: bool = False


def resolve_flags(
    project: ProjectDescriptor,
    dependencies: Iterable[ResolvedDependency],
    exports: Mapping[str, ArtifactDescriptor],
    *,
    debug: bool = False,
) -> ResolvedFlags:
    """Compute the derived flag set of a project.

    Args:
        project: The project being built.
        dependencies: Output of DependencyResolver.resolve(project).
        exports: Artifact descriptors of local dependencies built in this
            run, keyed by project name.
        debug: Whether this is a debug build.

    Returns:
        A new ResolvedFlags; nothing in ``project`` is modified.
    """
    result = ResolvedFlags(
        include_dirs=[project.path(d) for d in project.include_dirs],
        defines=list(project.defines),
        flags=list(project.flags),
        cflags=split_flags(project.package_cflags),
        ldflags=split_flags(project.package_ldflags),
        debug=debug,
    )
    _append_unique(
        result.include_dirs, (project.path(d) for d in project.public_include_dirs)
    )

    for dep in dependencies:
        if isinstance(dep, LocalDependency):
            _append_unique(result.include_dirs, public_include_dirs(dep.project))
            artifact = exports[dep.project.name]
        else:
            assert isinstance(dep, InstalledDependency)
            artifact = dep.artifact
            layout = InstallLayout(dep.install_root)
            _append_unique(
                result.include_dirs,
                [layout.include_dir, layout.headers_dir(artifact.output_name)],
            )
        _append_unique(result.lib_dirs, (Path(d) for d in artifact.lib_dirs))
        _append_unique(result.libs, artifact.libs)
        result.dependencies.append(artifact.output_name)

    _append_unique(result.lib_dirs, (project.path(d) for d in project.lib_dirs))
    _append_unique(result.libs, project.libs)
    return result
