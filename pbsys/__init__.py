# SPDX-License-Identifier: MIT
"""
pbsys: an incremental build orchestrator for C and C++ projects.

Build scripts describe projects with new_project(); pbsys compiles only
the sources that changed, links executables or archives static libraries,
and records metadata so other projects can depend on the result.
"""

from __future__ import annotations

__version__ = "0.1.0"

# Re-export commonly used names for build scripts
from pbsys.cli import main  # noqa: E402
from pbsys.core.engine import BuildEngine  # noqa: E402
from pbsys.core.options import BuildOptions, get_var, get_variant  # noqa: E402
from pbsys.core.project import (  # noqa: E402
    ArtifactKind,
    Language,
    ProjectDescriptor,
    new_project,
    project_registry,
)
from pbsys.toolchains import toolchain_registry  # noqa: E402

# Public API exports
__all__ = [
    # Version
    "__version__",
    # Build script API
    "new_project",
    "get_var",
    "get_variant",
    "main",
    # Core classes
    "ArtifactKind",
    "BuildEngine",
    "BuildOptions",
    "Language",
    "ProjectDescriptor",
    # Registries
    "project_registry",
    "toolchain_registry",
]
