# SPDX-License-Identifier: MIT
"""Build options and build-script variables.

Options can be set on the command line or through the environment:

    PBSYS_BUILD_DIR      Build root (default: build)
    PBSYS_INSTALL_ROOT   Install root (default: platform specific)
    PBSYS_TIMEOUT        Per-command timeout in seconds (default: none)
    PBSYS_VARIANT        "debug" (default) or "release"
    PBSYS_VARS           JSON object of variables set on the command line
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from pbsys.core.errors import ConfigureError

# Internal storage for CLI variables
_cli_vars: dict[str, str] | None = None


def default_install_root() -> Path:
    """Platform default install root."""
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / "pbsys"
    return Path("/usr/local")


@dataclass
class BuildOptions:
    """Options controlling one build invocation.

    Attributes:
        build_root: Directory holding one subdirectory per project.
        install_root: Where installed artifacts and their metadata live.
        debug: Add the toolchain's debug flag to every compile.
        clean_build: Recompile every source of the requested projects.
        clean_dependencies: Recompile every source of their dependencies too.
        command_timeout: Seconds before an external command is killed.
    """

    build_root: Path = field(default_factory=lambda: Path("build"))
    install_root: Path = field(default_factory=default_install_root)
    debug: bool = True
    clean_build: bool = False
    clean_dependencies: bool = False
    command_timeout: float | None = None

    @classmethod
    def from_env(cls) -> BuildOptions:
        """Options from the PBSYS_* environment variables.

        Raises:
            ConfigureError: If PBSYS_TIMEOUT is not a number.
        """
        options = cls()
        if build_dir := os.environ.get("PBSYS_BUILD_DIR"):
            options.build_root = Path(build_dir)
        if install_root := os.environ.get("PBSYS_INSTALL_ROOT"):
            options.install_root = Path(install_root)
        if timeout := os.environ.get("PBSYS_TIMEOUT"):
            try:
                options.command_timeout = float(timeout)
            except ValueError:
                raise ConfigureError(
                    f"PBSYS_TIMEOUT must be a number of seconds: {timeout!r}"
                ) from None
        options.debug = get_variant() != "release"
        return options

    def project_dir(self, name: str) -> Path:
        """Build directory of a project."""
        return self.build_root / name


def get_var(name: str, default: str | None = None) -> str | None:
    """Get a build variable set on the command line or from environment.

    Variables can be set when invoking pbsys:
        pbsys mylib USE_FOO=1

    In your build.py, access them with:
        use_foo = get_var('USE_FOO', default='0') == '1'

    Precedence (highest to lowest):
        1. Command line: pbsys VAR=value
        2. Environment variable: VAR=value pbsys
    """
    global _cli_vars

    if _cli_vars is None:
        pbsys_vars = os.environ.get("PBSYS_VARS")
        if pbsys_vars:
            try:
                _cli_vars = json.loads(pbsys_vars)
            except json.JSONDecodeError:
                _cli_vars = {}
        else:
            _cli_vars = {}

    if name in _cli_vars:
        return _cli_vars[name]

    return os.environ.get(name, default)


def get_variant(default: str = "debug") -> str:
    """Get the build variant ("debug" or "release")."""
    return os.environ.get("PBSYS_VARIANT") or os.environ.get("VARIANT") or default


def _reset_vars() -> None:
    """Forget cached CLI variables (used when the CLI sets new ones)."""
    global _cli_vars
    _cli_vars = None
