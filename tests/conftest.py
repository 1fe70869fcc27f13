# SPDX-License-Identifier: MIT
"""Shared fixtures for pbsys tests.

Most tests run against a toolchain descriptor whose binaries are never
executed: FakeRunner records each command and creates the file named by
its output flag, so the engine sees the same filesystem effects as with
a real compiler.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pbsys.core import options as options_module
from pbsys.core.options import BuildOptions
from pbsys.core.project import ProjectRegistry, project_registry
from pbsys.core.runner import CommandResult, CommandRunner
from pbsys.toolchains.descriptor import TargetOS, ToolchainDescriptor
from pbsys.toolchains.registry import ToolchainRegistry, toolchain_registry

GNU_FLAGS = {
    "debug": "-g",
    "include": "-I@ARG@",
    "libPath": "-L@ARG@",
    "libLink": "-l@ARG@",
    "output": "-o @ARG@",
    "allWarnings": "-Wall",
    "pic": "-fPIC",
    "langStd": "-std=@ARG@",
    "define": "-D@ARG@",
}

GNU_OUTPUTS = {
    "exec": "@NAME@",
    "staticLib": "lib@NAME@.a",
    "dynamicLib": "lib@NAME@.so",
}


def make_toolchain(name: str = "gnu", **overrides: object) -> ToolchainDescriptor:
    """A gcc-like toolchain descriptor that skips binary lookup."""
    fields: dict[str, object] = {
        "name": name,
        "os": TargetOS.LINUX,
        "compilers": {"c": Path("/usr/bin/gcc"), "c++": Path("/usr/bin/g++")},
        "archiver": Path("/usr/bin/ar"),
        "flags": GNU_FLAGS,
        "output_filenames": GNU_OUTPUTS,
    }
    fields.update(overrides)
    return ToolchainDescriptor(**fields)  # type: ignore[arg-type]


class FakeRunner(CommandRunner):
    """Records commands instead of running them.

    Attributes:
        commands: Every command line passed to run().
        fail_on: File names; a command mentioning one of them fails.
    """

    def __init__(self) -> None:
        super().__init__()
        self.commands: list[list[str]] = []
        self.fail_on: set[str] = set()

    def run(self, args, *, cwd=None) -> CommandResult:
        cmd = [str(a) for a in args]
        self.commands.append(cmd)
        self.count += 1

        if any(Path(a).name in self.fail_on for a in cmd):
            result = CommandResult(tuple(cmd), 1)
        else:
            output = self._output(cmd)
            if output is not None:
                output.parent.mkdir(parents=True, exist_ok=True)
                output.write_text(" ".join(cmd))
            result = CommandResult(tuple(cmd), 0)
        self.last_result = result
        return result

    @staticmethod
    def _output(cmd: list[str]) -> Path | None:
        if "-o" in cmd:
            return Path(cmd[cmd.index("-o") + 1])
        if len(cmd) > 2 and cmd[1] == "rcs":
            return Path(cmd[2])
        return None

    def compiled_sources(self) -> list[str]:
        """Names of the sources passed to compile commands, in order."""
        return [Path(c[-1]).name for c in self.commands if "-c" in c]


def write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def make_older(path: Path, seconds: int = 10) -> None:
    """Move a file's modification time into the past."""
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns - seconds * 1_000_000_000))


@pytest.fixture(autouse=True)
def clean_registries():
    """Start and finish every test with empty process-wide registries."""
    project_registry.clear()
    toolchain_registry.clear()
    options_module._reset_vars()
    yield
    project_registry.clear()
    toolchain_registry.clear()
    options_module._reset_vars()
    os.environ.pop("PBSYS_VARS", None)


@pytest.fixture
def toolchain() -> ToolchainDescriptor:
    return make_toolchain()


@pytest.fixture
def projects() -> ProjectRegistry:
    return ProjectRegistry()


@pytest.fixture
def toolchains(toolchain: ToolchainDescriptor) -> ToolchainRegistry:
    registry = ToolchainRegistry()
    registry.register(toolchain)
    return registry


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def build_options(tmp_path: Path) -> BuildOptions:
    return BuildOptions(
        build_root=tmp_path / "build", install_root=tmp_path / "install"
    )
