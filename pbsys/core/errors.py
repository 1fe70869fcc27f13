# SPDX-License-Identifier: MIT
"""Custom exceptions for pbsys.

All pbsys exceptions inherit from PbsysError. Errors raised after an
external command ran carry that command and its exit status so the
failure can be reported alongside the last thing pbsys executed.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class PbsysError(Exception):
    """Base class for all pbsys exceptions.

    Attributes:
        message: The error message.
        command: The last external command executed, if any.
        returncode: Exit status of that command (None if it never finished).
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] | None = None,
        returncode: int | None = None,
    ) -> None:
        self.message = message
        self.command = list(command) if command else None
        self.returncode = returncode
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.command:
            status = "timed out" if self.returncode is None else self.returncode
            return (
                f"{self.message} (last command: {' '.join(self.command)}; "
                f"exit status: {status})"
            )
        return self.message

    @property
    def kind(self) -> str:
        """Failure kind shown to the user (the exception class name)."""
        return type(self).__name__


class ConfigureError(PbsysError):
    """Invalid project configuration.

    Raised by the project builder when an option or path cannot be
    validated.
    """


class LoadError(PbsysError):
    """Bad or missing toolchain definition.

    Fatal: aborts before any build starts.
    """


class ToolNotFoundError(LoadError):
    """A binary referenced by a toolchain definition is not on the host.

    Attributes:
        tool: The name of the binary that was not found.
        toolchain: The toolchain that referenced it.
    """

    def __init__(self, tool: str, toolchain: str) -> None:
        self.tool = tool
        self.toolchain = toolchain
        super().__init__(f"toolchain '{toolchain}': tool not found: {tool}")


class ToolchainNotFoundError(PbsysError):
    """No toolchain is registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown toolchain: {name}")


class ResolutionError(PbsysError):
    """A declared dependency could not be resolved.

    Fatal to the requesting project only.
    """


class DependencyNotFound(ResolutionError):
    """No installed artifact exists for a dependency name."""

    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        self.path = path
        super().__init__(f"dependency '{name}' not found (looked for {path})")


class LinkTypeMismatch(ResolutionError):
    """The provider's artifact kind does not satisfy the requested link type."""

    def __init__(self, name: str, requested: str, provided: str) -> None:
        self.name = name
        self.requested = requested
        self.provided = provided
        super().__init__(
            f"dependency '{name}' requested as {requested} library, "
            f"but it is built as {provided}"
        )


class ToolchainMismatch(ResolutionError):
    """The provider was built with a different toolchain than the consumer."""

    def __init__(self, name: str, expected: str, found: str) -> None:
        self.name = name
        self.expected = expected
        self.found = found
        super().__init__(
            f"dependency '{name}' was built with toolchain '{found}', "
            f"but the project uses '{expected}'"
        )


class CompileFailure(PbsysError):
    """One or more translation units failed to compile.

    Raised only after every changed source in the pass was attempted.

    Attributes:
        project: Name of the project being compiled.
        failed: Sources whose compilation failed, in build order.
    """

    def __init__(
        self,
        project: str,
        failed: list[Path],
        *,
        command: Sequence[str] | None = None,
        returncode: int | None = None,
    ) -> None:
        self.project = project
        self.failed = failed
        names = ", ".join(str(p) for p in failed)
        super().__init__(
            f"'{project}': {len(failed)} source(s) failed to compile: {names}",
            command=command,
            returncode=returncode,
        )


class AssembleFailure(PbsysError):
    """Linking or archiving the final artifact failed."""


class UnsupportedArtifactError(PbsysError, NotImplementedError):
    """The requested artifact kind cannot be assembled (dynamic libraries)."""


class DependencyFailedError(PbsysError):
    """A project was not built because one of its dependencies failed.

    Attributes:
        dependency: Name of the failed dependency.
    """

    def __init__(self, project: str, dependency: str) -> None:
        self.project = project
        self.dependency = dependency
        super().__init__(f"'{project}' not built: dependency '{dependency}' failed")


class DependencyCycleError(PbsysError):
    """Circular dependency detected between projects.

    Attributes:
        cycle: The project names forming the cycle.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        cycle_str = " -> ".join(cycle)
        super().__init__(f"dependency cycle: {cycle_str}")


class BuildIOError(PbsysError):
    """A file operation failed while building a project.

    Attributes:
        project: Name of the project being built.
        cause: The underlying OSError.
    """

    def __init__(self, project: str, cause: OSError) -> None:
        self.project = project
        self.cause = cause
        super().__init__(f"'{project}': {cause}")
