# SPDX-License-Identifier: MIT
"""Build orchestration.

The BuildEngine drives each project through these states:

    PENDING -> RESOLVING -> COMPILING -> ASSEMBLING -> DONE

with FAILED reachable from any non-terminal state. In-process dependencies
are built depth-first, in declaration order, before their dependent starts
compiling. A failed dependency fails every project that depends on it
(transitively) without compiling them; unrelated projects are unaffected.
Each project is built at most once per engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from pbsys.core.assembler import ArtifactAssembler
from pbsys.core.compiler import IncrementalCompiler
from pbsys.core.errors import (
    BuildIOError,
    DependencyCycleError,
    DependencyFailedError,
    PbsysError,
)
from pbsys.core.flags import resolve_flags
from pbsys.core.options import BuildOptions
from pbsys.core.project import LocalDependency, project_registry
from pbsys.core.resolver import DependencyResolver
from pbsys.core.runner import CommandRunner
from pbsys.toolchains.registry import toolchain_registry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from pbsys.core.artifact import ArtifactDescriptor
    from pbsys.core.project import ProjectDescriptor, ProjectRegistry
    from pbsys.toolchains.registry import ToolchainRegistry

logger = logging.getLogger(__name__)


class ProjectState(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    COMPILING = "compiling"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProjectState.DONE, ProjectState.FAILED)


@dataclass
class ProjectOutcome:
    """Result of building one project.

    Attributes:
        state: Final state (DONE or FAILED).
        error: Why the project failed, if it did.
        rebuilt: Whether the artifact was (re)assembled in this run.
        compiled: Number of sources compiled in this run.
        artifact: Linkage metadata for libraries.
    """

    state: ProjectState = ProjectState.PENDING
    error: PbsysError | None = None
    rebuilt: bool = False
    compiled: int = 0
    artifact: ArtifactDescriptor | None = None


@dataclass
class BuildReport:
    """Outcome of a build invocation, keyed by project name."""

    outcomes: dict[str, ProjectOutcome] = field(default_factory=dict)
    commands: int = 0

    @property
    def success(self) -> bool:
        return all(o.state is ProjectState.DONE for o in self.outcomes.values())

    @property
    def failed(self) -> list[str]:
        return [n for n, o in self.outcomes.items() if o.state is ProjectState.FAILED]

    def state(self, name: str) -> ProjectState:
        return self.outcomes[name].state


class BuildEngine:
    """Builds projects and their dependencies.

    Example:
        engine = BuildEngine(BuildOptions(build_root=Path("build")))
        report = engine.build(["app"])
        if not report.success:
            ...

    Attributes:
        options: Build options for this run.
        runner: Runs every external command.
    """

    def __init__(
        self,
        options: BuildOptions | None = None,
        *,
        runner: CommandRunner | None = None,
        projects: ProjectRegistry | None = None,
        toolchains: ToolchainRegistry | None = None,
        observer: Callable[[str, ProjectState], None] | None = None,
    ) -> None:
        self.options = options or BuildOptions()
        self.runner = runner or CommandRunner(timeout=self.options.command_timeout)
        self.projects = projects if projects is not None else project_registry
        self.toolchains = toolchains if toolchains is not None else toolchain_registry
        self.resolver = DependencyResolver(self.options.install_root)
        self.compiler = IncrementalCompiler(self.runner, self.options.build_root)
        self.assembler = ArtifactAssembler(self.runner, self.options.build_root)
        self._observer = observer
        self._outcomes: dict[str, ProjectOutcome] = {}
        self._in_progress: list[str] = []

    def _set_state(self, name: str, state: ProjectState) -> None:
        self._outcomes[name].state = state
        logger.debug("'%s': %s", name, state.value)
        if self._observer is not None:
            self._observer(name, state)

    def _fail(self, name: str, error: PbsysError) -> ProjectOutcome:
        outcome = self._outcomes[name]
        outcome.error = error
        self._set_state(name, ProjectState.FAILED)
        logger.error("'%s' failed [%s]: %s", name, error.kind, error)
        return outcome

    def outcome(self, name: str) -> ProjectOutcome | None:
        return self._outcomes.get(name)

    def build(self, names: Iterable[str]) -> BuildReport:
        """Build the named projects (and their dependencies).

        Each name is built independently: a failure in one does not stop
        the others.

        Raises:
            KeyError: If a name is not a defined project.
        """
        report = BuildReport()
        start = self.runner.count
        for name in names:
            project = self.projects.get(name)
            if project is None:
                raise KeyError(f"unknown project: {name}")
            self.build_project(project)
        for name, outcome in self._outcomes.items():
            report.outcomes[name] = outcome
        report.commands = self.runner.count - start
        return report

    def build_project(
        self, project: ProjectDescriptor, *, as_dependency: bool = False
    ) -> ProjectOutcome:
        """Build one project after its in-process dependencies.

        Returns the memoized outcome if the project was already built.
        Descriptors assembled by hand can depend on each other in a loop;
        every project on the loop then ends FAILED.

        Raises:
            DependencyCycleError: To the caller that is building a project
                which is already in progress further up the chain.
        """
        existing = self._outcomes.get(project.name)
        if existing is not None:
            if existing.state.is_terminal:
                return existing
            cycle = self._in_progress[self._in_progress.index(project.name) :]
            raise DependencyCycleError([*cycle, project.name])

        self._outcomes[project.name] = ProjectOutcome()
        self._in_progress.append(project.name)
        try:
            return self._build(project, as_dependency)
        except DependencyCycleError as e:
            return self._fail(project.name, e)
        except OSError as e:
            return self._fail(project.name, BuildIOError(project.name, e))
        finally:
            self._in_progress.pop()

    def _build(self, project: ProjectDescriptor, as_dependency: bool) -> ProjectOutcome:
        name = project.name
        outcome = self._outcomes[name]
        self._set_state(name, ProjectState.RESOLVING)
        logger.info("Now building '%s'", name)
        logger.info("- using language %s", project.language.value)

        try:
            toolchain = self.toolchains.lookup(project.toolchain)
            dependencies = self.resolver.resolve(project)
        except PbsysError as e:
            return self._fail(name, e)

        exports: dict[str, ArtifactDescriptor] = {}
        dependency_changed = False
        for dep in dependencies:
            if not isinstance(dep, LocalDependency):
                continue
            dep_outcome = self.build_project(dep.project, as_dependency=True)
            if dep_outcome.state is not ProjectState.DONE:
                return self._fail(name, DependencyFailedError(name, dep.project.name))
            assert dep_outcome.artifact is not None
            exports[dep.project.name] = dep_outcome.artifact
            dependency_changed = dependency_changed or dep_outcome.rebuilt

        flags = resolve_flags(project, dependencies, exports, debug=self.options.debug)
        clean = (
            self.options.clean_dependencies if as_dependency else self.options.clean_build
        )

        self._set_state(name, ProjectState.COMPILING)
        try:
            compiled = self.compiler.compile_all(project, toolchain, flags, clean=clean)
        except PbsysError as e:
            return self._fail(name, e)
        outcome.compiled = len(compiled.compiled)

        self._set_state(name, ProjectState.ASSEMBLING)
        try:
            assembled = self.assembler.assemble(
                project,
                toolchain,
                compiled.objects,
                flags,
                any_changed=compiled.any_changed or dependency_changed,
            )
        except PbsysError as e:
            return self._fail(name, e)
        outcome.rebuilt = assembled.rebuilt
        outcome.artifact = assembled.artifact

        self._set_state(name, ProjectState.DONE)
        return outcome
