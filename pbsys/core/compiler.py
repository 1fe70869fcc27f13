# SPDX-License-Identifier: MIT
"""Incremental compilation.

The IncrementalCompiler maps every source file of a project to one object
file under the project's build directory and recompiles a source only
when:

1. a clean build was requested for the project,
2. the object file does not exist, or
3. the source is strictly newer than the object file.

After a successful compile the object's modification time is set to the
source's, so the up-to-date test compares the two files only and is not
affected by how long compilation took. Files a source includes (headers)
are not tracked: changing a header does not trigger recompilation.

A failed compile does not stop the pass. Every changed source is attempted
and CompileFailure lists all failures at the end.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from pbsys.core.errors import CompileFailure, ConfigureError

if TYPE_CHECKING:
    from pbsys.core.flags import ResolvedFlags
    from pbsys.core.project import ProjectDescriptor
    from pbsys.core.runner import CommandRunner, CommandResult
    from pbsys.toolchains.descriptor import ToolchainDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranslationUnit:
    """One source file and the object file it compiles to.

    Attributes:
        source: Path of the source file.
        relative: Source path relative to its source root; the object path
            mirrors it.
        object: Path of the object file.
    """

    source: Path
    relative: Path
    object: Path


@dataclass
class CompileResult:
    """Outcome of a successful compile pass.

    Attributes:
        objects: Object files of every translation unit, in source order.
        compiled: Sources that were recompiled in this pass.
    """

    objects: list[Path] = field(default_factory=list)
    compiled: list[Path] = field(default_factory=list)

    @property
    def any_changed(self) -> bool:
        return bool(self.compiled)


def object_path(build_dir: Path, relative: Path, suffix: str) -> Path:
    """Map a source path (relative to its root) to its object file.

    Only the extension changes, so the same source always maps to the
    same object.
    """
    return build_dir / relative.with_suffix(suffix)


def needs_rebuild(source: Path, obj: Path, *, clean: bool = False) -> bool:
    """Decide whether ``source`` must be recompiled into ``obj``."""
    if clean:
        return True
    try:
        obj_mtime = obj.stat().st_mtime_ns
    except FileNotFoundError:
        return True
    return source.stat().st_mtime_ns > obj_mtime


def _is_inside(path: Path) -> bool:
    return not path.is_absolute() and ".." not in path.parts


def collect_sources(project: ProjectDescriptor) -> list[tuple[Path, Path]]:
    """Find a project's sources.

    Source roots are searched recursively for files with the language's
    extensions. Glob patterns are matched against the base directory.

    Returns:
        Sorted list of (source path, path relative to its root) pairs.
    """
    extensions = project.all_source_extensions
    found: dict[Path, Path] = {}

    for src_dir in project.source_dirs:
        root = project.path(src_dir)
        if not root.is_dir():
            logger.warning("'%s': source dir not found: %s", project.name, root)
            continue
        for path in sorted(root.rglob("*")):
            if path.suffix in extensions and path.is_file():
                found.setdefault(path, path.relative_to(root))

    for pattern in project.source_globs:
        try:
            matches = sorted(project.base_dir.glob(pattern))
        except (ValueError, NotImplementedError) as e:
            raise ConfigureError(
                f"'{project.name}': bad source pattern {pattern!r}: {e}"
            ) from e
        for path in matches:
            if not path.is_file():
                continue
            relative = path.relative_to(project.base_dir)
            if not _is_inside(relative):
                logger.warning(
                    "'%s': ignoring source outside the project: %s",
                    project.name,
                    path,
                )
                continue
            found.setdefault(path, relative)

    return sorted(found.items(), key=lambda item: str(item[1]))


class IncrementalCompiler:
    """Compiles a project's changed sources one at a time.

    Attributes:
        runner: Executes compiler commands.
        build_root: Parent of the per-project build directories.
    """

    def __init__(self, runner: CommandRunner, build_root: Path) -> None:
        self.runner = runner
        self.build_root = Path(build_root)

    def build_dir(self, project: ProjectDescriptor) -> Path:
        return self.build_root / project.name

    def translation_units(
        self, project: ProjectDescriptor, toolchain: ToolchainDescriptor
    ) -> list[TranslationUnit]:
        build_dir = self.build_dir(project)
        return [
            TranslationUnit(
                source, relative, object_path(build_dir, relative, toolchain.object_suffix)
            )
            for source, relative in collect_sources(project)
        ]

    def command(
        self,
        project: ProjectDescriptor,
        toolchain: ToolchainDescriptor,
        flags: ResolvedFlags,
        unit: TranslationUnit,
    ) -> list[str]:
        """Build the compiler command line for one translation unit."""
        cmd = [str(toolchain.compiler(project.language.definition_key))]
        if project.standard:
            cmd += toolchain.flag("langStd", project.standard)
        cmd += toolchain.flag("allWarnings")
        if flags.debug:
            cmd += toolchain.flag("debug")
        if project.kind.includes_dynamic:
            cmd += toolchain.flag("pic")
        cmd += toolchain.flag_list("include", flags.include_dirs)
        cmd += toolchain.flag_list("define", flags.defines)
        cmd += flags.flags
        cmd += flags.cflags
        cmd += toolchain.extra_flag_list
        cmd += toolchain.flag("compile")
        cmd += toolchain.flag("output", unit.object)
        cmd.append(str(unit.source))
        return cmd

    def compile_all(
        self,
        project: ProjectDescriptor,
        toolchain: ToolchainDescriptor,
        flags: ResolvedFlags,
        *,
        clean: bool = False,
    ) -> CompileResult:
        """Compile every out-of-date source of ``project``.

        Args:
            project: Project to compile.
            toolchain: Toolchain providing the compiler and flag templates.
            flags: Derived flag set for this build.
            clean: Recompile every source regardless of timestamps.

        Returns:
            CompileResult with all object files and the recompiled sources.

        Raises:
            CompileFailure: After all sources were attempted, if any failed.
        """
        result = CompileResult()
        failed: list[Path] = []
        last_failure: CommandResult | None = None

        for unit in self.translation_units(project, toolchain):
            result.objects.append(unit.object)
            if not needs_rebuild(unit.source, unit.object, clean=clean):
                logger.debug("Up to date: %s", unit.source)
                continue

            unit.object.parent.mkdir(parents=True, exist_ok=True)
            cmd_result = self.runner.run(self.command(project, toolchain, flags, unit))
            if cmd_result.ok and unit.object.exists():
                st = unit.source.stat()
                os.utime(unit.object, ns=(st.st_atime_ns, st.st_mtime_ns))
                result.compiled.append(unit.source)
            else:
                logger.error("'%s': failed to compile %s", project.name, unit.source)
                failed.append(unit.source)
                last_failure = cmd_result

        if failed:
            raise CompileFailure(
                project.name,
                failed,
                command=last_failure.args if last_failure else None,
                returncode=last_failure.returncode if last_failure else None,
            )
        if not result.objects:
            logger.warning("'%s' has no sources", project.name)
        return result
