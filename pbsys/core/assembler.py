# SPDX-License-Identifier: MIT
"""Artifact assembly.

The ArtifactAssembler turns a project's object files into its artifact:

- kind ``none``: an executable, linked with the language's compiler
- kind ``static`` (or ``both``): a static library, built by the archiver
- kind ``dynamic`` (or ``both``): not supported; raises
  UnsupportedArtifactError

Assembly is skipped when the artifact exists and nothing it is made from
changed in this run. After a library build an ArtifactDescriptor is
written to ``<build dir>/<output name>.config`` so later runs can use the
library as an installed dependency.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from pbsys.core.artifact import ArtifactDescriptor, metadata_path, save_artifact
from pbsys.core.errors import AssembleFailure, UnsupportedArtifactError
from pbsys.core.project import ArtifactKind

if TYPE_CHECKING:
    from pbsys.core.flags import ResolvedFlags
    from pbsys.core.project import ProjectDescriptor
    from pbsys.core.runner import CommandRunner
    from pbsys.toolchains.descriptor import ToolchainDescriptor

logger = logging.getLogger(__name__)


@dataclass
class AssembleResult:
    """Outcome of an assembly step.

    Attributes:
        outputs: Artifact files of the project (whether rebuilt or not).
        rebuilt: True if any artifact was (re)linked or (re)archived.
        artifact: Linkage metadata for libraries, None for executables.
    """

    outputs: list[Path] = field(default_factory=list)
    rebuilt: bool = False
    artifact: ArtifactDescriptor | None = None


class ArtifactAssembler:
    """Links executables and archives static libraries.

    Attributes:
        runner: Executes linker and archiver commands.
        build_root: Parent of the per-project build directories.
    """

    def __init__(self, runner: CommandRunner, build_root: Path) -> None:
        self.runner = runner
        self.build_root = Path(build_root)

    def build_dir(self, project: ProjectDescriptor) -> Path:
        return self.build_root / project.name

    def executable_path(
        self, project: ProjectDescriptor, toolchain: ToolchainDescriptor
    ) -> Path:
        return self.build_dir(project) / toolchain.output_filename(
            "exec", project.output_name
        )

    def static_library_path(
        self, project: ProjectDescriptor, toolchain: ToolchainDescriptor
    ) -> Path:
        return self.build_dir(project) / toolchain.output_filename(
            "staticLib", project.output_name
        )

    def metadata_path(self, project: ProjectDescriptor) -> Path:
        return metadata_path(self.build_dir(project), project.output_name)

    def describe(
        self, project: ProjectDescriptor, flags: ResolvedFlags
    ) -> ArtifactDescriptor:
        """Linkage metadata of a library project.

        A static library does not carry its own dependencies, so its
        consumers also need the libraries it was configured to link.
        """
        lib_dirs = [str(self.build_dir(project).absolute())]
        libs = [project.output_name]
        if project.kind.includes_static:
            lib_dirs += [str(Path(d).absolute()) for d in flags.lib_dirs]
            libs += flags.libs
        return ArtifactDescriptor(
            output_name=project.output_name,
            kind=project.kind,
            lib_dirs=tuple(dict.fromkeys(lib_dirs)),
            libs=tuple(dict.fromkeys(libs)),
            dependencies=tuple(flags.dependencies),
            toolchain=project.toolchain,
        )

    def link_command(
        self,
        project: ProjectDescriptor,
        toolchain: ToolchainDescriptor,
        objects: list[Path],
        flags: ResolvedFlags,
        output: Path,
    ) -> list[str]:
        cmd = [str(toolchain.compiler(project.language.definition_key))]
        if flags.debug:
            cmd += toolchain.flag("debug")
        cmd += flags.flags
        cmd += toolchain.extra_flag_list
        cmd += toolchain.flag("output", output)
        cmd += [str(o) for o in objects]
        cmd += toolchain.flag_list("libPath", flags.lib_dirs)
        cmd += toolchain.flag_list("libLink", flags.libs)
        cmd += flags.ldflags
        return cmd

    def archive_command(
        self, toolchain: ToolchainDescriptor, objects: list[Path], output: Path
    ) -> list[str]:
        cmd = [str(toolchain.archiver)]
        cmd += toolchain.flag("archive", output)
        cmd += [str(o) for o in objects]
        return cmd

    def _run(self, cmd: list[str], what: str) -> None:
        result = self.runner.run(cmd)
        if not result.ok:
            raise AssembleFailure(
                f"failed to build {what}",
                command=result.args,
                returncode=result.returncode,
            )

    def assemble(
        self,
        project: ProjectDescriptor,
        toolchain: ToolchainDescriptor,
        objects: list[Path],
        flags: ResolvedFlags,
        *,
        any_changed: bool,
    ) -> AssembleResult:
        """Produce the project's artifact.

        Args:
            project: Project to assemble.
            toolchain: Toolchain providing the linker/archiver.
            objects: Object files from the compile pass.
            flags: Derived flag set for this build.
            any_changed: Whether a source or dependency changed in this run.

        Raises:
            AssembleFailure: If the linker or archiver fails.
            UnsupportedArtifactError: If a dynamic library is requested.
        """
        result = AssembleResult()
        self.build_dir(project).mkdir(parents=True, exist_ok=True)

        if project.kind is ArtifactKind.NONE:
            binary = self.executable_path(project, toolchain)
            result.outputs.append(binary)
            if binary.exists() and not any_changed:
                logger.info("'%s': executable up to date, nothing changed", project.name)
                return result
            logger.info("'%s': building executable %s", project.name, binary)
            self._run(
                self.link_command(project, toolchain, objects, flags, binary),
                f"executable {binary}",
            )
            result.rebuilt = True
            return result

        if project.kind.includes_static:
            library = self.static_library_path(project, toolchain)
            result.outputs.append(library)
            if library.exists() and not any_changed:
                logger.info("'%s': static library up to date, nothing changed", project.name)
            else:
                logger.info("'%s': building static library %s", project.name, library)
                # ar appends to an existing archive; start from scratch
                library.unlink(missing_ok=True)
                self._run(
                    self.archive_command(toolchain, objects, library),
                    f"static library {library}",
                )
                result.rebuilt = True

        if project.kind.includes_dynamic:
            raise UnsupportedArtifactError(
                f"'{project.name}': dynamic libraries are not supported yet"
            )

        result.artifact = self.describe(project, flags)
        meta = self.metadata_path(project)
        if result.rebuilt or not meta.exists():
            save_artifact(result.artifact, meta)
            logger.debug("Wrote %s", meta)
        return result
