# SPDX-License-Identifier: MIT
"""Project descriptors and the builder used to declare them.

A ProjectDescriptor is the fully-resolved, immutable configuration of one
buildable unit. Build scripts create them through ``new_project()``, which
returns a ProjectBuilder; the builder is passed explicitly to every
configuration call and frozen into a descriptor when its ``with`` block
ends.

Example:
    with new_project("mylib", lang="c99") as lib:
        lib.src_dir("src")
        lib.inc_dir("include", public=True)
        lib.is_lib("static")

    with new_project("app") as app:
        app.src_dir("app")
        app.use("mylib")
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Union

from pbsys.core.errors import ConfigureError, LinkTypeMismatch

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pbsys.core.artifact import ArtifactDescriptor

logger = logging.getLogger(__name__)


class Language(str, Enum):
    """Source language of a project."""

    C = "native-c"
    CPP = "native-cpp"

    @property
    def definition_key(self) -> str:
        """Key of this language's compiler in a toolchain definition."""
        return "c" if self is Language.C else "c++"

    @property
    def source_extensions(self) -> tuple[str, ...]:
        if self is Language.C:
            return (".c",)
        return (".cpp", ".cc", ".c++", ".cxx")


class ArtifactKind(str, Enum):
    """What a project produces. NONE means an executable."""

    NONE = "none"
    STATIC = "static"
    DYNAMIC = "dynamic"
    BOTH = "both"

    @property
    def is_library(self) -> bool:
        return self is not ArtifactKind.NONE

    @property
    def includes_static(self) -> bool:
        return self in (ArtifactKind.STATIC, ArtifactKind.BOTH)

    @property
    def includes_dynamic(self) -> bool:
        return self in (ArtifactKind.DYNAMIC, ArtifactKind.BOTH)

    def satisfies(self, link_type: ArtifactKind) -> bool:
        """Whether an artifact of this kind can be linked as ``link_type``."""
        return self is ArtifactKind.BOTH or self is link_type


# Aliases accepted by ProjectBuilder.is_lib() and use()
_KIND_ALIASES: dict[str, ArtifactKind] = {
    "static": ArtifactKind.STATIC,
    "s": ArtifactKind.STATIC,
    "dynamic": ArtifactKind.DYNAMIC,
    "dyn": ArtifactKind.DYNAMIC,
    "d": ArtifactKind.DYNAMIC,
    "both": ArtifactKind.BOTH,
    "none": ArtifactKind.NONE,
}


def parse_kind(value: ArtifactKind | str) -> ArtifactKind:
    """Convert a kind name or alias to an ArtifactKind."""
    if isinstance(value, ArtifactKind):
        return value
    try:
        return _KIND_ALIASES[value.lower()]
    except KeyError:
        raise ConfigureError(f"unknown library type: {value!r}") from None


def parse_lang(lang: str) -> tuple[Language, str | None]:
    """Split a language string into a language and an optional standard.

    Accepts the values of gcc's ``-std`` option or a bare language:
    ``c``, ``c99``, ``gnu11``, ``iso9899:1999``, ``c++``, ``c++17``, ``gnu++20``.

    Returns:
        Tuple of (language, standard or None when none was given).

    Raises:
        ConfigureError: If the string cannot be validated.
    """
    m = re.fullmatch(r"(c\+\+|gnu\+\+)([\dxyza]+)?", lang)
    if m:
        return Language.CPP, lang if m.group(2) else None
    m = re.fullmatch(r"(c|gnu)([\dx]+)?", lang)
    if m:
        return Language.C, lang if m.group(2) else None
    if re.fullmatch(r"iso\d+:[\dx]+", lang):
        return Language.C, lang
    raise ConfigureError(f"cannot validate language: {lang!r}")


@dataclass(frozen=True)
class Define:
    """A preprocessor define, optionally with a value."""

    name: str
    value: str | None = None

    def __str__(self) -> str:
        if self.value is None:
            return self.name
        return f"{self.name}={self.value}"


@dataclass(frozen=True)
class LocalDependency:
    """Dependency on a project defined in the same run."""

    project: ProjectDescriptor
    link_type: ArtifactKind | None = None

    @property
    def name(self) -> str:
        return self.project.name


@dataclass(frozen=True)
class PendingDependency:
    """Dependency on an installed project, resolved at build time."""

    name: str
    link_type: ArtifactKind = ArtifactKind.STATIC


@dataclass(frozen=True)
class InstalledDependency:
    """A pending dependency after its installed metadata was found."""

    artifact: ArtifactDescriptor
    install_root: Path

    @property
    def name(self) -> str:
        return self.artifact.output_name


DeclaredDependency = Union[LocalDependency, PendingDependency]
ResolvedDependency = Union[LocalDependency, InstalledDependency]
DependencyRef = Union[LocalDependency, PendingDependency, InstalledDependency]


@dataclass(frozen=True)
class ProjectDescriptor:
    """Fully-resolved configuration for one buildable unit.

    All relative paths are interpreted against ``base_dir``.

    Attributes:
        name: Unique project name; also the build directory name.
        output_name: Name used for output filenames (defaults to name).
        language: Source language.
        standard: Explicit language standard (e.g. "c99"), or None.
        toolchain: Name of the toolchain used to build this project.
        kind: Artifact kind; NONE builds an executable.
        installable: Whether ``--install`` copies this project.
        base_dir: Directory used to resolve relative paths.
        dependencies: Declared dependencies in declaration order.
    """

    name: str
    output_name: str = ""
    language: Language = Language.C
    standard: str | None = None
    toolchain: str = "gnu"
    source_dirs: tuple[Path, ...] = ()
    source_globs: tuple[str, ...] = ()
    source_extensions: tuple[str, ...] = ()
    include_dirs: tuple[Path, ...] = ()
    public_include_dirs: tuple[Path, ...] = ()
    lib_dirs: tuple[Path, ...] = ()
    libs: tuple[str, ...] = ()
    flags: tuple[str, ...] = ()
    defines: tuple[Define, ...] = ()
    package_cflags: tuple[str, ...] = ()
    package_ldflags: tuple[str, ...] = ()
    kind: ArtifactKind = ArtifactKind.NONE
    installable: bool = True
    base_dir: Path = field(default_factory=Path.cwd)
    dependencies: tuple[DeclaredDependency, ...] = ()

    def __post_init__(self) -> None:
        if not self.output_name:
            object.__setattr__(self, "output_name", self.name)

    def path(self, p: Path | str) -> Path:
        """Resolve a path against the project's base directory."""
        p = Path(p)
        if p.is_absolute():
            return p
        return self.base_dir / p

    @property
    def all_source_extensions(self) -> tuple[str, ...]:
        exts = list(self.language.source_extensions)
        for ext in self.source_extensions:
            if ext not in exts:
                exts.append(ext)
        return tuple(exts)

    def __repr__(self) -> str:
        return (
            f"ProjectDescriptor({self.name!r}, kind={self.kind.value}, "
            f"toolchain={self.toolchain!r})"
        )


class ProjectRegistry:
    """Process-wide store of frozen project descriptors, keyed by name."""

    def __init__(self) -> None:
        self._projects: dict[str, ProjectDescriptor] = {}

    def add(self, project: ProjectDescriptor) -> None:
        if project.name in self._projects:
            raise ConfigureError(f"project already defined: {project.name}")
        self._projects[project.name] = project

    def get(self, name: str) -> ProjectDescriptor | None:
        return self._projects.get(name)

    def __getitem__(self, name: str) -> ProjectDescriptor:
        return self._projects[name]

    def __contains__(self, name: object) -> bool:
        return name in self._projects

    def __iter__(self):
        return iter(self._projects.values())

    def __len__(self) -> int:
        return len(self._projects)

    def names(self) -> list[str]:
        return list(self._projects)

    def clear(self) -> None:
        self._projects.clear()


project_registry = ProjectRegistry()


class ProjectBuilder:
    """Collects configuration for one project until it is frozen.

    Every method returns the builder so calls can be chained. Paths are
    validated against the base directory when they are added.
    """

    def __init__(
        self,
        name: str,
        *,
        lang: str = "c",
        toolchain: str = "gnu",
        output_name: str | None = None,
        src_file_endings: Iterable[str] = (),
        no_install: bool = False,
        lib_type: ArtifactKind | str | None = None,
        base_dir: Path | str | None = None,
        registry: ProjectRegistry | None = None,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise ConfigureError("project name must be a non-empty string")
        language, standard = parse_lang(lang)
        self._registry = registry if registry is not None else project_registry
        self._frozen: ProjectDescriptor | None = None
        self._descriptor = ProjectDescriptor(
            name=name,
            output_name=output_name or name,
            language=language,
            standard=standard,
            toolchain=toolchain,
            source_extensions=tuple(
                e if e.startswith(".") else f".{e}" for e in src_file_endings
            ),
            kind=parse_kind(lib_type) if lib_type else ArtifactKind.NONE,
            installable=not no_install,
            base_dir=Path(base_dir) if base_dir else Path.cwd(),
        )

    @property
    def name(self) -> str:
        return self._descriptor.name

    def _update(self, **changes: object) -> ProjectBuilder:
        if self._frozen is not None:
            raise ConfigureError(f"project '{self.name}' is already frozen")
        self._descriptor = replace(self._descriptor, **changes)  # type: ignore[arg-type]
        return self

    def _checked_dir(self, directory: Path | str, what: str) -> Path:
        path = Path(directory)
        if not self._descriptor.path(path).is_dir():
            raise ConfigureError(f"{what} is no directory: '{directory}'")
        return path

    def src_dir(self, *dirs: Path | str) -> ProjectBuilder:
        """Add source root directories."""
        paths = tuple(self._checked_dir(d, "source dir") for d in dirs)
        return self._update(source_dirs=self._descriptor.source_dirs + paths)

    def src_glob(self, *patterns: str) -> ProjectBuilder:
        """Add glob patterns (relative to the base dir) matching source files."""
        for pattern in patterns:
            if not pattern or Path(pattern).is_absolute():
                raise ConfigureError(
                    f"source pattern must be relative to the base dir: {pattern!r}"
                )
        return self._update(source_globs=self._descriptor.source_globs + patterns)

    def inc_dir(self, *dirs: Path | str, public: bool = False) -> ProjectBuilder:
        """Add include directories.

        Public include directories are also used by dependents and are
        copied to the install root.
        """
        paths = tuple(self._checked_dir(d, "include dir") for d in dirs)
        if public:
            return self._update(
                public_include_dirs=self._descriptor.public_include_dirs + paths
            )
        return self._update(include_dirs=self._descriptor.include_dirs + paths)

    def use_lib(self, name: str, path: Path | str | None = None) -> ProjectBuilder:
        """Link an external library, with an optional search path.

        The search path is only added when it exists.
        """
        self._update(libs=self._descriptor.libs + (name,))
        if path is not None and self._descriptor.path(path).is_dir():
            self._update(lib_dirs=self._descriptor.lib_dirs + (Path(path),))
        return self

    def lib_dir(self, *dirs: Path | str) -> ProjectBuilder:
        paths = tuple(Path(d) for d in dirs)
        return self._update(lib_dirs=self._descriptor.lib_dirs + paths)

    def flag(self, *flags: str) -> ProjectBuilder:
        return self._update(flags=self._descriptor.flags + flags)

    def define(self, name: str, value: object = None) -> ProjectBuilder:
        define = Define(name, None if value is None else str(value))
        return self._update(defines=self._descriptor.defines + (define,))

    def package_flags(
        self, cflags: str | Iterable[str] = (), ldflags: str | Iterable[str] = ()
    ) -> ProjectBuilder:
        """Add flags obtained from a package query (e.g. pkg-config output)."""
        cflags = (cflags,) if isinstance(cflags, str) else tuple(cflags)
        ldflags = (ldflags,) if isinstance(ldflags, str) else tuple(ldflags)
        return self._update(
            package_cflags=self._descriptor.package_cflags + cflags,
            package_ldflags=self._descriptor.package_ldflags + ldflags,
        )

    def no_install(self) -> ProjectBuilder:
        return self._update(installable=False)

    def is_lib(self, kind: ArtifactKind | str) -> ProjectBuilder:
        """Make this project a library of the given kind."""
        kind = parse_kind(kind)
        if kind is ArtifactKind.NONE:
            raise ConfigureError("use an executable project instead of is_lib('none')")
        return self._update(kind=kind)

    def use(
        self,
        dependency: ProjectDescriptor | ProjectBuilder | str,
        link_type: ArtifactKind | str | None = None,
    ) -> ProjectBuilder:
        """Depend on another project.

        A descriptor, a builder, or the name of a project already defined in
        this run becomes a local dependency that is built first. Any other
        name is a reference to an installed project, looked up at build time.
        """
        requested = parse_kind(link_type) if link_type is not None else None
        if isinstance(dependency, ProjectBuilder):
            dependency = dependency.freeze()
        if isinstance(dependency, str) and dependency in self._registry:
            dependency = self._registry[dependency]

        ref: DeclaredDependency
        if isinstance(dependency, ProjectDescriptor):
            if not dependency.kind.is_library:
                raise ConfigureError(
                    f"'{dependency.name}' can't be used because it is not a library"
                )
            if requested is not None and not dependency.kind.satisfies(requested):
                raise LinkTypeMismatch(
                    dependency.name, requested.value, dependency.kind.value
                )
            ref = LocalDependency(dependency, requested)
        else:
            ref = PendingDependency(dependency, requested or ArtifactKind.STATIC)
        return self._update(dependencies=self._descriptor.dependencies + (ref,))

    def freeze(self) -> ProjectDescriptor:
        """Finish configuration and register the descriptor.

        Calling freeze() again returns the same descriptor.
        """
        if self._frozen is None:
            self._registry.add(self._descriptor)
            self._frozen = self._descriptor
            logger.debug("Defined %r", self._frozen)
        return self._frozen

    def __enter__(self) -> ProjectBuilder:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.freeze()


def new_project(name: str, **options: object) -> ProjectBuilder:
    """Start configuring a new project.

    Args:
        name: Project name, also the default output name.
        **options: See ProjectBuilder (lang, toolchain, output_name,
            src_file_endings, no_install, lib_type, base_dir).

    Returns:
        A builder; use it as a context manager or call freeze() directly.
    """
    return ProjectBuilder(name, **options)  # type: ignore[arg-type]
