# SPDX-License-Identifier: MIT
"""Toolchain descriptors.

A ToolchainDescriptor is an immutable record of one target toolchain:
the compiler per language, the archiver, the target OS, command-line
flag templates keyed by purpose, and output filename patterns.

Definitions are TOML (or JSON) files:

    name = "gnu"
    os = "linux"
    archiver = "ar"
    extra_flags = ""

    [compiler]
    c = "gcc"
    "c++" = "g++"

    [flags]
    include = "-I@ARG@"
    output = "-o @ARG@"
    ...

    [output_filenames]
    exec = "@NAME@"
    staticLib = "lib@NAME@.a"
    dynamicLib = "lib@NAME@.so"

Flag templates are split shell-style into tokens, and ``@ARG@`` in a token
is replaced by the argument (a path, a library name, a define...).
"""

from __future__ import annotations

import json
import os
import shlex
import shutil
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pbsys.core.errors import LoadError, ToolNotFoundError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

ARG_PLACEHOLDER = "@ARG@"
NAME_PLACEHOLDER = "@NAME@"

# Flag templates every definition must provide
REQUIRED_FLAGS: tuple[str, ...] = (
    "debug",
    "include",
    "libPath",
    "libLink",
    "output",
    "allWarnings",
    "pic",
    "langStd",
    "define",
)

# Flag templates with a GNU-style default
DEFAULT_FLAGS: dict[str, str] = {
    "compile": "-c",
    "archive": f"rcs {ARG_PLACEHOLDER}",
}

OUTPUT_KINDS: tuple[str, ...] = ("exec", "staticLib", "dynamicLib")

LANGUAGES: tuple[str, ...] = ("c", "c++")


class TargetOS(str, Enum):
    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"


def find_program(name: str, search_path: str | None = None) -> Path | None:
    """Find an executable by name or path.

    A name containing a directory separator is checked directly; anything
    else is searched for on ``search_path`` (default: PATH).
    """
    candidate = Path(name)
    if candidate.parent != Path("."):
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate.absolute()
        return None
    result = shutil.which(name, path=search_path)
    if result:
        return Path(result)
    return None


@dataclass(frozen=True, eq=False)
class ToolchainDescriptor:
    """Immutable description of a toolchain.

    Attributes:
        name: Unique toolchain name (registry key).
        os: Target operating system.
        compilers: Resolved compiler binary per language key ("c", "c++").
        archiver: Resolved archiver binary.
        flags: Flag templates keyed by purpose.
        output_filenames: Filename patterns keyed by artifact kind.
        extra_flags: Flags added to every compile and link command.
        source: File the definition was loaded from, if any.
    """

    name: str
    os: TargetOS
    compilers: Mapping[str, Path]
    archiver: Path
    flags: Mapping[str, str]
    output_filenames: Mapping[str, str]
    extra_flags: str = ""
    source: Path | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "compilers", MappingProxyType(dict(self.compilers)))
        merged = dict(DEFAULT_FLAGS)
        merged.update(self.flags)
        object.__setattr__(self, "flags", MappingProxyType(merged))
        object.__setattr__(
            self, "output_filenames", MappingProxyType(dict(self.output_filenames))
        )

    def compiler(self, language_key: str) -> Path:
        """Compiler binary for a language key ("c" or "c++")."""
        try:
            return self.compilers[language_key]
        except KeyError:
            raise LoadError(
                f"toolchain '{self.name}' has no compiler for '{language_key}'"
            ) from None

    def flag(self, key: str, arg: object = None) -> list[str]:
        """Expand a flag template into command-line tokens.

        Args:
            key: Template purpose (e.g. "include", "output").
            arg: Value substituted for @ARG@, if the template takes one.
        """
        template = self.flags.get(key, "")
        tokens = shlex.split(template)
        if arg is None:
            return tokens
        value = str(arg)
        return [t.replace(ARG_PLACEHOLDER, value) for t in tokens]

    def flag_list(self, key: str, args: Iterable[object]) -> list[str]:
        """Expand a flag template once per argument."""
        result: list[str] = []
        for arg in args:
            result.extend(self.flag(key, arg))
        return result

    def output_filename(self, kind: str, name: str) -> str:
        """Filename of an artifact ("exec", "staticLib" or "dynamicLib")."""
        return self.output_filenames[kind].replace(NAME_PLACEHOLDER, name)

    @property
    def extra_flag_list(self) -> list[str]:
        return shlex.split(self.extra_flags)

    @property
    def object_suffix(self) -> str:
        return ".obj" if self.os is TargetOS.WINDOWS else ".o"

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        source: Path | None = None,
        search_path: str | None = None,
    ) -> ToolchainDescriptor:
        """Validate a parsed definition and resolve its binaries.

        Raises:
            LoadError: If a field is missing or malformed.
            ToolNotFoundError: If a binary cannot be found on the host.
        """
        where = f"{source}: " if source else ""

        def require(mapping: Mapping[str, Any], key: str, what: str) -> Any:
            value = mapping.get(key)
            if value is None or value == "":
                raise LoadError(f"{where}missing required field '{what}'")
            return value

        name = require(data, "name", "name")
        if not isinstance(name, str):
            raise LoadError(f"{where}'name' must be a string")
        try:
            target_os = TargetOS(require(data, "os", "os"))
        except ValueError:
            valid = ", ".join(o.value for o in TargetOS)
            raise LoadError(
                f"{where}invalid os {data['os']!r} (expected one of: {valid})"
            ) from None

        compiler_table = data.get("compiler")
        if not isinstance(compiler_table, Mapping):
            raise LoadError(f"{where}missing required table 'compiler'")
        compiler_names = {
            lang: require(compiler_table, lang, f"compiler.{lang}")
            for lang in LANGUAGES
        }
        archiver_name = require(data, "archiver", "archiver")

        flag_table = data.get("flags")
        if not isinstance(flag_table, Mapping):
            raise LoadError(f"{where}missing required table 'flags'")
        # Flag templates may be empty (e.g. no PIC switch), but must be present
        missing = [key for key in REQUIRED_FLAGS if key not in flag_table]
        if missing:
            raise LoadError(f"{where}missing required field 'flags.{missing[0]}'")
        flags = dict(flag_table)
        for key, value in flags.items():
            if not isinstance(value, str):
                raise LoadError(f"{where}'flags.{key}' must be a string")

        output_table = data.get("output_filenames")
        if not isinstance(output_table, Mapping):
            raise LoadError(f"{where}missing required table 'output_filenames'")
        output_filenames: dict[str, str] = {}
        for kind in OUTPUT_KINDS:
            pattern = require(output_table, kind, f"output_filenames.{kind}")
            if pattern.count(NAME_PLACEHOLDER) != 1:
                raise LoadError(
                    f"{where}'output_filenames.{kind}' must contain "
                    f"{NAME_PLACEHOLDER} exactly once"
                )
            output_filenames[kind] = pattern

        extra_flags = data.get("extra_flags", "")
        if not isinstance(extra_flags, str):
            raise LoadError(f"{where}'extra_flags' must be a string")

        # Resolve every binary before anything is registered
        compilers: dict[str, Path] = {}
        for lang, program in compiler_names.items():
            found = find_program(program, search_path)
            if found is None:
                raise ToolNotFoundError(program, name)
            compilers[lang] = found
        archiver = find_program(archiver_name, search_path)
        if archiver is None:
            raise ToolNotFoundError(archiver_name, name)

        return cls(
            name=name,
            os=target_os,
            compilers=compilers,
            archiver=archiver,
            flags=flags,
            output_filenames=output_filenames,
            extra_flags=extra_flags,
            source=source,
        )

    def __repr__(self) -> str:
        return f"ToolchainDescriptor({self.name!r}, os={self.os.value})"


def read_definition(path: Path) -> dict[str, Any]:
    """Parse a toolchain definition file (TOML, or JSON by suffix)."""
    try:
        if path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
        else:
            with open(path, "rb") as f:
                data = tomllib.load(f)
    except OSError as e:
        raise LoadError(f"cannot read toolchain definition {path}: {e}") from e
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise LoadError(f"{path}: malformed toolchain definition: {e}") from e
    if not isinstance(data, dict):
        raise LoadError(f"{path}: toolchain definition must be a table")
    return data


def load_toolchain(
    path: Path | str, *, search_path: str | None = None
) -> ToolchainDescriptor:
    """Load and validate a toolchain definition file."""
    path = Path(path)
    return ToolchainDescriptor.from_dict(
        read_definition(path), source=path, search_path=search_path
    )
