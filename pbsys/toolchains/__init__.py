# SPDX-License-Identifier: MIT
"""Toolchain descriptors and the process-wide registry."""

from pbsys.toolchains.descriptor import (
    TargetOS,
    ToolchainDescriptor,
    find_program,
    load_toolchain,
)
from pbsys.toolchains.registry import (
    ToolchainRegistry,
    builtin_definitions,
    toolchain_registry,
)

__all__ = [
    "TargetOS",
    "ToolchainDescriptor",
    "ToolchainRegistry",
    "builtin_definitions",
    "find_program",
    "load_toolchain",
    "toolchain_registry",
]
