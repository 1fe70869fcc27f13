# SPDX-License-Identifier: MIT
"""Process-wide toolchain registry.

Built-in definitions (the ``*.toml`` files next to this module) are loaded
before any user-supplied ones. Registration is append-only: a name can be
registered once per process.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pbsys.core.errors import LoadError, ToolchainNotFoundError
from pbsys.toolchains.descriptor import ToolchainDescriptor, load_toolchain

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

BUILTIN_DIR = Path(__file__).parent


def builtin_definitions() -> list[Path]:
    """Paths of the packaged toolchain definitions, in load order."""
    return sorted(BUILTIN_DIR.glob("*.toml"))


class ToolchainRegistry:
    """Read-only-after-load store of toolchain descriptors keyed by name."""

    def __init__(self) -> None:
        self._toolchains: dict[str, ToolchainDescriptor] = {}
        self._builtins_loaded = False

    def register(self, toolchain: ToolchainDescriptor) -> ToolchainDescriptor:
        """Add a descriptor.

        Raises:
            LoadError: If a toolchain with the same name is already registered.
        """
        existing = self._toolchains.get(toolchain.name)
        if existing is not None:
            origin = f" (from {existing.source})" if existing.source else ""
            raise LoadError(f"duplicate toolchain name: {toolchain.name}{origin}")
        self._toolchains[toolchain.name] = toolchain
        logger.debug("Registered toolchain %r", toolchain)
        return toolchain

    def load(
        self, path: Path | str, *, search_path: str | None = None
    ) -> ToolchainDescriptor:
        """Load a definition file and register it.

        Nothing is registered if loading fails.
        """
        toolchain = load_toolchain(path, search_path=search_path)
        return self.register(toolchain)

    def load_builtins(self, *, search_path: str | None = None) -> None:
        """Load the packaged definitions (once per registry)."""
        if self._builtins_loaded:
            return
        for path in builtin_definitions():
            self.load(path, search_path=search_path)
        self._builtins_loaded = True

    def load_all(
        self,
        user_paths: Iterable[Path | str] = (),
        *,
        search_path: str | None = None,
    ) -> None:
        """Load the built-in definitions, then the user-supplied ones."""
        self.load_builtins(search_path=search_path)
        for path in user_paths:
            self.load(path, search_path=search_path)

    def lookup(self, name: str) -> ToolchainDescriptor:
        """Get a toolchain by name.

        Raises:
            ToolchainNotFoundError: If no such toolchain is registered.
        """
        try:
            return self._toolchains[name]
        except KeyError:
            raise ToolchainNotFoundError(name) from None

    def names(self) -> list[str]:
        return list(self._toolchains)

    def __contains__(self, name: object) -> bool:
        return name in self._toolchains

    def __iter__(self) -> Iterator[ToolchainDescriptor]:
        return iter(self._toolchains.values())

    def __len__(self) -> int:
        return len(self._toolchains)

    def clear(self) -> None:
        """Forget every toolchain (for tests and repeated CLI runs)."""
        self._toolchains.clear()
        self._builtins_loaded = False


toolchain_registry = ToolchainRegistry()
