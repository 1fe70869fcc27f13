# SPDX-License-Identifier: MIT
"""External command execution.

Every compiler, linker and archiver invocation goes through a
CommandRunner. Commands run one at a time and block until they finish or
their timeout expires. The runner remembers the last command so failures
can report it.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command.

    Attributes:
        args: The command line.
        returncode: Exit status, or None if the command timed out.
    """

    args: tuple[str, ...]
    returncode: int | None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def format_command(args: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in args)


class CommandRunner:
    """Runs external commands synchronously.

    Attributes:
        timeout: Seconds before a command is killed (None waits forever).
        last_result: Result of the most recent command.
        count: Number of commands run so far.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self.last_result: CommandResult | None = None
        self.count = 0

    def run(self, args: Sequence[str | Path], *, cwd: Path | None = None) -> CommandResult:
        cmd = tuple(str(a) for a in args)
        logger.info("$ %s", format_command(cmd))
        self.count += 1
        try:
            proc = subprocess.run(cmd, cwd=cwd, timeout=self.timeout)
            returncode: int | None = proc.returncode
        except subprocess.TimeoutExpired:
            logger.error("Command timed out after %ss: %s", self.timeout, cmd[0])
            returncode = None
        except OSError as e:
            logger.error("Failed to run %s: %s", cmd[0], e)
            returncode = 127
        result = CommandResult(cmd, returncode)
        self.last_result = result
        return result
