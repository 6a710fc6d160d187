# archie_sandbox/sandbox/commands.py
"""
Host command runner.

Runs host-level commands (``docker build`` and friends) as argument vectors,
never through a shell, and collects their output and exit status.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    argv: tuple
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for diagnostics."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


class CommandRunner:
    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    async def run(self, argv: Sequence[str], cwd: Optional[str] = None) -> CommandResult:
        """
        Run ``argv`` and wait for it to exit.

        A timeout (if configured) kills the process and is reported as exit
        code 124 with a message on stderr, like coreutils' ``timeout``.
        A missing executable is reported as exit code 127.
        """
        argv = [str(a) for a in argv]
        logger.debug("Running host command: %s", argv)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            return CommandResult(tuple(argv), 127, "", str(e))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return CommandResult(tuple(argv), 124, "", f"Timed out after {self.timeout}s")

        return CommandResult(
            argv=tuple(argv),
            exit_code=proc.returncode if proc.returncode is not None else 0,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
