"""
provisioner.runner
AUTHOR: carter-vin

Seam to the host's package and service managers

Every external command goes through a CommandRunner so that:
- failures come back as data (returncode), never as exceptions
- every invocation lands in the event stream / transcript
- tests can swap in a scripted runner
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

from provisioner.logging import EventLog

# Exit code used when the executable itself is missing (shell convention)
COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    def __call__(
        self,
        argv: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult: ...


class SubprocessRunner:
    """
    Run commands with subprocess, capture output, log one event per call
    """

    def __init__(self, log: EventLog, *, timeout_s: Optional[float] = 1800.0) -> None:
        self.log = log
        self.timeout_s = timeout_s

    def __call__(
        self,
        argv: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        args = tuple(argv)
        merged_env = {**os.environ, **env} if env else None

        try:
            proc = subprocess.run(
                list(args),
                capture_output=True,
                text=True,
                env=merged_env,
                cwd=cwd,
                check=False,
                timeout=self.timeout_s,
            )
            result = CommandResult(args, proc.returncode, proc.stdout or "", proc.stderr or "")
        except FileNotFoundError as e:
            result = CommandResult(args, COMMAND_NOT_FOUND, "", str(e))
        except subprocess.TimeoutExpired as e:
            result = CommandResult(args, -1, "", f"timed out after {e.timeout}s")

        fields = {"argv": list(args), "returncode": result.returncode}
        if not result.ok:
            fields["output"] = (result.stderr or result.stdout).strip()[-400:]
        self.log.emit("command_run", **fields)
        return result
