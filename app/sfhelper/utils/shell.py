"""Subprocess helpers for the external tools sfhelper drives (git, sf)."""

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured outcome of an external command.

    Attributes:
        stdout: Text written to standard output.
        stderr: Text written to standard error.
        returncode: Process exit status.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """True when the process exited with status 0."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Both streams, stripped, joined by a newline when both are non-empty."""
        parts = [text.strip() for text in (self.stdout, self.stderr)]
        return "\n".join(part for part in parts if part)


def run_command(
    args: list[str],
    *,
    timeout: float | None = 60.0,
    cwd: str | Path | None = None,
) -> CommandResult:
    """Run a command without a shell and capture its output.

    A non-zero exit status is not an error here; callers inspect
    ``CommandResult.success`` themselves.

    Args:
        args: Executable followed by its arguments.
        timeout: Seconds before the process is killed, or None for no limit.
        cwd: Directory to run in. Defaults to the current directory.

    Raises:
        subprocess.TimeoutExpired: The timeout elapsed.
        FileNotFoundError: The executable is not installed.
    """
    completed = subprocess.run(
        args,
        capture_output=True,
        text=True,
        timeout=timeout,
        cwd=cwd,
    )
    return CommandResult(completed.stdout, completed.stderr, completed.returncode)


def command_exists(name: str) -> bool:
    """Whether ``name`` resolves to an executable on PATH."""
    return shutil.which(name) is not None
