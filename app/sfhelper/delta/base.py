"""Abstract base class for delta generators.

This module defines the DeltaGenerator interface that produces the
additions manifest and, optionally, the destructive changes manifest
a deployment is built from.
"""

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from sfhelper.core.errors import ErrorKind, HelperError
from sfhelper.models.deploy import DeltaResult, DeployMode
from sfhelper.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)

SF_EXECUTABLE = "sf"


class DeltaGenerationError(HelperError):
    """Raised when the external delta tooling fails."""

    kind = ErrorKind.DELTA_GENERATION_FAILED

    def __init__(self, message: str, output: str = "") -> None:
        self.output = output
        super().__init__(message)


class DeltaGenerator(ABC):
    """Abstract base class for all delta generators.

    Generators shell out to the Salesforce CLI and report where the
    resulting manifests were written.

    Attributes:
        cwd: Project directory the CLI runs in.
        timeout: Maximum seconds for each CLI call, None for no limit.

    Example:
        >>> generator = GitDeltaGenerator(base_ref="main")
        >>> if generator.is_available():
        ...     delta = generator.generate(Path("/tmp/delta"))
        ...     print(delta.additions_manifest)
    """

    def __init__(self, cwd: Path | None = None, timeout: float | None = None) -> None:
        self._cwd = cwd
        self._timeout = timeout

    @property
    @abstractmethod
    def mode(self) -> DeployMode:
        """Return the deploy mode this generator implements."""

    @abstractmethod
    def generate(self, output_dir: Path) -> DeltaResult:
        """Produce the delta manifests in output_dir.

        Args:
            output_dir: Directory to write into. Existing content is removed.

        Returns:
            DeltaResult with the manifest locations.

        Raises:
            DeltaGenerationError: If the tooling fails or produces no additions manifest.
        """

    def is_available(self) -> bool:
        """Check if the Salesforce CLI is available."""
        return command_exists(SF_EXECUTABLE)

    def _prepare_dir(self, path: Path) -> Path:
        """Create an empty directory, removing leftovers from earlier runs."""
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True)
        return path

    def _run_sf(self, args: list[str], description: str) -> CommandResult:
        """Run an sf subcommand, raising DeltaGenerationError on failure.

        Args:
            args: Arguments after the 'sf' executable.
            description: Human-readable step name for error messages.

        Returns:
            CommandResult of the successful call.

        Raises:
            DeltaGenerationError: If sf is missing, times out or exits non-zero.
        """
        command = [SF_EXECUTABLE, *args]
        logger.info("Running %s: %s", description, " ".join(command))

        try:
            result = run_command(
                command,
                timeout=self._timeout,
                cwd=str(self._cwd) if self._cwd is not None else None,
            )
        except FileNotFoundError as e:
            msg = f"{description} failed: Salesforce CLI '{SF_EXECUTABLE}' not found"
            raise DeltaGenerationError(msg) from e
        except subprocess.TimeoutExpired as e:
            msg = f"{description} timed out after {self._timeout}s"
            raise DeltaGenerationError(msg) from e

        if not result.success:
            msg = f"{description} failed with exit code {result.returncode}"
            raise DeltaGenerationError(msg, output=result.output)

        logger.debug("%s output:\n%s", description, result.output)
        return result

    @staticmethod
    def _require_manifest(path: Path) -> Path:
        if not path.is_file():
            msg = f"Delta generation did not produce an additions manifest at {path}"
            raise DeltaGenerationError(msg)
        return path

    @staticmethod
    def _first_existing(*candidates: Path) -> Path | None:
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None
