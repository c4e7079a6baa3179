"""Salesforce CLI deployment engine.

Deploys with ``sf project deploy start`` using a manifest and, when
components are deleted, a pre-destructive changes manifest.
"""

import logging
import subprocess
from pathlib import Path

from sfhelper.deploy.base import DeploymentEngine
from sfhelper.models.deploy import DeploymentRequest, DeploymentResult
from sfhelper.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)


class SfDeployEngine(DeploymentEngine):
    """Deployment engine backed by the sf CLI.

    Attributes:
        cwd: Project directory the deployment runs in.
        timeout: Maximum seconds for the deployment, None for no limit.
    """

    def __init__(self, cwd: Path | None = None, timeout: float | None = None) -> None:
        self._cwd = cwd
        self._timeout = timeout

    def is_available(self) -> bool:
        """Check if the sf CLI is available."""
        return command_exists("sf")

    def build_command(self, request: DeploymentRequest) -> list[str]:
        """Build the sf argument list for a request.

        Args:
            request: Deployment request.

        Returns:
            Full command including the 'sf' executable.
        """
        args = [
            "sf",
            "project",
            "deploy",
            "start",
            "--manifest",
            str(request.additions_manifest),
            "--target-org",
            request.target_org,
            "--test-level",
            request.test_level.value,
        ]
        if request.destructive_manifest is not None:
            args.extend(["--pre-destructive-changes", str(request.destructive_manifest)])
        if request.dry_run:
            args.append("--dry-run")
        return args

    def deploy(self, request: DeploymentRequest) -> DeploymentResult:
        """Run sf project deploy start and wait for it to finish."""
        args = self.build_command(request)
        logger.info("Executing deployment: %s", " ".join(args))

        try:
            result = run_command(
                args,
                timeout=self._timeout,
                cwd=str(self._cwd) if self._cwd is not None else None,
            )
        except FileNotFoundError:
            return DeploymentResult(
                success=False,
                output="Salesforce CLI 'sf' not found in PATH",
                returncode=-1,
            )
        except subprocess.TimeoutExpired:
            return DeploymentResult(
                success=False,
                output=f"Deployment timed out after {self._timeout}s",
                returncode=-1,
            )

        return DeploymentResult(
            success=result.success,
            output=result.output,
            returncode=result.returncode,
        )
