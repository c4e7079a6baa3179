"""Deployment orchestration.

Turns a delta package into a DeploymentRequest and hands it to a
deployment engine.
"""

import logging

from sfhelper.core.errors import ErrorKind, HelperError
from sfhelper.deploy.base import DeploymentEngine
from sfhelper.models.deploy import DeltaResult, DeploymentRequest, DeploymentResult, TestLevel

logger = logging.getLogger(__name__)


class DeploymentFailedError(HelperError):
    """Raised when the deployment engine reports failure.

    Attributes:
        result: The failed DeploymentResult.
    """

    kind = ErrorKind.DEPLOYMENT_FAILED

    def __init__(self, result: DeploymentResult) -> None:
        self.result = result
        super().__init__(f"Deployment failed with exit code {result.returncode}")


class DeploymentOrchestrator:
    """Builds and issues deployment requests.

    Attributes:
        engine: Engine executing the deployment.
        target_org: Alias or username of the target org.
        test_level: Test execution policy (RunLocalTests by default).
        dry_run: Validate only, without committing the deployment.
    """

    def __init__(
        self,
        engine: DeploymentEngine,
        target_org: str,
        test_level: TestLevel = TestLevel.RUN_LOCAL_TESTS,
        dry_run: bool = False,
    ) -> None:
        self.engine = engine
        self.target_org = target_org
        self.test_level = test_level
        self.dry_run = dry_run

    def build_request(self, delta: DeltaResult) -> DeploymentRequest:
        """Build a request from the delta generator's output.

        The destructive manifest is only included when one was produced.

        Args:
            delta: Manifests written by the delta generator.

        Returns:
            DeploymentRequest for the engine.
        """
        destructive = delta.destructive_manifest
        if destructive is not None and not destructive.is_file():
            logger.debug("Destructive manifest %s vanished; omitting it", destructive)
            destructive = None

        return DeploymentRequest(
            additions_manifest=delta.additions_manifest,
            destructive_manifest=destructive,
            target_org=self.target_org,
            test_level=self.test_level,
            dry_run=self.dry_run,
        )

    def run(self, request: DeploymentRequest) -> DeploymentResult:
        """Execute the request and relay the engine's result.

        A failed deployment is returned, not raised, so the caller can
        finish restoring the source tree first.

        Args:
            request: Deployment request.

        Returns:
            DeploymentResult from the engine.
        """
        logger.info(
            "Deploying %s to %s (test level %s, destructive=%s)",
            request.additions_manifest,
            request.target_org,
            request.test_level.value,
            request.has_destructive_changes,
        )
        result = self.engine.deploy(request)
        if result.failed:
            logger.warning("Deployment failed with exit code %d", result.returncode)
        return result
