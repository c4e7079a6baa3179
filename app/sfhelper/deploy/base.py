"""Abstract base class for deployment engines.

This module defines the DeploymentEngine interface that executes a
DeploymentRequest against a target org.
"""

from abc import ABC, abstractmethod

from sfhelper.models.deploy import DeploymentRequest, DeploymentResult


class DeploymentEngine(ABC):
    """Abstract base class for all deployment engines.

    Engines run one blocking deployment and report its outcome. They do
    not raise on a failed deployment; the failure is part of the result.

    Example:
        >>> engine = SfDeployEngine()
        >>> if engine.is_available():
        ...     result = engine.deploy(request)
        ...     print(result.success)
    """

    @abstractmethod
    def deploy(self, request: DeploymentRequest) -> DeploymentResult:
        """Execute a deployment.

        Args:
            request: What to deploy and where.

        Returns:
            DeploymentResult with success flag and diagnostic output.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the engine can be used on this system.

        Returns:
            True if the engine can be used, False otherwise.
        """
