"""Deployment models.

This module defines the delta package produced by a delta generator,
the request handed to the deployment engine, and the engine's result.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class DeployMode(str, Enum):
    """How the delta package is produced.

    Attributes:
        GIT_DIFF: Diff the local branch against a base revision.
        ORG_SNAPSHOT: Diff a retrieved snapshot of the target org against local source.
    """

    GIT_DIFF = "git-diff"
    ORG_SNAPSHOT = "org-snapshot"


class TestLevel(str, Enum):
    """Apex test execution policy passed to the deployment engine."""

    __test__ = False

    NO_TEST_RUN = "NoTestRun"
    RUN_SPECIFIED_TESTS = "RunSpecifiedTests"
    RUN_LOCAL_TESTS = "RunLocalTests"
    RUN_ALL_TESTS_IN_ORG = "RunAllTestsInOrg"


@dataclass(frozen=True, slots=True)
class DeltaResult:
    """Manifests written by a delta generator.

    Attributes:
        additions_manifest: package.xml listing additions and modifications.
        destructive_manifest: destructiveChanges.xml, None if none was produced.
        output_dir: Directory the generator wrote into.
    """

    additions_manifest: Path
    destructive_manifest: Path | None
    output_dir: Path


@dataclass(frozen=True, slots=True)
class DeploymentRequest:
    """Everything the deployment engine needs for one deployment.

    Attributes:
        additions_manifest: Manifest of components to add or modify.
        destructive_manifest: Manifest of components to delete, if any.
        target_org: Alias or username of the target org.
        test_level: Test execution policy.
        dry_run: Validate only, without committing the deployment.
    """

    additions_manifest: Path
    destructive_manifest: Path | None
    target_org: str
    test_level: TestLevel = TestLevel.RUN_LOCAL_TESTS
    dry_run: bool = False

    def __post_init__(self) -> None:
        """Validate request data after initialization."""
        if not self.target_org:
            msg = "Target org cannot be empty"
            raise ValueError(msg)

    @property
    def has_destructive_changes(self) -> bool:
        """Check if the request deletes components."""
        return self.destructive_manifest is not None


@dataclass(frozen=True, slots=True)
class DeploymentResult:
    """Outcome reported by the deployment engine.

    Attributes:
        success: Whether the deployment succeeded.
        output: Diagnostic text from the engine.
        returncode: Exit code of the engine process (-1 if it never ran).
    """

    success: bool
    output: str = ""
    returncode: int = 0

    @property
    def failed(self) -> bool:
        """Check if the deployment failed."""
        return not self.success
