"""Data models for sfhelper.

This module exports the component and deployment data structures.
"""

from sfhelper.models.component import (
    DeletedComponent,
    DeletionManifest,
    DependencyMatch,
    NeutralizationRecord,
)
from sfhelper.models.deploy import (
    DeltaResult,
    DeploymentRequest,
    DeploymentResult,
    DeployMode,
    TestLevel,
)

__all__ = [
    "DeletedComponent",
    "DeletionManifest",
    "DeltaResult",
    "DependencyMatch",
    "DeployMode",
    "DeploymentRequest",
    "DeploymentResult",
    "NeutralizationRecord",
    "TestLevel",
]
