"""Error kinds shared by the pipeline stages.

Each stage raises its own exception subclass; all of them derive from
HelperError and carry an ErrorKind so the CLI can report them uniformly.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of pipeline failures.

    Attributes:
        MANIFEST_PARSE: Destructive manifest is malformed (fatal, before any mutation).
        DELTA_GENERATION_FAILED: Delta generator failed (fatal, no mutation attempted).
        RESTORE_CONFLICT: Local modifications could not be reapplied (warning only).
        DEPLOYMENT_FAILED: Deployment engine reported failure (fatal, after restoration).
    """

    MANIFEST_PARSE = "ManifestParse"
    DELTA_GENERATION_FAILED = "DeltaGenerationFailed"
    RESTORE_CONFLICT = "RestoreConflict"
    DEPLOYMENT_FAILED = "DeploymentFailed"


class HelperError(Exception):
    """Base exception for fatal sfhelper errors."""

    kind: ErrorKind | None = None
