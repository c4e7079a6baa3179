"""Delta generators for the supported deploy modes.

This module exports the generator classes and a factory selecting one
by DeployMode.
"""

from pathlib import Path

from sfhelper.delta.base import DeltaGenerationError, DeltaGenerator
from sfhelper.delta.git_diff import GitDeltaGenerator
from sfhelper.delta.org_snapshot import OrgSnapshotDeltaGenerator
from sfhelper.models.deploy import DeployMode


def get_delta_generator(
    mode: DeployMode,
    *,
    base_ref: str,
    target_org: str,
    source_dir: Path,
    cwd: Path | None = None,
    timeout: float | None = None,
) -> DeltaGenerator:
    """Get the delta generator for a deploy mode.

    Args:
        mode: Selected deploy mode.
        base_ref: Base revision (git-diff mode only).
        target_org: Target org alias (org-snapshot mode only).
        source_dir: Local source directory (org-snapshot mode only).
        cwd: Project directory the CLI runs in.
        timeout: Maximum seconds per CLI call.

    Returns:
        DeltaGenerator instance for the mode.
    """
    if mode == DeployMode.ORG_SNAPSHOT:
        return OrgSnapshotDeltaGenerator(target_org, source_dir, cwd=cwd, timeout=timeout)
    return GitDeltaGenerator(base_ref, cwd=cwd, timeout=timeout)


__all__ = [
    "DeltaGenerationError",
    "DeltaGenerator",
    "GitDeltaGenerator",
    "OrgSnapshotDeltaGenerator",
    "get_delta_generator",
]
