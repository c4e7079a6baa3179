"""Org-snapshot delta generation.

Retrieves the complete metadata of the target org and compares it with
the local source directory, so the deployment brings the org in line
with local source regardless of git history.
"""

from pathlib import Path

from sfhelper.delta.base import DeltaGenerator
from sfhelper.models.deploy import DeltaResult, DeployMode


class OrgSnapshotDeltaGenerator(DeltaGenerator):
    """Delta generator diffing a retrieved org snapshot against local source.

    Retrieving all metadata can take a long time on large orgs.

    Attributes:
        target_org: Alias or username of the org to snapshot.
        source_dir: Local source directory compared against the snapshot.
    """

    SNAPSHOT_DIRNAME = "org_snapshot"
    DIFF_DIRNAME = "diff"

    def __init__(
        self,
        target_org: str,
        source_dir: Path,
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(cwd=cwd, timeout=timeout)
        self.target_org = target_org
        self.source_dir = source_dir

    @property
    def mode(self) -> DeployMode:
        """Return ORG_SNAPSHOT as the deploy mode."""
        return DeployMode.ORG_SNAPSHOT

    def generate(self, output_dir: Path) -> DeltaResult:
        """Retrieve the org snapshot, then diff it against local source."""
        self._prepare_dir(output_dir)
        snapshot_dir = self._prepare_dir(output_dir / self.SNAPSHOT_DIRNAME)
        diff_dir = self._prepare_dir(output_dir / self.DIFF_DIRNAME)

        self._run_sf(
            [
                "project",
                "retrieve",
                "start",
                "-m",
                "all",
                "-r",
                str(snapshot_dir),
                "-o",
                self.target_org,
            ],
            f"Snapshot retrieval from '{self.target_org}'",
        )
        self._run_sf(
            [
                "project",
                "deploy",
                "diff",
                "--source-dir",
                str(self.source_dir),
                "--output-dir",
                str(diff_dir),
                "--target-org",
                self.target_org,
            ],
            "Snapshot comparison",
        )

        additions = self._require_manifest(diff_dir / "package.xml")
        destructive = self._first_existing(diff_dir / "destructiveChanges.xml")
        return DeltaResult(
            additions_manifest=additions,
            destructive_manifest=destructive,
            output_dir=output_dir,
        )
