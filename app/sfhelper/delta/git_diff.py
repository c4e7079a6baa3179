"""Git-based delta generation.

Uses the sfdx-git-delta plugin (``sf sgd:source:delta``) to compute
the components changed between a base revision and HEAD.
"""

from pathlib import Path

from sfhelper.delta.base import DeltaGenerator
from sfhelper.models.deploy import DeltaResult, DeployMode


class GitDeltaGenerator(DeltaGenerator):
    """Delta generator diffing two git revisions.

    Output layout written by the plugin:
        <out>/package/package.xml
        <out>/destructiveChanges/destructiveChanges.xml

    Attributes:
        base_ref: Revision to compare against (e.g., 'main').
        head_ref: Revision holding the changes (default 'HEAD').
    """

    def __init__(
        self,
        base_ref: str,
        head_ref: str = "HEAD",
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(cwd=cwd, timeout=timeout)
        self.base_ref = base_ref
        self.head_ref = head_ref

    @property
    def mode(self) -> DeployMode:
        """Return GIT_DIFF as the deploy mode."""
        return DeployMode.GIT_DIFF

    def generate(self, output_dir: Path) -> DeltaResult:
        """Run sgd between base_ref and head_ref into output_dir."""
        self._prepare_dir(output_dir)
        self._run_sf(
            [
                "sgd:source:delta",
                "--to",
                self.head_ref,
                "--from",
                self.base_ref,
                "--generate-delta",
                "--output-dir",
                str(output_dir),
            ],
            f"Delta generation against '{self.base_ref}'",
        )

        additions = self._require_manifest(output_dir / "package" / "package.xml")
        destructive = self._first_existing(
            output_dir / "destructiveChanges" / "destructiveChanges.xml",
            output_dir / "destructiveChanges.xml",
        )
        return DeltaResult(
            additions_manifest=additions,
            destructive_manifest=destructive,
            output_dir=output_dir,
        )
