"""Destructive deployment pipeline.

Sequences the stages of one run:

    delta generation -> deletion manifest -> dependency scan
    -> (snapshot guard: neutralize -> deploy -> restore) -> result

The pipeline is single-pass. Each stage completes before the next one
starts, and no state is entered twice. When dependencies are found, the
deployment runs inside a SnapshotGuard so the source tree is restored
before the deployment result is evaluated.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from rich.markup import escape

from sfhelper.core.manifest import count_manifest_members, read_deletion_manifest
from sfhelper.core.neutralizer import SourceNeutralizer
from sfhelper.core.orchestrator import DeploymentFailedError, DeploymentOrchestrator
from sfhelper.core.scanner import DependencyScanner
from sfhelper.core.snapshot import DEFAULT_STASH_MESSAGE, SnapshotGuard
from sfhelper.delta.base import DeltaGenerator
from sfhelper.models.component import DeletionManifest, DependencyMatch
from sfhelper.models.deploy import DeltaResult, DeploymentRequest, DeploymentResult
from sfhelper.utils.formatting import (
    console,
    create_component_table,
    create_dependency_table,
    print_info,
    print_step,
    print_success,
)

logger = logging.getLogger(__name__)

TOTAL_STEPS = 5


class PipelineState(str, Enum):
    """States of a pipeline run. FAILED is reachable from any state."""

    INIT = "init"
    DELTA_READY = "delta_ready"
    MANIFEST_PARSED = "manifest_parsed"
    SCANNED = "scanned"
    NEUTRALIZING = "neutralizing"
    DEPLOYING = "deploying"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.INIT: frozenset({PipelineState.DELTA_READY}),
    PipelineState.DELTA_READY: frozenset({PipelineState.MANIFEST_PARSED}),
    PipelineState.MANIFEST_PARSED: frozenset({PipelineState.SCANNED}),
    PipelineState.SCANNED: frozenset({PipelineState.NEUTRALIZING, PipelineState.DEPLOYING}),
    PipelineState.NEUTRALIZING: frozenset({PipelineState.DEPLOYING}),
    PipelineState.DEPLOYING: frozenset({PipelineState.DONE}),
    PipelineState.DONE: frozenset(),
    PipelineState.FAILED: frozenset(),
}


@dataclass
class PipelineReport:
    """What one pipeline run found and did.

    Attributes:
        states: States visited, in order (starts with INIT).
        delta: Manifests produced by the delta generator.
        manifest: Parsed deletion manifest.
        matches: Files referencing deleted components.
        neutralized_files: Files that were neutralized (and restored).
        request: Request handed to the deployment engine.
        result: Deployment outcome.
        warnings: Non-fatal problems (restore conflicts).
    """

    states: list[PipelineState] = field(default_factory=lambda: [PipelineState.INIT])
    delta: DeltaResult | None = None
    manifest: DeletionManifest = field(default_factory=DeletionManifest)
    matches: tuple[DependencyMatch, ...] = ()
    neutralized_files: list[Path] = field(default_factory=list)
    request: DeploymentRequest | None = None
    result: DeploymentResult | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def state(self) -> PipelineState:
        """Current (last visited) state."""
        return self.states[-1]

    @property
    def neutralized(self) -> bool:
        """Check if a neutralization episode took place."""
        return PipelineState.NEUTRALIZING in self.states


class Pipeline:
    """Runs one destructive deployment end to end.

    Attributes:
        delta_generator: Produces the additions and destructive manifests.
        orchestrator: Builds and issues the deployment.
        source_root: Source directory scanned and neutralized.
        work_tree: Git work tree guarded during neutralization.
    """

    def __init__(
        self,
        delta_generator: DeltaGenerator,
        orchestrator: DeploymentOrchestrator,
        source_root: Path,
        *,
        work_tree: Path | None = None,
        stash_message: str = DEFAULT_STASH_MESSAGE,
        quiet: bool = False,
    ) -> None:
        self.delta_generator = delta_generator
        self.orchestrator = orchestrator
        self.source_root = source_root
        self.work_tree = work_tree if work_tree is not None else source_root
        self._stash_message = stash_message
        self._quiet = quiet
        self.report = PipelineReport()

    @property
    def state(self) -> PipelineState:
        """Current state of the run."""
        return self.report.state

    def run(self, work_dir: Path) -> PipelineReport:
        """Execute the pipeline once.

        Args:
            work_dir: Directory for the delta package.

        Returns:
            PipelineReport of a successful run.

        Raises:
            RuntimeError: If the pipeline was already run.
            DeltaGenerationError: If delta generation fails (nothing was mutated).
            ManifestParseError: If the deletion manifest is malformed (nothing was mutated).
            ScanError: If the source directory cannot be scanned.
            SnapshotError: If local modifications cannot be stashed.
            DeploymentFailedError: If the deployment fails (source already restored).
        """
        if self.state != PipelineState.INIT:
            msg = f"Pipeline already ran (state: {self.state.value})"
            raise RuntimeError(msg)

        try:
            delta = self._generate_delta(work_dir)
            manifest = self._read_manifest(delta)
            matches = self._scan(manifest)
            request = self.orchestrator.build_request(delta)
            self.report.request = request

            if matches:
                result = self._neutralize_and_deploy(manifest, matches, request)
            else:
                self._step(4, "Neutralizing dependencies...")
                self._info("Nothing to neutralize.")
                result = self._deploy(request)
        except BaseException:
            self._transition(PipelineState.FAILED)
            raise

        self.report.result = result
        if result.failed:
            self._transition(PipelineState.FAILED)
            raise DeploymentFailedError(result)

        self._transition(PipelineState.DONE)
        if not self._quiet:
            print_success("\nDeployment successful!")
        return self.report

    # -- stages ---------------------------------------------------------------

    def _generate_delta(self, work_dir: Path) -> DeltaResult:
        self._step(1, f"Generating delta package ({self.delta_generator.mode.value})...")
        delta = self.delta_generator.generate(work_dir)
        self.report.delta = delta
        self._transition(PipelineState.DELTA_READY)

        additions = count_manifest_members(delta.additions_manifest)
        self._info(f"Delta package generated in '{delta.output_dir}' ({additions} component(s)).")
        return delta

    def _read_manifest(self, delta: DeltaResult) -> DeletionManifest:
        self._step(2, "Analyzing destructive changes...")
        manifest = read_deletion_manifest(delta.destructive_manifest)
        self.report.manifest = manifest
        self._transition(PipelineState.MANIFEST_PARSED)

        if manifest.path is None:
            self._info("No destructive changes found.")
        elif manifest.is_empty:
            self._info("No components to delete.")
        elif not self._quiet:
            console.print(f"Found {len(manifest)} component(s) to be deleted:")
            console.print(create_component_table(manifest))
        return manifest

    def _scan(self, manifest: DeletionManifest) -> tuple[DependencyMatch, ...]:
        self._step(3, "Searching for dependencies in source code...")
        matches = DependencyScanner(self.source_root).scan(manifest)
        self.report.matches = matches
        self._transition(PipelineState.SCANNED)

        if manifest.is_empty:
            self._info("Nothing to search for.")
        elif not matches:
            self._info("No dependencies found.")
        elif not self._quiet:
            console.print(f"Found dependencies in {len(matches)} file(s):")
            console.print(create_dependency_table(matches))
        return matches

    def _neutralize_and_deploy(
        self,
        manifest: DeletionManifest,
        matches: tuple[DependencyMatch, ...],
        request: DeploymentRequest,
    ) -> DeploymentResult:
        self._step(4, "Neutralizing dependencies...")
        self._transition(PipelineState.NEUTRALIZING)

        neutralizer = SourceNeutralizer(manifest)
        guard = SnapshotGuard(self.work_tree, neutralizer, self._stash_message)
        try:
            with guard:
                records = neutralizer.apply(matches)
                self.report.neutralized_files = [r.file for r in records]
                self._info(f"Commented out dependencies in {len(records)} file(s).")
                result = self._deploy(request)
        finally:
            self.report.warnings.extend(guard.warnings)

        self._info("Source files restored.")
        return result

    def _deploy(self, request: DeploymentRequest) -> DeploymentResult:
        self._step(5, f"Deploying to org '{request.target_org}'...")
        self._transition(PipelineState.DEPLOYING)
        result = self.orchestrator.run(request)
        if result.output and not self._quiet:
            console.print(escape(result.output), style="muted", highlight=False)
        return result

    # -- helpers --------------------------------------------------------------

    def _transition(self, target: PipelineState) -> None:
        current = self.state
        if current == target == PipelineState.FAILED:
            return
        if target != PipelineState.FAILED and target not in _TRANSITIONS[current]:
            msg = f"Invalid pipeline transition {current.value} -> {target.value}"
            raise RuntimeError(msg)
        if target in self.report.states:
            msg = f"Pipeline state {target.value} entered twice"
            raise RuntimeError(msg)
        logger.debug("Pipeline %s -> %s", current.value, target.value)
        self.report.states.append(target)

    def _step(self, step: int, message: str) -> None:
        if not self._quiet:
            print_step(step, TOTAL_STEPS, message)

    def _info(self, message: str) -> None:
        if not self._quiet:
            print_info(escape(message))
