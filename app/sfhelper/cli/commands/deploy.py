"""Deploy command implementation.

Runs the full pipeline: generate the delta package, neutralize
references to deleted components, deploy, and restore the source tree.
"""

import contextlib
import tempfile
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from sfhelper.core.config import ConfigError, HelperConfig, load_config
from sfhelper.core.errors import HelperError
from sfhelper.core.orchestrator import DeploymentFailedError, DeploymentOrchestrator
from sfhelper.core.paths import ensure_work_dir
from sfhelper.core.pipeline import Pipeline, PipelineReport
from sfhelper.core.snapshot import TerminationRequested
from sfhelper.delta import DeltaGenerationError, get_delta_generator
from sfhelper.deploy.sf import SfDeployEngine
from sfhelper.models.deploy import DeployMode, TestLevel
from sfhelper.utils.formatting import console, print_error, print_info, print_warning

app = typer.Typer(
    help="Deploy changes, neutralizing dependencies on deleted components.",
    invoke_without_command=True,
)


@contextlib.contextmanager
def _work_dir(kept: Path | None) -> Iterator[Path]:
    """Provide a directory for the delta package.

    Without a kept directory a temporary one is used and removed afterwards.
    """
    if kept is not None:
        yield kept
        return
    with tempfile.TemporaryDirectory(prefix="sfhelper-") as tmp:
        yield Path(tmp)


def _print_header(target_org: str, mode: DeployMode, base_branch: str) -> None:
    console.print("[bold_header]Starting Salesforce Deploy Helper[/]")
    console.print(f"Target organization: [info]{escape(target_org)}[/]")
    console.print(f"Deployment mode: [info]{mode.value}[/]")
    if mode == DeployMode.GIT_DIFF:
        console.print(f"Base branch for diff: [info]{escape(base_branch)}[/]")


def _print_warnings(report: PipelineReport) -> None:
    if report.warnings:
        print_warning(
            f"{len(report.warnings)} restore warning(s) reported above; "
            "manual reconciliation may be required."
        )


def _load_config_or_exit() -> HelperConfig:
    try:
        return load_config()
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def deploy_changes(
    ctx: typer.Context,
    target_org: Annotated[
        str | None,
        typer.Option(
            "--target-org",
            "-o",
            help="Alias or username of the target org.",
        ),
    ] = None,
    base_branch: Annotated[
        str | None,
        typer.Option(
            "--base-branch",
            "-b",
            help="Base revision for git-diff mode [default: main].",
        ),
    ] = None,
    mode: Annotated[
        DeployMode | None,
        typer.Option(
            "--mode",
            "-m",
            help="How to build the delta: git-diff or org-snapshot.",
            case_sensitive=False,
        ),
    ] = None,
    source_dir: Annotated[
        Path | None,
        typer.Option(
            "--source-dir",
            "-s",
            help="Source directory to scan [default: force-app].",
        ),
    ] = None,
    test_level: Annotated[
        TestLevel | None,
        typer.Option(
            "--test-level",
            "-t",
            help="Apex test level [default: RunLocalTests].",
            case_sensitive=False,
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Validate the deployment without saving it to the org.",
        ),
    ] = False,
    keep_work_dir: Annotated[
        bool,
        typer.Option(
            "--keep-work-dir",
            help="Keep the generated delta package after the run.",
        ),
    ] = False,
) -> None:
    """Deploy changes including component deletions.

    Files that reference a deleted component are commented out for the
    duration of the deployment and restored afterwards, whether the
    deployment succeeds or fails. Uncommitted changes are stashed while
    the deployment runs.

    Examples:
        sfhelper deploy -o my-sandbox
        sfhelper deploy -o my-sandbox -b develop
        sfhelper deploy -o my-sandbox --mode org-snapshot
        sfhelper deploy -o prod --test-level RunAllTestsInOrg --dry-run
    """
    if ctx.invoked_subcommand is not None:
        return

    quiet = bool(ctx.obj and ctx.obj.get("quiet"))
    config = _load_config_or_exit()

    org = target_org or config.target_org
    if not org:
        print_error("Target organization alias is required.")
        print_info("Pass --target-org or set 'target_org' in the config file.")
        raise typer.Exit(code=1)

    selected_mode = mode or config.mode
    base = base_branch or config.base_branch
    source_root = source_dir or Path(config.source_dir)
    level = test_level or config.test_level

    if not source_root.is_dir():
        print_error(f"Source directory not found: {escape(str(source_root))}")
        raise typer.Exit(code=1)

    generator = get_delta_generator(
        selected_mode,
        base_ref=base,
        target_org=org,
        source_dir=source_root,
        timeout=config.delta_timeout_seconds,
    )
    engine = SfDeployEngine(timeout=config.deploy_timeout_seconds)
    if not (generator.is_available() and engine.is_available()):
        print_error("Salesforce CLI (sf) is not available.")
        print_info("Install it from https://developer.salesforce.com/tools/salesforcecli.")
        raise typer.Exit(code=1)

    kept_dir: Path | None = None
    if keep_work_dir:
        try:
            kept_dir = ensure_work_dir(datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ"))
        except RuntimeError as e:
            print_error(escape(str(e)))
            raise typer.Exit(code=1) from e

    orchestrator = DeploymentOrchestrator(
        engine,
        target_org=org,
        test_level=level,
        dry_run=dry_run,
    )
    pipeline = Pipeline(
        generator,
        orchestrator,
        source_root,
        work_tree=Path.cwd(),
        stash_message=config.stash_message,
        quiet=quiet,
    )

    if not quiet:
        _print_header(org, selected_mode, base)

    try:
        with _work_dir(kept_dir) as work_dir:
            pipeline.run(work_dir)
    except DeltaGenerationError as e:
        print_error(escape(str(e)))
        if e.output:
            console.print(escape(e.output), style="muted", highlight=False)
        raise typer.Exit(code=1) from e
    except DeploymentFailedError as e:
        _print_warnings(pipeline.report)
        print_error(escape(str(e)))
        if pipeline.report.neutralized:
            print_info("Source files were restored to their original state.")
        raise typer.Exit(code=1) from e
    except HelperError as e:
        _print_warnings(pipeline.report)
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e
    except TerminationRequested as e:
        print_error(f"{e}; run aborted after restoring source files.")
        raise typer.Exit(code=128 + e.signum) from e
    except KeyboardInterrupt as e:
        print_error("Interrupted; run aborted after restoring source files.")
        raise typer.Exit(code=130) from e

    _print_warnings(pipeline.report)
    if keep_work_dir and pipeline.report.delta is not None:
        print_info(f"Delta package kept in {escape(str(pipeline.report.delta.output_dir))}")
