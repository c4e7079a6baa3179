"""Recover command implementation.

Cleans up after a run that was killed before it could restore the
source tree: neutralized lines are restored from their markers and the
temporary stash entry is popped.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from sfhelper.core.config import ConfigError, load_config
from sfhelper.core.recovery import find_helper_stash, find_neutralized_files, recover
from sfhelper.utils.formatting import (
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Restore the source tree after an interrupted deploy.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def recover_sources(
    ctx: typer.Context,
    source_dir: Annotated[
        Path | None,
        typer.Option(
            "--source-dir",
            "-s",
            help="Source directory to restore [default: force-app].",
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Undo the leftovers of an interrupted deploy.

    Examples:
        sfhelper recover
        sfhelper recover -s src --yes
    """
    if ctx.invoked_subcommand is not None:
        return

    try:
        config = load_config()
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    source_root = source_dir or Path(config.source_dir)
    if not source_root.is_dir():
        print_error(f"Source directory not found: {escape(str(source_root))}")
        raise typer.Exit(code=1)

    work_tree = Path.cwd()
    files = find_neutralized_files(source_root)
    stash_ref = find_helper_stash(work_tree, config.stash_message)

    if not files and stash_ref is None:
        print_success("Nothing to recover.")
        return

    if files:
        console.print(f"Found neutralized lines in {len(files)} file(s):")
        for path in files:
            console.print(f"  [file]{escape(str(path))}[/]")
    if stash_ref is not None:
        console.print(f"Found stash entry [info]{escape(stash_ref)}[/] to reapply.")

    if not yes:
        confirmed = typer.confirm("\nRestore these changes?", default=True)
        if not confirmed:
            print_info("Aborted.")
            raise typer.Exit(code=0)

    result = recover(source_root, work_tree, config.stash_message)

    if result.restored_files:
        print_success(
            f"Restored {result.restored_lines} line(s) in {len(result.restored_files)} file(s)."
        )
    if result.stash_error is not None:
        print_warning(escape(f"git stash pop failed: {result.stash_error}"))
        print_info("Resolve the conflict and run 'git stash pop' manually.")
        raise typer.Exit(code=1)
    if result.stash_ref is not None:
        print_success(f"Reapplied stash entry {escape(result.stash_ref)}.")
