"""Scan command implementation.

Reports which source files reference the components of a deletion
manifest, without modifying anything.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from sfhelper.core.config import ConfigError, load_config
from sfhelper.core.manifest import ManifestParseError, read_deletion_manifest
from sfhelper.core.scanner import DependencyScanner, ScanError
from sfhelper.models.component import DeletionManifest, DependencyMatch
from sfhelper.utils.formatting import (
    console,
    create_component_table,
    create_dependency_table,
    print_error,
    print_info,
    print_success,
)

app = typer.Typer(
    help="Find source files referencing components in a deletion manifest.",
    invoke_without_command=True,
)


class OutputFormat(str, Enum):
    """Output format options for scan."""

    TABLE = "table"
    JSON = "json"


@app.callback(invoke_without_command=True)
def scan_dependencies(
    ctx: typer.Context,
    manifest_path: Annotated[
        Path,
        typer.Option(
            "--manifest",
            help="Path to a destructiveChanges.xml file.",
        ),
    ],
    source_dir: Annotated[
        Path | None,
        typer.Option(
            "--source-dir",
            "-s",
            help="Source directory to scan [default: force-app].",
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
) -> None:
    """Show files that would be neutralized for a deletion manifest.

    Nothing is modified: this is the dependency search of the deploy
    command on its own.

    Examples:
        sfhelper scan --manifest destructiveChanges.xml
        sfhelper scan --manifest out/destructiveChanges.xml -s src --format json
    """
    if ctx.invoked_subcommand is not None:
        return

    if source_dir is None:
        try:
            source_dir = Path(load_config().source_dir)
        except ConfigError as e:
            print_error(escape(str(e)))
            raise typer.Exit(code=1) from e

    if not manifest_path.is_file():
        print_error(f"Manifest not found: {escape(str(manifest_path))}")
        raise typer.Exit(code=1)

    try:
        manifest = read_deletion_manifest(manifest_path)
        matches = DependencyScanner(source_dir).scan(manifest)
    except (ManifestParseError, ScanError) as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    if output_format == OutputFormat.JSON:
        _print_json(manifest, matches)
        return

    _print_table(manifest, matches)


def _print_table(manifest: DeletionManifest, matches: tuple[DependencyMatch, ...]) -> None:
    """Display the manifest and its dependent files as tables."""
    if manifest.is_empty:
        print_info("No components to delete.")
        return

    console.print(create_component_table(manifest))
    if not matches:
        print_success("No dependencies found.")
        return

    console.print(create_dependency_table(matches))
    console.print(
        f"\n[dim]{len(matches)} file(s) reference {len(manifest)} deleted component(s)[/dim]"
    )


def _print_json(manifest: DeletionManifest, matches: tuple[DependencyMatch, ...]) -> None:
    """Display the manifest and its dependent files as JSON."""
    data = {
        "components": [
            {"name": component.name, "type": component.kind}
            for component in manifest.components
        ],
        "dependencies": [
            {"file": str(match.file), "members": match.sorted_members}
            for match in matches
        ],
    }
    console.print_json(json.dumps(data))
