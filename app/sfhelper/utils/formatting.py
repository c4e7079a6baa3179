"""Console output shared by the CLI commands and the pipeline.

Normal output goes to stdout; warnings, errors and log records go to
stderr so ``scan --format json`` stays machine-readable.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sfhelper.core.theme import get_theme

if TYPE_CHECKING:
    from sfhelper.models.component import DeletionManifest, DependencyMatch

# Hex theme colors need truecolor; leave detection to Rich when piped.
_COLOR_SYSTEM = "truecolor" if sys.stdout.isatty() else None

console = Console(theme=get_theme(), color_system=_COLOR_SYSTEM)
err_console = Console(theme=get_theme(), stderr=True, color_system=_COLOR_SYSTEM)


def print_info(message: str) -> None:
    console.print(message, style="info")


def print_success(message: str) -> None:
    console.print(message, style="success")


def print_warning(message: str) -> None:
    """Print ``Warning: message`` to stderr."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print ``Error: message`` to stderr."""
    err_console.print(f"[error]Error:[/] {message}")


def print_step(step: int, total: int, message: str) -> None:
    """Print a ``[step/total]`` pipeline stage header."""
    console.print(f"\n[bold_header]{escape(f'[{step}/{total}]')}[/] {message}")


def _table(title: str, row_styles: list[str] | None = None) -> Table:
    return Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=row_styles,
    )


def create_component_table(
    manifest: DeletionManifest,
    title: str = "Components to Delete",
) -> Table:
    """Build a Type/Component table for a deletion manifest.

    A name declared under several types is listed once, with the first
    type it appeared under.
    """
    table = _table(title)
    table.add_column("Type", style="muted")
    table.add_column("Component", no_wrap=True)

    listed: set[str] = set()
    for component in manifest.components:
        if component.name not in listed:
            listed.add(component.name)
            table.add_row(escape(component.kind or "-"), f"[deleted]{escape(component.name)}[/]")
    return table


def create_dependency_table(
    matches: Iterable[DependencyMatch],
    title: str = "Dependent Files",
) -> Table:
    """Build a File/References table from scanner matches."""
    table = _table(title, row_styles=["", "on grey7"])
    table.add_column("File", style="file", overflow="fold")
    table.add_column("References")

    for match in matches:
        references = ", ".join(f"[deleted]{escape(name)}[/]" for name in match.sorted_members)
        table.add_row(escape(str(match.file)), references)
    return table
