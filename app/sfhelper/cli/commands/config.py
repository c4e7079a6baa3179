"""Config command implementation.

Shows and initializes the sfhelper configuration file.
"""

from typing import Annotated

import tomli_w
import typer
from rich.markup import escape

from sfhelper.core.config import (
    ConfigError,
    HelperConfig,
    config_to_dict,
    load_config,
    save_config,
)
from sfhelper.core.paths import get_config_path
from sfhelper.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show or create the configuration file.",
    no_args_is_help=True,
)


@app.command()
def show() -> None:
    """Show the effective configuration."""
    path = get_config_path()
    try:
        config = load_config(path)
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    console.print(f"[muted]# {escape(str(path))}[/]")
    if not path.exists():
        print_info("No config file found; showing defaults.")
    console.print(escape(tomli_w.dumps(config_to_dict(config))), highlight=False)


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config file."),
    ] = False,
) -> None:
    """Write a config file with default values."""
    path = get_config_path()
    if path.exists() and not force:
        print_error(f"Config file already exists: {escape(str(path))}")
        print_info("Use --force to overwrite it.")
        raise typer.Exit(code=1)

    try:
        saved = save_config(HelperConfig(), path)
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    print_success(f"Config written to {escape(str(saved))}")
