"""The ``sfhelper`` command and its global options."""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from sfhelper import __version__
from sfhelper.cli.commands import config, deploy, recover, scan
from sfhelper.utils.formatting import err_console

app = typer.Typer(
    name="sfhelper",
    help="Deploy destructive changes without dependency errors.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Handle --version."""
    if not value:
        return
    typer.echo(f"sfhelper version {__version__}")
    raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr through Rich.

    Only warnings and errors are shown unless ``verbose`` is set, in which
    case git and sf invocations are logged at DEBUG level too.
    """
    handler = RichHandler(console=err_console, show_path=verbose, rich_tracebacks=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log git and sf invocations.")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Only print errors and the final result.")
    ] = False,
) -> None:
    """sfhelper - Deploy destructive changes without dependency errors.

    Lines referencing deleted components are commented out for the
    deployment and put back afterwards, whatever the outcome.
    """
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.update(verbose=verbose, quiet=quiet)


app.add_typer(deploy.app, name="deploy")
app.add_typer(scan.app, name="scan")
app.add_typer(recover.app, name="recover")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
