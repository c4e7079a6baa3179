"""CLI package for sfhelper.

This package contains the Typer application and all subcommands.
"""

from sfhelper.cli.main import app

__all__ = ["app"]
