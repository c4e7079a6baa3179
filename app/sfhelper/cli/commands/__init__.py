"""CLI commands for sfhelper.

This package contains all subcommand implementations.
"""

from sfhelper.cli.commands import config, deploy, recover, scan

__all__ = ["config", "deploy", "recover", "scan"]
