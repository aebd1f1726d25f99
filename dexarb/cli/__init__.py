"""dexarb CLI package exposing the Typer application."""

from __future__ import annotations

from .core import CLIApp, app, configure_logging, log

# Import command modules for side-effect registration
from . import commands
from .commands.notify import notify_test
from .commands.run import run
from .commands.scan import scan
from .commands.venues import venues

__all__ = [
    "CLIApp",
    "app",
    "commands",
    "configure_logging",
    "log",
    "notify_test",
    "run",
    "scan",
    "venues",
]
