"""Core Typer application and logging bootstrap for the dexarb CLI."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import typer

from dexarb.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class CLIApp(typer.Typer):
    """Typer application that lists commands on a bare or unknown invocation."""

    def command_names(self) -> list[str]:
        return sorted(cmd.name for cmd in self.registered_commands if cmd.name)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        args = kwargs.get("args")
        argv = list(sys.argv[1:] if args is None else args)
        names = self.command_names()
        if not argv or (not argv[0].startswith("-") and argv[0] not in names):
            typer.echo("Usage: python -m dexarb.cli [--help] COMMAND [ARGS]")
            typer.echo("Commands:")
            for name in names:
                typer.echo(f"  {name}")
            raise SystemExit(0 if not argv else 1)
        return super().__call__(*args, **kwargs)


def configure_logging(cfg: Any = settings) -> logging.Logger:
    """Attach console and optional rotating file handlers to ``dexarb``.

    Idempotent: repeated calls leave the existing handlers in place.
    """

    log = logging.getLogger("dexarb")
    if getattr(log, "_configured", False):
        return log
    log.setLevel(getattr(logging, str(cfg.log_level).upper(), logging.INFO))
    ch = logging.StreamHandler()
    ch.setLevel(log.level)
    ch.setFormatter(logging.Formatter(LOG_FORMAT))
    log.addHandler(ch)

    log_path = getattr(cfg, "log_file", None)
    if log_path:
        try:
            directory = os.path.dirname(log_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            fh = RotatingFileHandler(
                log_path,
                maxBytes=int(getattr(cfg, "log_max_bytes", 1_000_000) or 1_000_000),
                backupCount=int(getattr(cfg, "log_backup_count", 3) or 3),
            )
        except OSError as exc:
            log.warning("file logging disabled (%s): %s", log_path, exc)
        else:
            fh.setLevel(log.level)
            fh.setFormatter(logging.Formatter(LOG_FORMAT))
            log.addHandler(fh)
    setattr(log, "_configured", True)
    return log


app = CLIApp(add_completion=False)
log = configure_logging()

__all__ = ["CLIApp", "app", "configure_logging", "log"]
