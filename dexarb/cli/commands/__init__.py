"""Grouped Typer command modules for the dexarb CLI."""

from __future__ import annotations

from . import notify, run, scan, venues

__all__ = ["notify", "run", "scan", "venues"]
