"""Module entry point so `python -m dexarb.cli` executes the Typer app."""

from __future__ import annotations

from . import app


def main() -> None:
    """Invoke the CLI application."""

    app()


if __name__ == "__main__":  # pragma: no cover - module execution
    main()
