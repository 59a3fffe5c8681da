"""
shipwright CLI - Typer application.

Entry point::

    shipwright --help
    python -m shipwright --help
"""

from shipwright.cli.app import app

__all__ = ["app"]
