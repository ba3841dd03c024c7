"""MediaVault CLI (Typer + Rich)."""

from mediavault.cli.main import app, cli_main

__all__ = ["app", "cli_main"]
