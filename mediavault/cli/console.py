"""Console output helpers.

Provides a shared Rich console and error panels for MediaVaultError.
"""

from __future__ import annotations

import traceback
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from mediavault.core.exceptions import MediaVaultError

# Shared console instance
_console: Console | None = None

# Verbose mode flag (set by CLI --verbose flag)
_verbose_mode: bool = False


def get_console() -> Console:
    """Get shared console instance (lazy-loaded)."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_verbose_mode(enabled: bool) -> None:
    """When enabled, error panels are followed by the full traceback."""
    global _verbose_mode
    _verbose_mode = enabled


def is_verbose_mode() -> bool:
    return _verbose_mode


def tip(message: str) -> None:
    get_console().print(f"  [dim]Tip: {message}[/dim]")


class ErrorRenderer:
    """Renders errors as a panel with "Why" and "How to fix" sections."""

    @staticmethod
    def render(exc: BaseException, context: str = "") -> None:
        """Print an error panel for exc.

        Args:
            exc: Exception to render
            context: Optional context line (e.g. "While processing img-1")
        """
        if isinstance(exc, MediaVaultError):
            code = exc.error_code
            why = exc.why_it_happened
            how_to_fix = list(exc.how_to_fix)
        else:
            code = "MV-ERR-000"
            why = "An unexpected error occurred"
            how_to_fix = ["Run with --verbose for the full traceback"]

        content = ErrorRenderer._build_content(str(exc), context, why, how_to_fix)
        get_console().print(
            Panel(
                content,
                title=f"[bold red]Error: {code}[/bold red]",
                border_style="red",
                padding=(1, 2),
            )
        )

        if is_verbose_mode():
            get_console().print(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                markup=False,
            )

    @staticmethod
    def _build_content(
        message: str, context: str, why: str, how_to_fix: List[str]
    ) -> Text:
        text = Text()
        if context:
            text.append(f"{context}\n\n", style="dim")
        text.append(f"{message}\n\n", style="bold")
        text.append("Why it happened:\n", style="yellow")
        text.append(f"  {why}\n\n")
        text.append("How to fix:\n", style="green")
        for step in how_to_fix:
            text.append(f"  - {step}\n")
        return text
