"""
Tether Console Interface
=========================

Rich-powered console abstraction providing a single presentation layer
for the Tether command-line front end.

The class wraps :class:`rich.console.Console` and adds convenience methods
for section banners and severity-coloured messages, all
with consistent styling.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

# ---------------------------------------------------------------------------
# Theme -- consistent palette across all Tether output
# ---------------------------------------------------------------------------
_TETHER_THEME = Theme(
    {
        "tether.banner": "bold bright_cyan",
        "tether.section": "bold bright_magenta",
        "tether.success": "bold green",
        "tether.warning": "bold yellow",
        "tether.error": "bold red",
        "tether.info": "bold bright_blue",
        "tether.dim": "dim white",
        "tether.highlight": "bold bright_white",
        "tether.unknown": "bold yellow",
    }
)


class TetherConsole:
    """Unified console interface for the Tether front end.

    Usage::

        con = TetherConsole()
        con.banner("1.0.0")
        con.section("Load Commands")
        con.success("Parsed 42 commands")
    """

    def __init__(self, *, quiet: bool = False, record: bool = False) -> None:
        """Initialise the console.

        Args:
            quiet:  Suppress all output (useful in library / test mode).
            record: Enable Rich recording for HTML / text export.
        """
        self._console = Console(
            theme=_TETHER_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
        )

    @property
    def rich(self) -> Console:
        """Direct access to the underlying Rich Console instance."""
        return self._console

    # ------------------------------------------------------------------ #
    #  Banner / section header
    # ------------------------------------------------------------------ #

    def banner(self, version: str = "1.0.0") -> None:
        """Display a compact title panel."""
        title = Text.from_markup(
            "[tether.banner]Tether[/tether.banner] "
            "[tether.dim]object-format bridge[/tether.dim]  "
            f"[tether.dim]v{version}[/tether.dim]"
        )
        self._console.print(Panel(title, border_style="bright_cyan", expand=False))

    def section(self, title: str) -> None:
        """Print a prominent section header."""
        self._console.rule(
            f"  {title}  ",
            style="tether.section",
            characters="─",
        )
        self._console.print()

    # ------------------------------------------------------------------ #
    #  Message helpers (severity-coloured)
    # ------------------------------------------------------------------ #

    def success(self, message: str) -> None:
        """Print a success message."""
        self._console.print(
            f"[tether.success][✔] SUCCESS:[/tether.success] {message}"
        )

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self._console.print(
            f"[tether.warning][⚠] WARNING:[/tether.warning] {message}"
        )

    def error(self, message: str) -> None:
        """Print an error message."""
        self._console.print(
            f"[tether.error][✘] ERROR:[/tether.error] {message}"
        )

    def info(self, message: str) -> None:
        """Print an informational message."""
        self._console.print(
            f"[tether.info][ℹ] INFO:[/tether.info] {message}"
        )

    # ------------------------------------------------------------------ #
    #  Utility
    # ------------------------------------------------------------------ #

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Proxy to :meth:`rich.console.Console.print`."""
        self._console.print(*args, **kwargs)

    def blank(self, count: int = 1) -> None:
        """Print *count* blank lines."""
        for _ in range(count):
            self._console.print()

    def export_text(self) -> str:
        """Export recorded console output as plain text (requires ``record=True``)."""
        return self._console.export_text()
