"""
Tether Console Output
======================

Rich-powered terminal display of a :class:`~tether.core.models.BinarySummary`:
one information panel and one record table per slice, with records the
bridge could not classify highlighted.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from shared.console import TetherConsole

from tether.core.models import BinaryFormat, BinarySummary, EntrySummary, SliceSummary, to_plain

_FIELD_PREVIEW: int = 4
_VALUE_PREVIEW: int = 48


def _preview(value: Any) -> str:
    plain = to_plain(value)
    if isinstance(plain, int) and not isinstance(plain, bool):
        text = f"0x{plain:x}"
    else:
        text = str(plain)
    if len(text) > _VALUE_PREVIEW:
        text = text[:_VALUE_PREVIEW - 3] + "..."
    return text


def _fields_column(entry: EntrySummary) -> str:
    items = list(entry.fields.items())
    shown = [f"{name}={_preview(value)}" for name, value in items[:_FIELD_PREVIEW]]
    if len(items) > _FIELD_PREVIEW:
        shown.append(f"(+{len(items) - _FIELD_PREVIEW} more)")
    return escape(", ".join(shown))


class TetherConsoleOutput:
    """Rich terminal display for Tether binary summaries.

    Usage::

        output = TetherConsoleOutput()
        output.display(summary)
    """

    def __init__(self, console: TetherConsole | None = None) -> None:
        self._console: TetherConsole = console or TetherConsole()

    def display(self, summary: BinarySummary, version: str = "1.0.0") -> None:
        """Display the complete summary."""
        self._console.banner(version)
        for index, slice_ in enumerate(summary.slices):
            title = "Slice" if summary.format is BinaryFormat.MACHO else "File"
            self._console.section(f"{title} {index}: {slice_.arch}")
            self.display_header(summary, slice_)
            self.display_entries(slice_)

    def display_header(self, summary: BinarySummary, slice_: SliceSummary) -> None:
        """Display file and slice metadata panel."""
        lines: list[str] = [
            f"[bold]File:[/bold]       {escape(summary.path)}",
            f"[bold]Size:[/bold]       {summary.size:,} bytes ({summary.size / 1024:.1f} KiB)",
            f"[bold]Format:[/bold]     {slice_.format.value.upper()}",
            f"[bold]Arch:[/bold]       {slice_.arch} ({slice_.bits}-bit, {slice_.endian})",
            f"[bold]File Type:[/bold]  {slice_.file_type}",
        ]
        panel = Panel(
            "\n".join(lines),
            title="[bold bright_cyan]Binary Information[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(1, 2),
        )
        self._console.print(panel)
        self._console.blank()

    def display_entries(self, slice_: SliceSummary) -> None:
        """Display the classified load commands (or notes) of one slice."""
        label = "Load Commands" if slice_.format is BinaryFormat.MACHO else "Notes"
        tbl = Table(
            title=label,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=False,
            padding=(0, 1),
        )
        tbl.add_column("#", style="dim", width=4, justify="right")
        tbl.add_column("Type", style="bold", min_width=14)
        tbl.add_column("Variant")
        tbl.add_column("Raw", justify="right")
        tbl.add_column("Size", justify="right")
        tbl.add_column("Offset", justify="right")
        tbl.add_column("Fields", ratio=1, overflow="ellipsis")

        for entry in slice_.entries:
            variant = entry.variant
            if variant.startswith("Unknown"):
                variant = f"[tether.unknown]{variant}[/tether.unknown]"
            tbl.add_row(
                str(entry.index),
                escape(entry.type_name),
                variant,
                f"0x{entry.discriminator:x}",
                f"{entry.size:,}",
                f"0x{entry.offset:x}",
                _fields_column(entry),
            )

        self._console.print(tbl)
        if slice_.unknown_count:
            self._console.warning(f"{slice_.unknown_count} unrecognised record(s)")
        self._console.blank()
