"""Presentation of parsed binaries: summaries, Rich tables and JSON."""

from tether.output.console import TetherConsoleOutput
from tether.output.summary import summarize

__all__ = ["TetherConsoleOutput", "summarize"]
