"""
Tether CLI -- Object-Format Bridge
===================================

Click-based command-line interface.  Parses one Mach-O or ELF file,
classifies every load command (or note) through the bridge, and prints
the result as Rich tables or JSON.

Usage::

    # Tables
    tether /usr/lib/dyld

    # JSON to stdout
    tether /usr/lib/dyld --json

    # Debug logging to a file
    tether ./a.out --verbose --log-file tether.log

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from shared.config import TetherConfig, get_config
from shared.console import TetherConsole
from shared.logger import build_file_handler, get_logger

import tether
from tether.output import TetherConsoleOutput, summarize

_COMPONENTS: tuple[str, ...] = ("tether", "cli", "engine", "macho", "elf")

_file_handler: logging.Handler | None = None


def _configure_logging(config: TetherConfig, verbose: bool, log_file: str | None) -> None:
    """Apply the logging settings to every component logger.

    All components write through one rotating handler per log file.
    """
    global _file_handler
    settings = config.global_settings
    level = "DEBUG" if verbose else settings.log_level
    target = log_file or settings.log_file

    previous = _file_handler
    _file_handler = None
    if target is not None:
        _file_handler = build_file_handler(
            target, log_level=level, json_logs=settings.log_json,
        )
    for component in _COMPONENTS:
        get_logger(component).configure(log_level=level, file_handler=_file_handler)
    if previous is not None:
        previous.close()


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@click.command("tether")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output the summary as JSON to stdout.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write logs to this file.",
)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="TOML configuration file.",
)
@click.version_option(tether.__version__, prog_name="tether")
def tether_cli(
    path: str,
    json_output: bool,
    verbose: bool,
    log_file: str | None,
    config_path: str | None,
) -> None:
    """Tether -- Object-Format Bridge.

    Parse a Mach-O (thin or fat) or ELF file and show how each load
    command or note classifies.  Records the bridge does not recognise
    are listed as Unknown with their raw discriminator.

    PATH is the path to the binary file.

    Examples:

    \b
        tether /usr/lib/dyld
        tether ./libfoo.so --json
    """
    console = TetherConsole()
    config = get_config(config_path)
    _configure_logging(config, verbose, log_file)
    logger = get_logger("cli")

    file_path = Path(path)
    root = tether.parse(file_path, config)
    if root is None:
        console.error(f"Could not parse {file_path} as Mach-O or ELF.")
        sys.exit(1)

    with root:
        summary = summarize(root, path=str(file_path.resolve()), size=file_path.stat().st_size)
    logger.info("Summarised %d slice(s) of %s", len(summary.slices), file_path)

    if json_output or config.global_settings.output_format == "json":
        click.echo(summary.model_dump_json(indent=2))
        return

    TetherConsoleOutput(console=console).display(summary, version=tether.__version__)
    total = sum(len(s.entries) for s in summary.slices)
    unknown = sum(s.unknown_count for s in summary.slices)
    if unknown:
        console.info(f"Records: {total} ({unknown} unrecognised)")
    else:
        console.success(f"Records: {total}, all recognised")


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for ``python -m tether``."""
    tether_cli()


if __name__ == "__main__":
    main()
