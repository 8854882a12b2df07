"""
Tether -- Object-Format Bridge
===============================

Tether exposes the record graph an object-format engine builds (Mach-O
load commands, segments, sections and symbols; ELF notes) as safe value
types.  Every value derived from a parsed file is anchored to the root
container that owns the graph: once the root is closed, any access to a
derived value raises :class:`~tether.core.errors.ReleasedBinaryError`.

Capabilities:
    - Closed, discriminator-driven dispatch of load commands and notes
      into typed variants, with an Unknown fallback keeping the raw value
    - ``base()`` capability shared by every variant
    - Lazy, restartable collection views
    - Fat (universal) Mach-O binaries, with slices movable out of the fat
      container
    - Click command line with Rich tables and JSON output

References:
    - Apple. ``<mach-o/loader.h>``.
    - System V Application Binary Interface, "Note Section".
    - LIEF. Library to Instrument Executable Formats.
"""

from __future__ import annotations

from pathlib import Path

from shared.config import TetherConfig, get_config
from shared.logger import get_logger

from tether import elf, macho
from tether.core.errors import (
    MovedHandleError,
    NativeTypeError,
    ReleasedBinaryError,
    TetherError,
)
from tether.core.source import Source
from tether.engine import is_elf, is_macho

__version__ = "1.0.0"
__all__ = [
    "MovedHandleError",
    "NativeTypeError",
    "ReleasedBinaryError",
    "TetherError",
    "elf",
    "macho",
    "parse",
]

_log = get_logger("tether")


def _sniff(source: Source) -> bytes:
    """Return the first bytes of *source*, enough to identify its format."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source[:16])
    path = Path(source)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "rb") as fh:
        return fh.read(16)


def parse(
    source: Source, config: TetherConfig | None = None,
) -> macho.FatBinary | elf.Binary | None:
    """Parse a Mach-O or ELF file, picking the format from its magic.

    Returns:
        :class:`tether.macho.FatBinary` or :class:`tether.elf.Binary`, or
        ``None`` when the format is not recognised or parsing fails.

    Raises:
        FileNotFoundError: If *source* names a path that does not exist.
    """
    config = config or get_config()
    head = _sniff(source)
    if is_macho(head):
        return macho.parse(source, config)
    if is_elf(head):
        return elf.parse(source, config)
    _log.warning("Unrecognised file format (magic %s)", head[:4].hex())
    return None
