"""ELF root container: the header and the notes of one parsed file."""

from __future__ import annotations

from typing import Any

from shared.config import TetherConfig, get_config
from shared.logger import get_logger

from tether.core.handle import Anchor
from tether.core.source import Source, read_source
from tether.core.views import CollectionView
from tether.engine.elf_format import NoteType
from tether.engine.elf_parser import ELFParser
from tether.engine.native import NativeElfBinary
from tether.elf.dispatch import classify
from tether.elf.notes import Header, Note

_log = get_logger("elf")


class Binary:
    """Root owning container of one ELF file.

    Usage::

        with tether.elf.parse("/bin/ls") as elf:
            for note in elf.notes:
                print(note.base().type, note)
    """

    __slots__ = ("_anchor",)

    def __init__(self, native: NativeElfBinary, label: str = "elf") -> None:
        self._anchor = Anchor(native, label)

    @property
    def _native(self) -> NativeElfBinary:
        return self._anchor.root  # type: ignore[return-value]

    @property
    def anchor(self) -> Anchor:
        return self._anchor

    @property
    def released(self) -> bool:
        return not self._anchor.alive

    @property
    def header(self) -> Header:
        return Header.from_native(self._anchor.lend(self._native.header))

    @property
    def notes(self) -> CollectionView[Note]:
        """Every note, in file order, classified into its variant."""
        return CollectionView(self._anchor, lambda: self._native.notes, classify, label="notes")

    def get(self, note_type: NoteType) -> Note | None:
        """Return the first note of *note_type*."""
        for note in self.notes:
            if note.type is note_type:
                return note
        return None

    def has(self, note_type: NoteType) -> bool:
        return self.get(note_type) is not None

    def close(self) -> None:
        """Release the record graph.  Idempotent."""
        self._anchor.release()

    def __enter__(self) -> Binary:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        if self.released:
            return f"<Binary {self._anchor.label} released>"
        return f"<Binary {self._anchor.label} {len(self._native.notes)} notes>"


def parse(source: Source, config: TetherConfig | None = None) -> Binary | None:
    """Parse an ELF file (path or raw bytes).

    Returns:
        The root container, or ``None`` when the data is not a valid ELF
        file or exceeds the configured size limit.

    Raises:
        FileNotFoundError: If *source* names a path that does not exist.
    """
    config = config or get_config()
    data, label = read_source(source, config.global_settings.max_file_size, _log)
    if data is None:
        return None

    with _log.timed(f"parse {label}"):
        parser = ELFParser(data, config.elf, get_logger("engine"))
        if not parser.parse():
            _log.error("Failed to parse %s as ELF", label)
            return None
    return Binary(parser.binary, label)
