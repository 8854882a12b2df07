"""ELF bridge: the file header and classified notes."""

from tether.engine.elf_format import NoteType, type_owner, type_to_section
from tether.elf.binary import Binary, parse
from tether.elf.dispatch import classify, known_note_types
from tether.elf.notes import (
    AndroidIdent,
    BuildId,
    CoreAuxv,
    Header,
    Note,
    NoteAbi,
    UnknownNote,
)

__all__ = [
    "AndroidIdent",
    "Binary",
    "BuildId",
    "CoreAuxv",
    "Header",
    "Note",
    "NoteAbi",
    "NoteType",
    "UnknownNote",
    "classify",
    "known_note_types",
    "parse",
    "type_owner",
    "type_to_section",
]
