"""
Note Dispatch
==============

Maps the engine-computed :class:`~tether.engine.elf_format.NoteType` of a
note to the variant that wraps it.  Types with a structured description
get their own variant; every other recognised type wraps as a plain
:class:`~tether.elf.notes.Note`.  ``NoteType.UNKNOWN`` is never in the
table and always yields :class:`~tether.elf.notes.UnknownNote`.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from shared.logger import get_logger

from tether.core.errors import NativeTypeError
from tether.core.handle import Handle
from tether.engine.elf_format import NoteType
from tether.engine.native import NativeNote
from tether.elf.notes import AndroidIdent, BuildId, CoreAuxv, Note, NoteAbi, UnknownNote

_log = get_logger("elf")

_VARIANTS: tuple[type[Note], ...] = (NoteAbi, BuildId, AndroidIdent, CoreAuxv)


def _build_table(variants: Iterable[type[Note]]) -> Mapping[NoteType, type[Note]]:
    table: dict[NoteType, type[Note]] = {}
    for variant in variants:
        for note_type in variant.note_types:
            owner = table.get(note_type)
            if owner is not None:
                raise ValueError(
                    f"note type {note_type.value} claimed by both "
                    f"{owner.__name__} and {variant.__name__}"
                )
            table[note_type] = variant
    for note_type in NoteType:
        if note_type is not NoteType.UNKNOWN:
            table.setdefault(note_type, Note)
    return MappingProxyType(table)


_TABLE: Mapping[NoteType, type[Note]] = _build_table(_VARIANTS)


def classify(handle: Handle[NativeNote]) -> Note:
    """Wrap the note behind *handle* in its variant.

    Raises:
        NativeTypeError: If the note type is known but the engine record
            is not the type that variant wraps.
    """
    native = handle.get()
    variant = _TABLE.get(native.type)
    if variant is None:
        _log.debug(
            "Unrecognised note %r type 0x%x at offset 0x%x",
            native.name, native.original_type, native.offset,
        )
        return UnknownNote.from_native(handle)
    if not isinstance(native, variant.native_type):
        raise NativeTypeError(native.type, variant.native_type, type(native))
    return variant.from_native(handle)


def known_note_types() -> frozenset[NoteType]:
    """Every note type with a registered variant."""
    return frozenset(_TABLE)
