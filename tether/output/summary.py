"""
Binary Summaries
=================

Reduce a parsed root container to the serialisable
:class:`~tether.core.models.BinarySummary` the front end renders or dumps
as JSON.  Every entry goes through the same dispatch as library callers
use, so the summary shows the variant each record classifies to.
"""

from __future__ import annotations

from tether import elf, macho
from tether.core.models import BinaryFormat, BinarySummary, EntrySummary, SliceSummary


def _macho_slice(binary: macho.Binary) -> SliceSummary:
    header = binary.header
    entries = [
        EntrySummary(
            index=index,
            variant=type(command).__name__,
            type_name=command.command_type,
            discriminator=command.base().discriminator,
            size=command.base().size,
            offset=command.base().offset,
            fields={name: getattr(command, name) for name in command.fields},
        )
        for index, command in enumerate(binary.commands)
    ]
    return SliceSummary(
        format=BinaryFormat.MACHO,
        arch=header.cpu_name,
        bits=64 if header.is_64 else 32,
        endian="big" if header.is_big_endian else "little",
        file_type=header.file_type_name,
        entries=entries,
    )


def _elf_slice(binary: elf.Binary) -> SliceSummary:
    header = binary.header
    entries = [
        EntrySummary(
            index=index,
            variant=type(note).__name__,
            type_name=f"{note.base().name}:{note.base().type}",
            discriminator=note.base().original_type,
            size=note.base().size,
            offset=note.base().offset,
            fields={name: getattr(note, name) for name in note.fields},
        )
        for index, note in enumerate(binary.notes)
    ]
    return SliceSummary(
        format=BinaryFormat.ELF,
        arch=header.machine_name,
        bits=64 if header.is_64 else 32,
        endian="little" if header.identity_data == 1 else "big",
        file_type=header.file_type_name,
        entries=entries,
    )


def summarize(root: macho.FatBinary | elf.Binary, path: str = "", size: int = 0) -> BinarySummary:
    """Build the summary of a live root container."""
    if isinstance(root, macho.FatBinary):
        return BinarySummary(
            path=path,
            size=size,
            format=BinaryFormat.MACHO,
            slices=[_macho_slice(binary) for binary in root],
        )
    return BinarySummary(
        path=path,
        size=size,
        format=BinaryFormat.ELF,
        slices=[_elf_slice(root)],
    )
