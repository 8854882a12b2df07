"""
ELF Note Parser
================

Struct-based parser for the parts of the Executable and Linkable Format
the bridge exposes: the file header and the notes.  Both 32-bit (ELF32)
and 64-bit (ELF64) variants in either byte order are supported.

The parser extracts:
    - ELF header (class, endianness, type, machine, entry point)
    - Section headers and their names (``.shstrtab``)
    - Program headers / segments
    - Notes from ``SHT_NOTE`` sections, or from ``PT_NOTE`` segments when
      the file has no section table

Every note is classified from its owner name and ``n_type`` (see
:func:`tether.engine.elf_format.convert_type`).  Note types with a
structured description (ABI tag, Android ident, core auxv) are decoded
into their dedicated record; a note of such a type whose description is
too short to decode makes the whole parse fail.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - System V Application Binary Interface, Edition 4.1, "Note Section".
    - Linux man page: elf(5).
"""

from __future__ import annotations

import struct

from shared.config import ELFConfig
from shared.logger import TetherLogger, get_logger

from tether.engine.elf_format import NoteType, convert_type
from tether.engine.native import (
    NativeAndroidIdent,
    NativeCoreAuxv,
    NativeElfBinary,
    NativeElfHeader,
    NativeNote,
    NativeNoteAbi,
)


# ---------------------------------------------------------------------------
# ELF Constants
# ---------------------------------------------------------------------------

ELF_MAGIC: bytes = b"\x7fELF"

ELFCLASS32: int = 1
ELFCLASS64: int = 2

ELFDATA2LSB: int = 1  # Little-endian
ELFDATA2MSB: int = 2  # Big-endian

SHT_NOTE: int = 7
SHT_NOBITS: int = 8

PT_NOTE: int = 4

_ET_NAMES: dict[int, str] = {
    0: "NONE",
    1: "REL",
    2: "EXEC",
    3: "DYN",
    4: "CORE",
}

_EM_NAMES: dict[int, str] = {
    0: "None",
    2: "SPARC",
    3: "x86",
    8: "MIPS",
    20: "PowerPC",
    21: "PowerPC64",
    40: "ARM",
    62: "x86_64",
    183: "AArch64",
    243: "RISC-V",
}

# Elf_Nhdr: namesz, descsz, type
_NOTE_HEADER_SIZE: int = 12


def is_elf(data: bytes) -> bool:
    return len(data) >= 16 and data[:4] == ELF_MAGIC


def machine_name(machine: int) -> str:
    return _EM_NAMES.get(machine, f"unknown({machine})")


def file_type_name(file_type: int) -> str:
    return _ET_NAMES.get(file_type, f"0x{file_type:x}")


# ---------------------------------------------------------------------------
# Internal parsed structures
# ---------------------------------------------------------------------------

class _ELFHeader:
    """Parsed ELF header fields."""
    __slots__ = (
        "ei_class", "ei_data", "e_type", "e_machine", "e_entry",
        "e_phoff", "e_shoff", "e_phentsize", "e_phnum",
        "e_shentsize", "e_shnum", "e_shstrndx",
    )

    def __init__(self) -> None:
        self.ei_class: int = 0
        self.ei_data: int = 0
        self.e_type: int = 0
        self.e_machine: int = 0
        self.e_entry: int = 0
        self.e_phoff: int = 0
        self.e_shoff: int = 0
        self.e_phentsize: int = 0
        self.e_phnum: int = 0
        self.e_shentsize: int = 0
        self.e_shnum: int = 0
        self.e_shstrndx: int = 0


class _SectionHeader:
    """Parsed section header entry."""
    __slots__ = (
        "sh_name", "sh_type", "sh_offset", "sh_size", "sh_addralign", "name",
    )

    def __init__(self) -> None:
        self.sh_name: int = 0
        self.sh_type: int = 0
        self.sh_offset: int = 0
        self.sh_size: int = 0
        self.sh_addralign: int = 0
        self.name: str = ""


class _ProgramHeader:
    """Parsed program header (segment) entry."""
    __slots__ = ("p_type", "p_offset", "p_filesz", "p_align")

    def __init__(self) -> None:
        self.p_type: int = 0
        self.p_offset: int = 0
        self.p_filesz: int = 0
        self.p_align: int = 0


# ---------------------------------------------------------------------------
# ELF Parser
# ---------------------------------------------------------------------------

class ELFParser:
    """Struct-based ELF header and note parser.

    Usage::

        parser = ELFParser(raw_bytes)
        if parser.parse():
            elf = parser.binary
            for note in elf.notes:
                print(note.name, note.type)
    """

    def __init__(
        self,
        data: bytes,
        config: ELFConfig | None = None,
        logger: TetherLogger | None = None,
    ) -> None:
        self._data: bytes = data
        self._config: ELFConfig = config or ELFConfig()
        self._log: TetherLogger = logger or get_logger("engine")
        self._header: _ELFHeader = _ELFHeader()
        self._sections: list[_SectionHeader] = []
        self._program_headers: list[_ProgramHeader] = []
        self._notes: list[NativeNote] = []
        self._endian: str = "<"
        self._is_64bit: bool = False
        self._parsed: bool = False

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    def parse(self) -> bool:
        """Parse the ELF binary.

        Returns:
            ``True`` if parsing succeeded, ``False`` on invalid data.
        """
        if not is_elf(self._data):
            self._log.warning("Not an ELF file (bad magic)")
            return False

        try:
            with self._log.operation("elf_parse"):
                self._parse_elf_header()
                self._parse_section_headers()
                self._resolve_section_names()
                self._parse_program_headers()
                self._parse_notes()
        except (struct.error, IndexError, ValueError) as exc:
            self._log.warning("Malformed ELF: %s", exc)
            return False

        self._parsed = True
        return True

    @property
    def binary(self) -> NativeElfBinary:
        """The record graph built by :meth:`parse`."""
        if not self._parsed:
            raise ValueError("parse() has not succeeded")
        h = self._header
        return NativeElfBinary(
            header=NativeElfHeader(
                identity_class=h.ei_class,
                identity_data=h.ei_data,
                file_type=h.e_type,
                machine=h.e_machine,
                entrypoint=h.e_entry,
                numberof_sections=len(self._sections),
                numberof_segments=len(self._program_headers),
            ),
            notes=self._notes,
        )

    # ------------------------------------------------------------------ #
    #  ELF header parsing
    # ------------------------------------------------------------------ #

    def _parse_elf_header(self) -> None:
        """Parse the ELF identification and file header."""
        h = self._header
        h.ei_class = self._data[4]
        h.ei_data = self._data[5]
        if h.ei_class not in (ELFCLASS32, ELFCLASS64):
            raise ValueError(f"invalid ELF class {h.ei_class}")
        if h.ei_data not in (ELFDATA2LSB, ELFDATA2MSB):
            raise ValueError(f"invalid ELF data encoding {h.ei_data}")

        self._is_64bit = h.ei_class == ELFCLASS64
        self._endian = "<" if h.ei_data == ELFDATA2LSB else ">"

        if self._is_64bit:
            # ELF64 header: offsets 16..63
            fmt = f"{self._endian}HHIQQQIHHHHHH"
        else:
            # ELF32 header: offsets 16..51
            fmt = f"{self._endian}HHIIIIIHHHHHH"
        (
            h.e_type, h.e_machine, _version, h.e_entry,
            h.e_phoff, h.e_shoff, _flags, _ehsize,
            h.e_phentsize, h.e_phnum, h.e_shentsize, h.e_shnum,
            h.e_shstrndx,
        ) = struct.unpack_from(fmt, self._data, 16)

    # ------------------------------------------------------------------ #
    #  Section header parsing
    # ------------------------------------------------------------------ #

    def _parse_section_headers(self) -> None:
        """Parse all section headers from the section header table."""
        h = self._header
        if h.e_shoff == 0 or h.e_shnum == 0:
            return

        if self._is_64bit:
            # Elf64_Shdr: 64 bytes
            fmt = f"{self._endian}IIQQQQIIQQ"
        else:
            # Elf32_Shdr: 40 bytes
            fmt = f"{self._endian}IIIIIIIIII"
        entry_size = struct.calcsize(fmt)

        for i in range(h.e_shnum):
            offset = h.e_shoff + i * h.e_shentsize
            if offset + entry_size > len(self._data):
                break
            sh = _SectionHeader()
            (
                sh.sh_name, sh.sh_type, _flags, _addr,
                sh.sh_offset, sh.sh_size, _link, _info,
                sh.sh_addralign, _entsize,
            ) = struct.unpack_from(fmt, self._data, offset)
            self._sections.append(sh)

    def _resolve_section_names(self) -> None:
        """Resolve section names from the section header string table."""
        h = self._header
        if h.e_shstrndx == 0 or h.e_shstrndx >= len(self._sections):
            return

        strtab_sh = self._sections[h.e_shstrndx]
        strtab_end = strtab_sh.sh_offset + strtab_sh.sh_size
        if strtab_end > len(self._data):
            return

        strtab_data = self._data[strtab_sh.sh_offset:strtab_end]
        for sh in self._sections:
            sh.name = self._read_cstring(strtab_data, sh.sh_name)

    # ------------------------------------------------------------------ #
    #  Program header parsing
    # ------------------------------------------------------------------ #

    def _parse_program_headers(self) -> None:
        """Parse all program headers (segments)."""
        h = self._header
        if h.e_phoff == 0 or h.e_phnum == 0:
            return

        for i in range(h.e_phnum):
            offset = h.e_phoff + i * h.e_phentsize
            ph = _ProgramHeader()

            if self._is_64bit:
                # Elf64_Phdr: 56 bytes
                fmt = f"{self._endian}IIQQQQQQ"
                if offset + struct.calcsize(fmt) > len(self._data):
                    break
                (
                    ph.p_type, _flags, ph.p_offset, _vaddr,
                    _paddr, ph.p_filesz, _memsz, ph.p_align,
                ) = struct.unpack_from(fmt, self._data, offset)
            else:
                # Elf32_Phdr: 32 bytes
                fmt = f"{self._endian}IIIIIIII"
                if offset + struct.calcsize(fmt) > len(self._data):
                    break
                (
                    ph.p_type, ph.p_offset, _vaddr, _paddr,
                    ph.p_filesz, _memsz, _flags, ph.p_align,
                ) = struct.unpack_from(fmt, self._data, offset)

            self._program_headers.append(ph)

    # ------------------------------------------------------------------ #
    #  Notes
    # ------------------------------------------------------------------ #

    def _parse_notes(self) -> None:
        """Collect notes from note sections, else from note segments."""
        note_sections = [
            sh for sh in self._sections
            if sh.sh_type == SHT_NOTE and sh.sh_size > 0
        ]
        if note_sections:
            for sh in note_sections:
                self._parse_note_area(sh.sh_offset, sh.sh_size, sh.sh_addralign, sh.name)
            return

        if not self._config.notes_from_segments:
            return
        for ph in self._program_headers:
            if ph.p_type == PT_NOTE and ph.p_filesz > 0:
                self._parse_note_area(ph.p_offset, ph.p_filesz, ph.p_align, "")

    def _parse_note_area(self, start: int, size: int, align: int, section_name: str) -> None:
        """Decode consecutive ``Elf_Nhdr`` entries in ``[start, start + size)``."""
        end = start + size
        if end > len(self._data):
            raise ValueError(f"note area at 0x{start:x} runs past end of file")
        # GNU property notes are 8-aligned in ELF64; everything else is 4-aligned.
        alignment = 8 if align == 8 else 4

        offset = start
        while offset + _NOTE_HEADER_SIZE <= end:
            namesz, descsz, n_type = struct.unpack_from(f"{self._endian}III", self._data, offset)
            name_start = offset + _NOTE_HEADER_SIZE
            desc_start = name_start + _align(namesz, 4)
            desc_end = desc_start + descsz
            if desc_end > end:
                raise ValueError(f"note at 0x{offset:x} overflows its container")

            name = self._data[name_start:name_start + namesz].rstrip(b"\x00").decode(
                "ascii", errors="replace"
            )
            description = self._data[desc_start:desc_end]
            note_size = _align(desc_end - offset, alignment)

            self._notes.append(self._build_note(
                name=name,
                n_type=n_type,
                description=description,
                size=note_size,
                offset=offset,
                section_name=section_name,
            ))
            offset += note_size

    def _build_note(
        self,
        *,
        name: str,
        n_type: int,
        description: bytes,
        size: int,
        offset: int,
        section_name: str,
    ) -> NativeNote:
        note_type = convert_type(self._header.e_type, n_type, name)
        common = {
            "name": name,
            "type": note_type,
            "original_type": n_type,
            "description": description,
            "size": size,
            "offset": offset,
            "section_name": section_name,
        }
        e = self._endian

        if note_type is NoteType.GNU_ABI_TAG:
            if len(description) < 16:
                raise ValueError(f"ABI tag note at 0x{offset:x} is truncated")
            abi, major, minor, patch = struct.unpack_from(f"{e}IIII", description, 0)
            return NativeNoteAbi(**common, abi=abi, version=(major, minor, patch))

        if note_type is NoteType.ANDROID_IDENT:
            if len(description) < 4:
                raise ValueError(f"Android ident note at 0x{offset:x} is truncated")
            (sdk,) = struct.unpack_from(f"{e}I", description, 0)
            return NativeAndroidIdent(
                **common,
                sdk_version=sdk,
                ndk_version=self._read_cstring(description[4:68], 0),
                ndk_build_number=self._read_cstring(description[68:132], 0),
            )

        if note_type is NoteType.CORE_AUXV:
            word = "Q" if self._is_64bit else "I"
            pair = struct.calcsize(f"{e}{word}{word}")
            values: list[tuple[int, int]] = []
            for pos in range(0, len(description) - pair + 1, pair):
                a_type, a_val = struct.unpack_from(f"{e}{word}{word}", description, pos)
                if a_type == 0:  # AT_NULL
                    break
                values.append((a_type, a_val))
            return NativeCoreAuxv(**common, values=values)

        return NativeNote(**common)

    # ------------------------------------------------------------------ #
    #  Utility methods
    # ------------------------------------------------------------------ #

    @staticmethod
    def _read_cstring(data: bytes, offset: int) -> str:
        """Read a null-terminated C string from a byte buffer."""
        if offset < 0 or offset >= len(data):
            return ""
        end = data.find(b"\x00", offset)
        if end == -1:
            end = len(data)
        return data[offset:end].decode("ascii", errors="replace")


def _align(value: int, alignment: int) -> int:
    return (value + alignment - 1) & ~(alignment - 1)
