"""Byte-level builders for synthetic Mach-O and ELF images."""

from __future__ import annotations

import struct
from typing import Callable

MH_MAGIC: int = 0xFEEDFACE
MH_MAGIC_64: int = 0xFEEDFACF
FAT_MAGIC: int = 0xCAFEBABE
FAT_MAGIC_64: int = 0xCAFEBABF

CPU_TYPE_X86: int = 7
CPU_TYPE_X86_64: int = 0x01000007
CPU_TYPE_ARM64: int = 0x0100000C

MH_EXECUTE: int = 0x2
MH_DYLIB: int = 0x6

LC_SEGMENT: int = 0x1
LC_SYMTAB: int = 0x2
LC_UNIXTHREAD: int = 0x5
LC_DYSYMTAB: int = 0xB
LC_LOAD_DYLIB: int = 0xC
LC_ID_DYLIB: int = 0xD
LC_LOAD_DYLINKER: int = 0xE
LC_SUB_FRAMEWORK: int = 0x12
LC_LOAD_WEAK_DYLIB: int = 0x80000018
LC_SEGMENT_64: int = 0x19
LC_UUID: int = 0x1B
LC_RPATH: int = 0x8000001C
LC_CODE_SIGNATURE: int = 0x1D
LC_ENCRYPTION_INFO_64: int = 0x2C
LC_DYLD_INFO_ONLY: int = 0x80000022
LC_VERSION_MIN_MACOSX: int = 0x24
LC_FUNCTION_STARTS: int = 0x26
LC_MAIN: int = 0x80000028
LC_DATA_IN_CODE: int = 0x29
LC_SOURCE_VERSION: int = 0x2A
LC_BUILD_VERSION: int = 0x32
LC_DYLD_CHAINED_FIXUPS: int = 0x80000034

ET_EXEC: int = 2
ET_DYN: int = 3
ET_CORE: int = 4
SHT_NOTE: int = 7
SHT_STRTAB: int = 3
PT_NOTE: int = 4


def pack_version(major: int, minor: int = 0, patch: int = 0) -> int:
    return (major << 16) | (minor << 8) | patch


def _pad(data: bytes, alignment: int) -> bytes:
    return data + b"\x00" * (-len(data) % alignment)


# ---------------------------------------------------------------------------
# Mach-O
# ---------------------------------------------------------------------------

class MachOBuilder:
    """Assemble a thin Mach-O slice one load command at a time.

    Every method returns ``self``; :meth:`build` lays out the header, the
    load commands and, when :meth:`symtab` was used, the symbol and string
    tables right after the commands.
    """

    def __init__(
        self,
        *,
        is_64: bool = True,
        big_endian: bool = False,
        cputype: int | None = None,
        filetype: int = MH_EXECUTE,
    ) -> None:
        self.is_64 = is_64
        self.e = ">" if big_endian else "<"
        self.cputype = cputype if cputype is not None else (
            CPU_TYPE_X86_64 if is_64 else CPU_TYPE_X86
        )
        self.filetype = filetype
        self._commands: list[tuple[int, Callable[[int], bytes]]] = []
        self._symbols: list[tuple[str, int, int, int, int]] = []

    @property
    def header_size(self) -> int:
        return 32 if self.is_64 else 28

    def raw(self, cmd: int, payload: bytes = b"", cmdsize: int | None = None) -> MachOBuilder:
        """Append a command with an arbitrary payload (padded to 8 bytes)."""
        body = _pad(payload, 8) if cmdsize is None else payload
        size = 8 + len(body) if cmdsize is None else cmdsize
        blob = struct.pack(f"{self.e}II", cmd, size) + body
        self._commands.append((len(blob), lambda _trailer: blob))
        return self

    def segment(
        self,
        name: str,
        sections: tuple[str, ...] = (),
        *,
        vmaddr: int = 0x100000000,
        vmsize: int = 0x4000,
    ) -> MachOBuilder:
        if self.is_64:
            cmd, seg_fmt, sect_fmt = LC_SEGMENT_64, "16sQQQQiiII", "16s16sQQIIIIIIII"
        else:
            cmd, seg_fmt, sect_fmt = LC_SEGMENT, "16sIIIIiiII", "16s16sIIIIIIIII"
        payload = struct.pack(
            f"{self.e}{seg_fmt}",
            name.encode(), vmaddr, vmsize, 0, vmsize, 7, 5, len(sections), 0,
        )
        for index, sect in enumerate(sections):
            fields: list[int] = [vmaddr + index * 0x100, 0x100, 0x1000 + index * 0x100, 4, 0, 0, 0x80000400, 0, 0]
            if self.is_64:
                fields.append(0)
            payload += struct.pack(f"{self.e}{sect_fmt}", sect.encode(), name.encode(), *fields)
        return self.raw(cmd, payload)

    def symtab(self, symbols: list[tuple[str, int, int, int, int]]) -> MachOBuilder:
        """Add ``LC_SYMTAB``; each symbol is ``(name, type, sect, desc, value)``."""
        self._symbols = list(symbols)

        def render(trailer: int) -> bytes:
            nsyms = len(self._symbols)
            entsize = 16 if self.is_64 else 12
            strtab = self._strtab()[0]
            return struct.pack(
                f"{self.e}IIIIII",
                LC_SYMTAB, 24, trailer, nsyms, trailer + nsyms * entsize, len(strtab),
            )

        self._commands.append((24, render))
        return self

    def dylib(self, name: str, cmd: int = LC_LOAD_DYLIB,
              current: int = pack_version(1, 2, 3),
              compat: int = pack_version(1)) -> MachOBuilder:
        payload = struct.pack(f"{self.e}IIII", 24, 2, current, compat) + name.encode() + b"\x00"
        return self.raw(cmd, payload)

    def lc_str(self, cmd: int, text: str) -> MachOBuilder:
        """A command whose only field is an ``lc_str`` (dylinker, rpath, ...)."""
        return self.raw(cmd, struct.pack(f"{self.e}I", 12) + text.encode() + b"\x00")

    def uuid(self, value: bytes) -> MachOBuilder:
        return self.raw(LC_UUID, value)

    def main(self, entry: int, stack: int = 0) -> MachOBuilder:
        return self.raw(LC_MAIN, struct.pack(f"{self.e}QQ", entry, stack))

    def linkedit(self, cmd: int, offset: int, size: int) -> MachOBuilder:
        return self.raw(cmd, struct.pack(f"{self.e}II", offset, size))

    def _strtab(self) -> tuple[bytes, list[int]]:
        table = b"\x00"
        offsets: list[int] = []
        for name, *_ in self._symbols:
            offsets.append(len(table))
            table += name.encode() + b"\x00"
        return table, offsets

    def build(self) -> bytes:
        cmds_size = sum(size for size, _ in self._commands)
        trailer_offset = self.header_size + cmds_size
        body = b"".join(render(trailer_offset) for _, render in self._commands)

        trailer = b""
        if self._symbols:
            strtab, offsets = self._strtab()
            fmt = f"{self.e}IBBHQ" if self.is_64 else f"{self.e}IBBHI"
            for (_, n_type, n_sect, n_desc, n_value), strx in zip(self._symbols, offsets):
                trailer += struct.pack(fmt, strx, n_type, n_sect, n_desc, n_value)
            trailer += strtab

        if self.is_64:
            header = struct.pack(
                f"{self.e}IiiIIIII",
                MH_MAGIC_64, self.cputype, 3, self.filetype,
                len(self._commands), cmds_size, 0, 0,
            )
        else:
            header = struct.pack(
                f"{self.e}IiiIIII",
                MH_MAGIC, self.cputype, 3, self.filetype,
                len(self._commands), cmds_size, 0,
            )
        return header + body + trailer


def fat(*slices: bytes, is_64: bool = False, align: int = 0x100) -> bytes:
    """Wrap little-endian thin slices in a big-endian fat header."""
    entry_fmt = ">iiQQII" if is_64 else ">iiIII"
    entry_size = struct.calcsize(entry_fmt)
    offset = 8 + entry_size * len(slices)
    offset += -offset % align

    entries = b""
    payload = b""
    cursor = offset
    for data in slices:
        cputype, cpusubtype = struct.unpack_from("<ii", data, 4)
        fields: list[int] = [cputype, cpusubtype, cursor, len(data), 8]
        if is_64:
            fields.append(0)
        entries += struct.pack(entry_fmt, *fields)
        chunk = _pad(data, align)
        payload += chunk
        cursor += len(chunk)

    head = struct.pack(">II", FAT_MAGIC_64 if is_64 else FAT_MAGIC, len(slices)) + entries
    return _pad(head, align) + payload


def sample_macho() -> bytes:
    """The segment / unknown / symtab sequence used across the tests."""
    return (
        MachOBuilder()
        .segment("__TEXT", ("__text", "__cstring"))
        .raw(0x9999, b"\xAA" * 8)
        .symtab([
            ("_main", 0x0F, 1, 0, 0x100000F50),
            ("_printf", 0x01, 0, 0x100, 0),
        ])
        .build()
    )


# ---------------------------------------------------------------------------
# ELF
# ---------------------------------------------------------------------------

def note_bytes(name: str, n_type: int, desc: bytes, e: str = "<") -> bytes:
    raw_name = name.encode() + b"\x00"
    return (
        struct.pack(f"{e}III", len(raw_name), len(desc), n_type)
        + _pad(raw_name, 4)
        + _pad(desc, 4)
    )


class ELFBuilder:
    """Assemble a 64-bit ELF file holding note sections (or a note segment)."""

    def __init__(self, *, file_type: int = ET_DYN, machine: int = 62, big_endian: bool = False) -> None:
        self.file_type = file_type
        self.machine = machine
        self.e = ">" if big_endian else "<"
        self._notes: dict[str, bytes] = {}

    def note(self, name: str, n_type: int, desc: bytes, section: str = ".note") -> ELFBuilder:
        self._notes[section] = self._notes.get(section, b"") + note_bytes(name, n_type, desc, self.e)
        return self

    def _ident(self) -> bytes:
        data = 2 if self.e == ">" else 1
        return b"\x7fELF" + bytes([2, data, 1, 0]) + b"\x00" * 8

    def _header(self, phoff: int, phnum: int, shoff: int, shnum: int, shstrndx: int) -> bytes:
        return self._ident() + struct.pack(
            f"{self.e}HHIQQQIHHHHHH",
            self.file_type, self.machine, 1, 0x1040,
            phoff, shoff, 0, 64, 56, phnum, 64, shnum, shstrndx,
        )

    def build(self) -> bytes:
        """Notes in ``SHT_NOTE`` sections, plus ``.shstrtab``."""
        data = b""
        cursor = 64
        placed: list[tuple[str, int, int]] = []
        for section, blob in self._notes.items():
            placed.append((section, cursor, len(blob)))
            data += blob
            cursor += len(blob)

        shstrtab = b"\x00"
        name_offsets: dict[str, int] = {}
        for section in [*self._notes, ".shstrtab"]:
            name_offsets[section] = len(shstrtab)
            shstrtab += section.encode() + b"\x00"
        shstrtab_offset = cursor
        data += _pad(shstrtab, 8)
        shoff = 64 + len(data)

        shdr = f"{self.e}IIQQQQIIQQ"
        sections = struct.pack(shdr, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0)
        for section, offset, size in placed:
            sections += struct.pack(shdr, name_offsets[section], SHT_NOTE, 2, 0, offset, size, 0, 0, 4, 0)
        sections += struct.pack(
            shdr, name_offsets[".shstrtab"], SHT_STRTAB, 0, 0, shstrtab_offset, len(shstrtab), 0, 0, 1, 0,
        )

        shnum = len(placed) + 2
        return self._header(0, 0, shoff, shnum, shnum - 1) + data + sections

    def build_segments(self) -> bytes:
        """Every note in one ``PT_NOTE`` segment and no section table."""
        blob = b"".join(self._notes.values())
        offset = 64 + 56
        phdr = struct.pack(f"{self.e}IIQQQQQQ", PT_NOTE, 4, offset, 0, 0, len(blob), len(blob), 4)
        return self._header(64, 1, 0, 0, 0) + phdr + blob
