"""
Mach-O Binary Format Parser
============================

Struct-based parser building the record graph of a Mach-O file: thin
32-bit and 64-bit images in either byte order, and universal ("fat")
binaries with 32-bit or 64-bit fat headers.

The parser extracts:
    - Fat header and per-architecture slice table
    - Mach header (magic, CPU type, file type, flags)
    - Every load command, in file order, decoded into the record type the
      engine knows for its ``cmd`` value (bare :class:`NativeCommand`
      otherwise)
    - Sections of segment commands
    - Symbols referenced by ``LC_SYMTAB``

A load command whose ``cmd`` the engine knows but whose record cannot be
decoded makes the whole parse fail: the graph never holds a record whose
type disagrees with its discriminator.

References:
    - Apple. ``<mach-o/loader.h>``, ``<mach-o/fat.h>``, ``<mach-o/nlist.h>``.
"""

from __future__ import annotations

import struct
from typing import Any, Callable

from shared.config import MachOConfig
from shared.logger import TetherLogger, get_logger

from tether.engine.macho_format import (
    FAT_MAGIC,
    FAT_MAGIC_64,
    FAT_MAX_ARCHS,
    MACH_HEADER_64_SIZE,
    MACH_HEADER_SIZE,
    MH_CIGAM,
    MH_CIGAM_64,
    MH_MAGIC,
    MH_MAGIC_64,
    NLIST_64_SIZE,
    NLIST_SIZE,
    LoadCommandType as LC,
)
from tether.engine.native import (
    NativeBuildVersion,
    NativeCommand,
    NativeDyldInfo,
    NativeDylibCommand,
    NativeDylinkerCommand,
    NativeDynamicSymbolCommand,
    NativeEncryptionInfo,
    NativeFatBinary,
    NativeLinkEditData,
    NativeMachOBinary,
    NativeMachOHeader,
    NativeMainCommand,
    NativeRPathCommand,
    NativeSection,
    NativeSegmentCommand,
    NativeSourceVersion,
    NativeSubFramework,
    NativeSymbol,
    NativeSymbolCommand,
    NativeThreadCommand,
    NativeUUIDCommand,
    NativeVersionMin,
)

_THIN_MAGICS: dict[int, tuple[str, bool]] = {
    MH_MAGIC_64: ("<", True),
    MH_CIGAM_64: (">", True),
    MH_MAGIC: ("<", False),
    MH_CIGAM: (">", False),
}


def is_macho(data: bytes) -> bool:
    """Return ``True`` when *data* starts with a thin or fat Mach-O magic."""
    if len(data) < 8:
        return False
    (magic_le,) = struct.unpack_from("<I", data, 0)
    if magic_le in _THIN_MAGICS:
        return True
    magic_be, nfat = struct.unpack_from(">II", data, 0)
    return magic_be in (FAT_MAGIC, FAT_MAGIC_64) and 0 < nfat <= FAT_MAX_ARCHS


def _unpack_version(value: int) -> tuple[int, int, int]:
    """Decode an ``xxxx.yy.zz`` nibble-packed version."""
    return (value >> 16, (value >> 8) & 0xFF, value & 0xFF)


def _unpack_source_version(value: int) -> tuple[int, int, int, int, int]:
    """Decode an ``a.b.c.d.e`` version packed as 24.10.10.10.10 bits."""
    return (
        value >> 40,
        (value >> 30) & 0x3FF,
        (value >> 20) & 0x3FF,
        (value >> 10) & 0x3FF,
        value & 0x3FF,
    )


def _fixed_string(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("ascii", errors="replace")


class MachOParser:
    """Struct-based Mach-O parser.

    Usage::

        parser = MachOParser(raw_bytes)
        if parser.parse():
            fat = parser.binary
            for slice_ in fat.binaries:
                print(slice_.header.cpu_type, len(slice_.commands))
    """

    def __init__(
        self,
        data: bytes,
        config: MachOConfig | None = None,
        logger: TetherLogger | None = None,
    ) -> None:
        self._data: bytes = data
        self._config: MachOConfig = config or MachOConfig()
        self._log: TetherLogger = logger or get_logger("engine")
        self._fat: NativeFatBinary = NativeFatBinary()
        # Per-slice state, valid while a slice is being decoded.
        self._slice: bytes = b""
        self._endian: str = "<"
        self._is_64bit: bool = True
        self._parsed: bool = False

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    def parse(self) -> bool:
        """Parse the file.

        Returns:
            ``True`` if parsing succeeded, ``False`` on invalid or
            malformed data.
        """
        if not is_macho(self._data):
            self._log.warning("Not a Mach-O file (bad magic)")
            return False

        (magic_be,) = struct.unpack_from(">I", self._data, 0)
        try:
            with self._log.operation("macho_parse"):
                if magic_be in (FAT_MAGIC, FAT_MAGIC_64):
                    self._parse_fat(magic_be == FAT_MAGIC_64)
                else:
                    self._fat.binaries.append(self._parse_slice(0, len(self._data)))
        except (struct.error, IndexError, ValueError) as exc:
            self._log.warning("Malformed Mach-O: %s", exc)
            return False

        self._parsed = True
        return True

    @property
    def binary(self) -> NativeFatBinary:
        """The record graph built by :meth:`parse`."""
        if not self._parsed:
            raise ValueError("parse() has not succeeded")
        return self._fat

    # ------------------------------------------------------------------ #
    #  Fat header
    # ------------------------------------------------------------------ #

    def _parse_fat(self, is_64: bool) -> None:
        (nfat,) = struct.unpack_from(">I", self._data, 4)
        fmt = ">iiQQII" if is_64 else ">iiIII"
        entry_size = struct.calcsize(fmt)

        for i in range(nfat):
            fields = struct.unpack_from(fmt, self._data, 8 + i * entry_size)
            cputype, offset, size = fields[0], fields[2], fields[3]
            if offset + size > len(self._data):
                raise ValueError(
                    f"fat slice {i} (cpu {cputype}) extends past end of file"
                )
            self._log.debug("Fat slice %d: cpu=%d offset=0x%x size=0x%x",
                            i, cputype, offset, size)
            self._fat.binaries.append(self._parse_slice(offset, size))

        self._fat.is_fat = True

    # ------------------------------------------------------------------ #
    #  Thin slice
    # ------------------------------------------------------------------ #

    def _parse_slice(self, start: int, size: int) -> NativeMachOBinary:
        self._slice = self._data[start:start + size]
        header = self._parse_header()
        commands = self._parse_commands(header)
        return NativeMachOBinary(header=header, commands=commands, fat_offset=start)

    def _parse_header(self) -> NativeMachOHeader:
        if len(self._slice) < 4:
            raise ValueError("slice too small for a Mach header")
        (magic_le,) = struct.unpack_from("<I", self._slice, 0)
        if magic_le not in _THIN_MAGICS:
            raise ValueError(f"bad slice magic 0x{magic_le:08x}")

        self._endian, self._is_64bit = _THIN_MAGICS[magic_le]
        h = NativeMachOHeader(is_64=self._is_64bit, endian=self._endian)
        if self._is_64bit:
            (
                h.magic, h.cpu_type, h.cpu_subtype, h.file_type,
                h.nb_cmds, h.sizeof_cmds, h.flags, h.reserved,
            ) = struct.unpack_from(f"{self._endian}IiiIIIII", self._slice, 0)
        else:
            (
                h.magic, h.cpu_type, h.cpu_subtype, h.file_type,
                h.nb_cmds, h.sizeof_cmds, h.flags,
            ) = struct.unpack_from(f"{self._endian}IiiIIII", self._slice, 0)

        if h.nb_cmds > self._config.max_commands:
            raise ValueError(
                f"header announces {h.nb_cmds} load commands "
                f"(limit {self._config.max_commands})"
            )
        return h

    def _parse_commands(self, header: NativeMachOHeader) -> list[NativeCommand]:
        """Walk the load-command table, decoding each record in order."""
        e = self._endian
        offset = MACH_HEADER_64_SIZE if header.is_64 else MACH_HEADER_SIZE
        commands: list[NativeCommand] = []

        for index in range(header.nb_cmds):
            if offset + 8 > len(self._slice):
                raise ValueError(f"load command {index} starts past end of slice")
            cmd, cmdsize = struct.unpack_from(f"{e}II", self._slice, offset)
            if cmdsize < 8 or offset + cmdsize > len(self._slice):
                raise ValueError(
                    f"load command {index} (0x{cmd:x}) has invalid size {cmdsize}"
                )

            base: dict[str, Any] = {
                "command": cmd,
                "size": cmdsize,
                "command_offset": offset,
                "data": bytes(self._slice[offset:offset + cmdsize]),
            }
            decoder = _DECODERS.get(cmd)
            if decoder is None:
                self._log.debug("No decoder for load command 0x%x at 0x%x", cmd, offset)
                commands.append(NativeCommand(**base))
            else:
                commands.append(decoder(self, base))
            offset += cmdsize

        return commands

    # ------------------------------------------------------------------ #
    #  Command decoders
    # ------------------------------------------------------------------ #

    def _unpack(self, fmt: str, raw: bytes, offset: int = 8) -> tuple[Any, ...]:
        return struct.unpack_from(f"{self._endian}{fmt}", raw, offset)

    @staticmethod
    def _lc_str(raw: bytes, offset: int) -> str:
        """Read an ``lc_str`` stored inside the command at *offset*."""
        if offset < 8 or offset >= len(raw):
            raise ValueError(f"lc_str offset {offset} outside command")
        return _fixed_string(raw[offset:])

    def _decode_segment(self, base: dict[str, Any]) -> NativeSegmentCommand:
        raw = base["data"]
        # The command, not the header, decides the layout.
        if base["command"] == LC.LC_SEGMENT_64:
            seg_fmt, sect_fmt, header_size = "16sQQQQiiII", "16s16sQQIIIIIIII", 72
        else:
            seg_fmt, sect_fmt, header_size = "16sIIIIiiII", "16s16sIIIIIIIII", 56

        (
            segname, vmaddr, vmsize, fileoff, filesize,
            maxprot, initprot, nsects, flags,
        ) = self._unpack(seg_fmt, raw)
        seg = NativeSegmentCommand(
            **base,
            name=_fixed_string(segname),
            virtual_address=vmaddr,
            virtual_size=vmsize,
            file_offset=fileoff,
            file_size=filesize,
            max_protection=maxprot,
            init_protection=initprot,
            numberof_sections=nsects,
            flags=flags,
        )

        sect_size = struct.calcsize(f"{self._endian}{sect_fmt}")
        for i in range(nsects):
            (
                sectname, sect_segname, addr, size, offset, align,
                reloff, nreloc, sflags, reserved1, reserved2, *rest,
            ) = self._unpack(sect_fmt, raw, header_size + i * sect_size)
            seg.sections.append(NativeSection(
                name=_fixed_string(sectname),
                segment_name=_fixed_string(sect_segname),
                address=addr,
                size=size,
                offset=offset,
                alignment=align,
                relocation_offset=reloff,
                numberof_relocations=nreloc,
                flags=sflags,
                reserved1=reserved1,
                reserved2=reserved2,
                reserved3=rest[0] if rest else 0,
            ))
        return seg

    def _decode_symtab(self, base: dict[str, Any]) -> NativeSymbolCommand:
        symoff, nsyms, stroff, strsize = self._unpack("IIII", base["data"])
        cmd = NativeSymbolCommand(
            **base,
            symbol_offset=symoff,
            numberof_symbols=nsyms,
            strings_offset=stroff,
            strings_size=strsize,
        )
        if self._config.parse_symbols:
            cmd.symbols = self._parse_symbols(symoff, nsyms, stroff, strsize)
        return cmd

    def _parse_symbols(
        self, symoff: int, nsyms: int, stroff: int, strsize: int,
    ) -> list[NativeSymbol]:
        """Read the ``nlist`` table.  Out-of-range tables yield no symbols."""
        if nsyms > self._config.max_symbols:
            self._log.warning("Symbol table of %d entries exceeds limit %d; skipped",
                              nsyms, self._config.max_symbols)
            return []
        entry_size = NLIST_64_SIZE if self._is_64bit else NLIST_SIZE
        if symoff + nsyms * entry_size > len(self._slice):
            self._log.warning("Symbol table at 0x%x runs past end of slice; skipped", symoff)
            return []

        strtab = self._slice[stroff:stroff + strsize]
        fmt = "IBBHQ" if self._is_64bit else "IBBHI"
        symbols: list[NativeSymbol] = []
        for i in range(nsyms):
            strx, n_type, n_sect, n_desc, n_value = struct.unpack_from(
                f"{self._endian}{fmt}", self._slice, symoff + i * entry_size
            )
            name = _fixed_string(strtab[strx:]) if strx < len(strtab) else ""
            symbols.append(NativeSymbol(
                name=name,
                type=n_type,
                numberof_sections=n_sect,
                description=n_desc,
                value=n_value,
            ))
        return symbols

    def _decode_dysymtab(self, base: dict[str, Any]) -> NativeDynamicSymbolCommand:
        values = self._unpack("18I", base["data"])
        names = (
            "idx_local_symbol", "nb_local_symbols",
            "idx_external_define_symbol", "nb_external_define_symbols",
            "idx_undefined_symbol", "nb_undefined_symbols",
            "toc_offset", "nb_toc",
            "module_table_offset", "nb_module_table",
            "external_reference_symbol_offset", "nb_external_reference_symbols",
            "indirect_symbol_offset", "nb_indirect_symbols",
            "external_relocation_offset", "nb_external_relocations",
            "local_relocation_offset", "nb_local_relocations",
        )
        return NativeDynamicSymbolCommand(**base, **dict(zip(names, values)))

    def _decode_dylib(self, base: dict[str, Any]) -> NativeDylibCommand:
        raw = base["data"]
        name_off, timestamp, current, compat = self._unpack("IIII", raw)
        return NativeDylibCommand(
            **base,
            name=self._lc_str(raw, name_off),
            timestamp=timestamp,
            current_version=_unpack_version(current),
            compatibility_version=_unpack_version(compat),
        )

    def _decode_dylinker(self, base: dict[str, Any]) -> NativeDylinkerCommand:
        raw = base["data"]
        (name_off,) = self._unpack("I", raw)
        return NativeDylinkerCommand(**base, name=self._lc_str(raw, name_off))

    def _decode_rpath(self, base: dict[str, Any]) -> NativeRPathCommand:
        raw = base["data"]
        (path_off,) = self._unpack("I", raw)
        return NativeRPathCommand(**base, path=self._lc_str(raw, path_off))

    def _decode_sub_framework(self, base: dict[str, Any]) -> NativeSubFramework:
        raw = base["data"]
        (umbrella_off,) = self._unpack("I", raw)
        return NativeSubFramework(**base, umbrella=self._lc_str(raw, umbrella_off))

    def _decode_uuid(self, base: dict[str, Any]) -> NativeUUIDCommand:
        (uuid,) = self._unpack("16s", base["data"])
        return NativeUUIDCommand(**base, uuid=uuid)

    def _decode_main(self, base: dict[str, Any]) -> NativeMainCommand:
        entryoff, stacksize = self._unpack("QQ", base["data"])
        return NativeMainCommand(**base, entrypoint=entryoff, stack_size=stacksize)

    def _decode_source_version(self, base: dict[str, Any]) -> NativeSourceVersion:
        (version,) = self._unpack("Q", base["data"])
        return NativeSourceVersion(**base, version=_unpack_source_version(version))

    def _decode_version_min(self, base: dict[str, Any]) -> NativeVersionMin:
        version, sdk = self._unpack("II", base["data"])
        return NativeVersionMin(
            **base, version=_unpack_version(version), sdk=_unpack_version(sdk),
        )

    def _decode_build_version(self, base: dict[str, Any]) -> NativeBuildVersion:
        raw = base["data"]
        platform, minos, sdk, ntools = self._unpack("IIII", raw)
        tools = [
            (tool, _unpack_version(version))
            for tool, version in (
                self._unpack("II", raw, 24 + i * 8) for i in range(ntools)
            )
        ]
        return NativeBuildVersion(
            **base,
            platform=platform,
            minos=_unpack_version(minos),
            sdk=_unpack_version(sdk),
            tools=tools,
        )

    def _decode_dyld_info(self, base: dict[str, Any]) -> NativeDyldInfo:
        v = self._unpack("10I", base["data"])
        return NativeDyldInfo(
            **base,
            rebase=(v[0], v[1]),
            bind=(v[2], v[3]),
            weak_bind=(v[4], v[5]),
            lazy_bind=(v[6], v[7]),
            export_info=(v[8], v[9]),
        )

    def _decode_encryption_info(self, base: dict[str, Any]) -> NativeEncryptionInfo:
        cryptoff, cryptsize, cryptid = self._unpack("III", base["data"])
        return NativeEncryptionInfo(
            **base, crypt_offset=cryptoff, crypt_size=cryptsize, crypt_id=cryptid,
        )

    def _decode_thread(self, base: dict[str, Any]) -> NativeThreadCommand:
        raw = base["data"]
        flavor, count = self._unpack("II", raw)
        state = raw[16:16 + count * 4]
        if len(state) != count * 4:
            raise ValueError(f"thread state of {count} words truncated")
        return NativeThreadCommand(**base, flavor=flavor, count=count, state=state)

    def _decode_linkedit_data(self, base: dict[str, Any]) -> NativeLinkEditData:
        dataoff, datasize = self._unpack("II", base["data"])
        return NativeLinkEditData(**base, data_offset=dataoff, data_size=datasize)


# ---------------------------------------------------------------------------
# cmd -> decoder
# ---------------------------------------------------------------------------

_DECODERS: dict[int, Callable[[MachOParser, dict[str, Any]], NativeCommand]] = {
    LC.LC_SEGMENT: MachOParser._decode_segment,
    LC.LC_SEGMENT_64: MachOParser._decode_segment,
    LC.LC_SYMTAB: MachOParser._decode_symtab,
    LC.LC_DYSYMTAB: MachOParser._decode_dysymtab,
    LC.LC_LOAD_DYLIB: MachOParser._decode_dylib,
    LC.LC_ID_DYLIB: MachOParser._decode_dylib,
    LC.LC_LOAD_WEAK_DYLIB: MachOParser._decode_dylib,
    LC.LC_REEXPORT_DYLIB: MachOParser._decode_dylib,
    LC.LC_LAZY_LOAD_DYLIB: MachOParser._decode_dylib,
    LC.LC_LOAD_UPWARD_DYLIB: MachOParser._decode_dylib,
    LC.LC_LOAD_DYLINKER: MachOParser._decode_dylinker,
    LC.LC_ID_DYLINKER: MachOParser._decode_dylinker,
    LC.LC_DYLD_ENVIRONMENT: MachOParser._decode_dylinker,
    LC.LC_UUID: MachOParser._decode_uuid,
    LC.LC_MAIN: MachOParser._decode_main,
    LC.LC_RPATH: MachOParser._decode_rpath,
    LC.LC_SOURCE_VERSION: MachOParser._decode_source_version,
    LC.LC_VERSION_MIN_MACOSX: MachOParser._decode_version_min,
    LC.LC_VERSION_MIN_IPHONEOS: MachOParser._decode_version_min,
    LC.LC_VERSION_MIN_TVOS: MachOParser._decode_version_min,
    LC.LC_VERSION_MIN_WATCHOS: MachOParser._decode_version_min,
    LC.LC_BUILD_VERSION: MachOParser._decode_build_version,
    LC.LC_DYLD_INFO: MachOParser._decode_dyld_info,
    LC.LC_DYLD_INFO_ONLY: MachOParser._decode_dyld_info,
    LC.LC_ENCRYPTION_INFO: MachOParser._decode_encryption_info,
    LC.LC_ENCRYPTION_INFO_64: MachOParser._decode_encryption_info,
    LC.LC_THREAD: MachOParser._decode_thread,
    LC.LC_UNIXTHREAD: MachOParser._decode_thread,
    LC.LC_SUB_FRAMEWORK: MachOParser._decode_sub_framework,
    LC.LC_CODE_SIGNATURE: MachOParser._decode_linkedit_data,
    LC.LC_SEGMENT_SPLIT_INFO: MachOParser._decode_linkedit_data,
    LC.LC_FUNCTION_STARTS: MachOParser._decode_linkedit_data,
    LC.LC_DATA_IN_CODE: MachOParser._decode_linkedit_data,
    LC.LC_DYLIB_CODE_SIGN_DRS: MachOParser._decode_linkedit_data,
    LC.LC_LINKER_OPTIMIZATION_HINT: MachOParser._decode_linkedit_data,
    LC.LC_DYLD_EXPORTS_TRIE: MachOParser._decode_linkedit_data,
    LC.LC_DYLD_CHAINED_FIXUPS: MachOParser._decode_linkedit_data,
}
