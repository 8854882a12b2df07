"""
Engine Records
===============

Plain records produced by the Mach-O and ELF parsers.  They form the
object graph a root container owns: a fat binary owns its slices, a slice
owns its header and load commands, a segment command owns its sections,
a symbol-table command owns its symbols, an ELF file owns its notes.

Each load-command record type is a subclass of :class:`NativeCommand`;
the record's class is the engine's runtime type identity, while ``command``
is the discriminator the bridge classifies on.  A command the engine does
not decode is stored as a bare :class:`NativeCommand`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tether.engine.elf_format import NoteType


# ---------------------------------------------------------------------------
# Mach-O
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class NativeMachOHeader:
    """``mach_header`` / ``mach_header_64``."""
    magic: int = 0
    cpu_type: int = 0
    cpu_subtype: int = 0
    file_type: int = 0
    nb_cmds: int = 0
    sizeof_cmds: int = 0
    flags: int = 0
    reserved: int = 0
    is_64: bool = True
    endian: str = "<"


@dataclass(slots=True)
class NativeCommand:
    """``load_command``: the fields every command shares."""
    command: int = 0
    size: int = 0
    command_offset: int = 0
    data: bytes = b""


@dataclass(slots=True)
class NativeSection:
    """``section`` / ``section_64``."""
    name: str = ""
    segment_name: str = ""
    address: int = 0
    size: int = 0
    offset: int = 0
    alignment: int = 0
    relocation_offset: int = 0
    numberof_relocations: int = 0
    flags: int = 0
    reserved1: int = 0
    reserved2: int = 0
    reserved3: int = 0


@dataclass(slots=True)
class NativeSegmentCommand(NativeCommand):
    name: str = ""
    virtual_address: int = 0
    virtual_size: int = 0
    file_offset: int = 0
    file_size: int = 0
    max_protection: int = 0
    init_protection: int = 0
    numberof_sections: int = 0
    flags: int = 0
    sections: list[NativeSection] = field(default_factory=list)


@dataclass(slots=True)
class NativeSymbol:
    """``nlist`` / ``nlist_64`` with its name resolved."""
    name: str = ""
    type: int = 0
    numberof_sections: int = 0
    description: int = 0
    value: int = 0


@dataclass(slots=True)
class NativeSymbolCommand(NativeCommand):
    symbol_offset: int = 0
    numberof_symbols: int = 0
    strings_offset: int = 0
    strings_size: int = 0
    symbols: list[NativeSymbol] = field(default_factory=list)


@dataclass(slots=True)
class NativeDynamicSymbolCommand(NativeCommand):
    idx_local_symbol: int = 0
    nb_local_symbols: int = 0
    idx_external_define_symbol: int = 0
    nb_external_define_symbols: int = 0
    idx_undefined_symbol: int = 0
    nb_undefined_symbols: int = 0
    toc_offset: int = 0
    nb_toc: int = 0
    module_table_offset: int = 0
    nb_module_table: int = 0
    external_reference_symbol_offset: int = 0
    nb_external_reference_symbols: int = 0
    indirect_symbol_offset: int = 0
    nb_indirect_symbols: int = 0
    external_relocation_offset: int = 0
    nb_external_relocations: int = 0
    local_relocation_offset: int = 0
    nb_local_relocations: int = 0


@dataclass(slots=True)
class NativeDylibCommand(NativeCommand):
    name: str = ""
    timestamp: int = 0
    current_version: tuple[int, int, int] = (0, 0, 0)
    compatibility_version: tuple[int, int, int] = (0, 0, 0)


@dataclass(slots=True)
class NativeDylinkerCommand(NativeCommand):
    name: str = ""


@dataclass(slots=True)
class NativeUUIDCommand(NativeCommand):
    uuid: bytes = bytes(16)


@dataclass(slots=True)
class NativeMainCommand(NativeCommand):
    entrypoint: int = 0
    stack_size: int = 0


@dataclass(slots=True)
class NativeRPathCommand(NativeCommand):
    path: str = ""


@dataclass(slots=True)
class NativeSourceVersion(NativeCommand):
    version: tuple[int, int, int, int, int] = (0, 0, 0, 0, 0)


@dataclass(slots=True)
class NativeVersionMin(NativeCommand):
    version: tuple[int, int, int] = (0, 0, 0)
    sdk: tuple[int, int, int] = (0, 0, 0)


@dataclass(slots=True)
class NativeBuildVersion(NativeCommand):
    platform: int = 0
    minos: tuple[int, int, int] = (0, 0, 0)
    sdk: tuple[int, int, int] = (0, 0, 0)
    tools: list[tuple[int, tuple[int, int, int]]] = field(default_factory=list)


@dataclass(slots=True)
class NativeDyldInfo(NativeCommand):
    rebase: tuple[int, int] = (0, 0)
    bind: tuple[int, int] = (0, 0)
    weak_bind: tuple[int, int] = (0, 0)
    lazy_bind: tuple[int, int] = (0, 0)
    export_info: tuple[int, int] = (0, 0)


@dataclass(slots=True)
class NativeEncryptionInfo(NativeCommand):
    crypt_offset: int = 0
    crypt_size: int = 0
    crypt_id: int = 0


@dataclass(slots=True)
class NativeThreadCommand(NativeCommand):
    flavor: int = 0
    count: int = 0
    state: bytes = b""


@dataclass(slots=True)
class NativeSubFramework(NativeCommand):
    umbrella: str = ""


@dataclass(slots=True)
class NativeLinkEditData(NativeCommand):
    """``linkedit_data_command``, shared by every ``__LINKEDIT`` blob pointer."""
    data_offset: int = 0
    data_size: int = 0


@dataclass(slots=True)
class NativeMachOBinary:
    """One Mach-O slice: its header and its load commands, in file order."""
    header: NativeMachOHeader = field(default_factory=NativeMachOHeader)
    commands: list[NativeCommand] = field(default_factory=list)
    fat_offset: int = 0


@dataclass(slots=True)
class NativeFatBinary:
    """A universal binary; a thin file is a fat binary of one slice."""
    binaries: list[NativeMachOBinary] = field(default_factory=list)
    is_fat: bool = False


# ---------------------------------------------------------------------------
# ELF
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class NativeElfHeader:
    identity_class: int = 0
    identity_data: int = 0
    file_type: int = 0
    machine: int = 0
    entrypoint: int = 0
    numberof_sections: int = 0
    numberof_segments: int = 0


@dataclass(slots=True)
class NativeNote:
    """An ELF note; ``type`` is the engine classification of ``original_type``."""
    name: str = ""
    type: NoteType = NoteType.UNKNOWN
    original_type: int = 0
    description: bytes = b""
    size: int = 0
    offset: int = 0
    section_name: str = ""


@dataclass(slots=True)
class NativeNoteAbi(NativeNote):
    abi: int = 0
    version: tuple[int, int, int] = (0, 0, 0)


@dataclass(slots=True)
class NativeAndroidIdent(NativeNote):
    sdk_version: int = 0
    ndk_version: str = ""
    ndk_build_number: str = ""


@dataclass(slots=True)
class NativeCoreAuxv(NativeNote):
    values: list[tuple[int, int]] = field(default_factory=list)


@dataclass(slots=True)
class NativeElfBinary:
    header: NativeElfHeader = field(default_factory=NativeElfHeader)
    notes: list[NativeNote] = field(default_factory=list)
