"""
Mach-O Load Commands
=====================

Safe value types for the records of a parsed Mach-O slice.

:class:`Command` is the capability every load-command variant shares: its
:meth:`Command.base` returns the discriminator, size and offset the
engine recorded, without the caller knowing the concrete variant.  Each
variant declares the engine record type it wraps (``native_type``), the
discriminators it answers to (``commands``) and its accessors, as
:class:`~tether.core.convert.native_field` descriptors.

Variants are never constructed directly; the dispatcher in
:mod:`tether.macho.dispatch` picks the variant from the discriminator.

References:
    - Apple. ``<mach-o/loader.h>``.
    - LIEF. ``LIEF::MachO::LoadCommand`` and subclasses.
"""

from __future__ import annotations

import uuid as _uuid
from typing import Any, ClassVar

from tether.core.convert import NativeWrapper, native_field
from tether.core.handle import Handle
from tether.core.models import CommandRecord
from tether.core.views import CollectionView
from tether.engine.macho_format import (
    N_EXT,
    N_STAB,
    N_TYPE,
    LoadCommandType as LC,
    command_name,
    cpu_name,
    filetype_name,
    platform_name,
    tool_name,
)
from tether.engine.native import (
    NativeBuildVersion,
    NativeCommand,
    NativeDyldInfo,
    NativeDylibCommand,
    NativeDylinkerCommand,
    NativeDynamicSymbolCommand,
    NativeEncryptionInfo,
    NativeLinkEditData,
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


def _dotted(version: tuple[int, ...]) -> str:
    return ".".join(str(part) for part in version)


# ---------------------------------------------------------------------------
# Header, sections and symbols
# ---------------------------------------------------------------------------

class Header(NativeWrapper[NativeMachOHeader]):
    """``mach_header`` of one slice."""

    native_type = NativeMachOHeader
    __slots__ = ()

    magic = native_field()
    cpu_type = native_field()
    cpu_subtype = native_field()
    file_type = native_field()
    nb_cmds = native_field()
    sizeof_cmds = native_field()
    flags = native_field()
    reserved = native_field()

    @property
    def is_64(self) -> bool:
        return self._handle.get().is_64

    @property
    def is_big_endian(self) -> bool:
        return self._handle.get().endian == ">"

    @property
    def cpu_name(self) -> str:
        return cpu_name(self.cpu_type)

    @property
    def file_type_name(self) -> str:
        return filetype_name(self.file_type)


class Section(NativeWrapper[NativeSection]):
    """A section of a segment command."""

    native_type = NativeSection
    __slots__ = ()

    name = native_field()
    segment_name = native_field()
    address = native_field()
    size = native_field()
    offset = native_field()
    alignment = native_field()
    relocation_offset = native_field()
    numberof_relocations = native_field()
    flags = native_field()
    reserved1 = native_field()
    reserved2 = native_field()
    reserved3 = native_field()

    @property
    def type(self) -> int:
        """``SECTION_TYPE`` bits of ``flags``."""
        return self.flags & 0xFF


class Symbol(NativeWrapper[NativeSymbol]):
    """An ``nlist`` entry of the symbol table."""

    native_type = NativeSymbol
    __slots__ = ()

    name = native_field()
    type = native_field()
    numberof_sections = native_field()
    description = native_field()
    value = native_field()

    @property
    def is_external(self) -> bool:
        return bool(self.type & N_EXT)

    @property
    def is_debug(self) -> bool:
        return bool(self.type & N_STAB)

    @property
    def is_undefined(self) -> bool:
        return not self.is_debug and (self.type & N_TYPE) == 0


# ---------------------------------------------------------------------------
# Command capability
# ---------------------------------------------------------------------------

class Command(NativeWrapper[NativeCommand]):
    """Abstract load command.

    Concrete variants set ``native_type`` and ``commands``; every variant
    shares :meth:`base`, which never touches the engine after wrapping.
    """

    native_type: ClassVar[type] = NativeCommand
    commands: ClassVar[tuple[int, ...]] = ()

    __slots__ = ("_base",)

    def __init__(self, handle: Handle[NativeCommand]) -> None:
        super().__init__(handle)
        native = handle.get()
        self._base = CommandRecord(
            discriminator=native.command,
            size=native.size,
            offset=native.command_offset,
        )

    def base(self) -> CommandRecord:
        """Discriminator, size and offset of this command."""
        self._handle.anchor.ensure_alive()
        return self._base

    @property
    def command_type(self) -> str:
        """``LC_*`` name of the discriminator (hex when unnamed)."""
        return command_name(self.base().discriminator)

    @property
    def data(self) -> bytes:
        """Raw bytes of the command, ``cmdsize`` long."""
        return self._handle.get().data

    def to_dict(self) -> dict[str, Any]:
        base = self.base()
        return {
            "command": base.discriminator,
            "size": base.size,
            "offset": base.offset,
            **super().to_dict(),
        }

    def _render_fields(self) -> str:
        base = self._base
        head = f"command={base.discriminator:#x}, size={base.size:#x}, offset={base.offset:#x}"
        rest = super()._render_fields()
        return f"{head}, {rest}" if rest else head


class UnknownCommand(Command):
    """A command whose discriminator the bridge does not recognise.

    ``original_command`` is the raw discriminator, exactly as read.
    """

    __slots__ = ()

    original_command = native_field("command")


# ---------------------------------------------------------------------------
# Known variants
# ---------------------------------------------------------------------------

class SegmentCommand(Command):
    native_type = NativeSegmentCommand
    commands = (LC.LC_SEGMENT, LC.LC_SEGMENT_64)
    __slots__ = ()

    name = native_field()
    virtual_address = native_field()
    virtual_size = native_field()
    file_offset = native_field()
    file_size = native_field()
    max_protection = native_field()
    init_protection = native_field()
    numberof_sections = native_field()
    flags = native_field()

    @property
    def sections(self) -> CollectionView[Section]:
        """Sections of this segment, anchored to the owning binary."""
        native: NativeSegmentCommand = self._handle.get()
        return CollectionView(
            self._handle.anchor,
            lambda: native.sections,
            Section.from_native,
            label=f"sections of {native.name}",
        )


class SymbolCommand(Command):
    native_type = NativeSymbolCommand
    commands = (LC.LC_SYMTAB,)
    __slots__ = ()

    symbol_offset = native_field()
    numberof_symbols = native_field()
    strings_offset = native_field()
    strings_size = native_field()

    @property
    def symbols(self) -> CollectionView[Symbol]:
        """Decoded ``nlist`` entries, empty when symbol parsing is disabled."""
        native: NativeSymbolCommand = self._handle.get()
        return CollectionView(
            self._handle.anchor,
            lambda: native.symbols,
            Symbol.from_native,
            label="symbols",
        )


class DynamicSymbolCommand(Command):
    native_type = NativeDynamicSymbolCommand
    commands = (LC.LC_DYSYMTAB,)
    __slots__ = ()

    idx_local_symbol = native_field()
    nb_local_symbols = native_field()
    idx_external_define_symbol = native_field()
    nb_external_define_symbols = native_field()
    idx_undefined_symbol = native_field()
    nb_undefined_symbols = native_field()
    toc_offset = native_field()
    nb_toc = native_field()
    module_table_offset = native_field()
    nb_module_table = native_field()
    external_reference_symbol_offset = native_field()
    nb_external_reference_symbols = native_field()
    indirect_symbol_offset = native_field()
    nb_indirect_symbols = native_field()
    external_relocation_offset = native_field()
    nb_external_relocations = native_field()
    local_relocation_offset = native_field()
    nb_local_relocations = native_field()


class DylibCommand(Command):
    """A dependent (or identifying) dynamic library."""

    native_type = NativeDylibCommand
    commands = (
        LC.LC_LOAD_DYLIB,
        LC.LC_ID_DYLIB,
        LC.LC_LOAD_WEAK_DYLIB,
        LC.LC_REEXPORT_DYLIB,
        LC.LC_LAZY_LOAD_DYLIB,
        LC.LC_LOAD_UPWARD_DYLIB,
    )
    __slots__ = ()

    name = native_field()
    timestamp = native_field()
    current_version = native_field()
    compatibility_version = native_field()

    @property
    def is_weak(self) -> bool:
        return self.base().discriminator == LC.LC_LOAD_WEAK_DYLIB


class DylinkerCommand(Command):
    native_type = NativeDylinkerCommand
    commands = (LC.LC_LOAD_DYLINKER, LC.LC_ID_DYLINKER, LC.LC_DYLD_ENVIRONMENT)
    __slots__ = ()

    name = native_field()


class UUIDCommand(Command):
    native_type = NativeUUIDCommand
    commands = (LC.LC_UUID,)
    __slots__ = ()

    uuid = native_field()

    def __str__(self) -> str:
        return str(_uuid.UUID(bytes=self.uuid)).upper()


class MainCommand(Command):
    native_type = NativeMainCommand
    commands = (LC.LC_MAIN,)
    __slots__ = ()

    entrypoint = native_field()
    stack_size = native_field()


class RPathCommand(Command):
    native_type = NativeRPathCommand
    commands = (LC.LC_RPATH,)
    __slots__ = ()

    path = native_field()


class SourceVersion(Command):
    native_type = NativeSourceVersion
    commands = (LC.LC_SOURCE_VERSION,)
    __slots__ = ()

    version = native_field()

    def __str__(self) -> str:
        return _dotted(self.version)


class VersionMin(Command):
    """Minimum OS version for one of the legacy platform commands."""

    native_type = NativeVersionMin
    commands = (
        LC.LC_VERSION_MIN_MACOSX,
        LC.LC_VERSION_MIN_IPHONEOS,
        LC.LC_VERSION_MIN_TVOS,
        LC.LC_VERSION_MIN_WATCHOS,
    )
    __slots__ = ()

    version = native_field()
    sdk = native_field()


class BuildVersion(Command):
    native_type = NativeBuildVersion
    commands = (LC.LC_BUILD_VERSION,)
    __slots__ = ()

    platform = native_field()
    minos = native_field()
    sdk = native_field()
    tools = native_field(convert=tuple)

    @property
    def platform_name(self) -> str:
        return platform_name(self.platform)

    @property
    def tool_names(self) -> list[str]:
        return [f"{tool_name(tool)} {_dotted(version)}" for tool, version in self.tools]


class DyldInfo(Command):
    """Compressed dyld information: ``(offset, size)`` of each opcode stream."""

    native_type = NativeDyldInfo
    commands = (LC.LC_DYLD_INFO, LC.LC_DYLD_INFO_ONLY)
    __slots__ = ()

    rebase = native_field()
    bind = native_field()
    weak_bind = native_field()
    lazy_bind = native_field()
    export_info = native_field()


class EncryptionInfo(Command):
    native_type = NativeEncryptionInfo
    commands = (LC.LC_ENCRYPTION_INFO, LC.LC_ENCRYPTION_INFO_64)
    __slots__ = ()

    crypt_offset = native_field()
    crypt_size = native_field()
    crypt_id = native_field()

    @property
    def is_encrypted(self) -> bool:
        return self.crypt_id != 0


class ThreadCommand(Command):
    native_type = NativeThreadCommand
    commands = (LC.LC_THREAD, LC.LC_UNIXTHREAD)
    __slots__ = ()

    flavor = native_field()
    count = native_field()
    state = native_field()


class SubFramework(Command):
    native_type = NativeSubFramework
    commands = (LC.LC_SUB_FRAMEWORK,)
    __slots__ = ()

    umbrella = native_field()


class LinkEditData(Command):
    """Pointer into ``__LINKEDIT``; concrete per blob kind below."""

    native_type = NativeLinkEditData
    __slots__ = ()

    data_offset = native_field()
    data_size = native_field()


class CodeSignature(LinkEditData):
    commands = (LC.LC_CODE_SIGNATURE,)
    __slots__ = ()


class SegmentSplitInfo(LinkEditData):
    commands = (LC.LC_SEGMENT_SPLIT_INFO,)
    __slots__ = ()


class FunctionStarts(LinkEditData):
    commands = (LC.LC_FUNCTION_STARTS,)
    __slots__ = ()


class DataInCode(LinkEditData):
    commands = (LC.LC_DATA_IN_CODE,)
    __slots__ = ()


class CodeSignatureDir(LinkEditData):
    commands = (LC.LC_DYLIB_CODE_SIGN_DRS,)
    __slots__ = ()


class LinkerOptHint(LinkEditData):
    commands = (LC.LC_LINKER_OPTIMIZATION_HINT,)
    __slots__ = ()


class DyldExportsTrie(LinkEditData):
    commands = (LC.LC_DYLD_EXPORTS_TRIE,)
    __slots__ = ()


class DyldChainedFixups(LinkEditData):
    commands = (LC.LC_DYLD_CHAINED_FIXUPS,)
    __slots__ = ()
