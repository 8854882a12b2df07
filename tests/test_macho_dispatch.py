"""Discriminator-driven classification of Mach-O load commands."""

from __future__ import annotations

import struct

import pytest

from tether import macho
from tether.core import Anchor, NativeTypeError
from tether.core.models import CommandRecord
from tether.engine import native
from tether.macho import (
    BuildVersion,
    CodeSignature,
    DataInCode,
    DyldChainedFixups,
    DyldInfo,
    DylibCommand,
    DylinkerCommand,
    DynamicSymbolCommand,
    EncryptionInfo,
    FunctionStarts,
    LoadCommandType,
    MainCommand,
    RPathCommand,
    SegmentCommand,
    SourceVersion,
    SubFramework,
    SymbolCommand,
    ThreadCommand,
    UnknownCommand,
    UUIDCommand,
    VersionMin,
    classify,
    known_commands,
)
from tether.macho.dispatch import _build_table

from tests import builders as b


def _classify(record: native.NativeCommand) -> macho.Command:
    anchor = Anchor([record], "test")
    return classify(anchor.lend(record))


@pytest.fixture()
def every_command(config) -> macho.FatBinary:
    data = (
        b.MachOBuilder()
        .segment("__TEXT", ("__text",))
        .symtab([("_main", 0x0F, 1, 0, 0x1000)])
        .raw(b.LC_DYSYMTAB, struct.pack("<18I", *range(18)))
        .dylib("/usr/lib/libSystem.B.dylib")
        .dylib("/usr/lib/libweak.dylib", cmd=b.LC_LOAD_WEAK_DYLIB)
        .lc_str(b.LC_LOAD_DYLINKER, "/usr/lib/dyld")
        .uuid(bytes(range(16)))
        .main(0x3F50, 0x8000)
        .lc_str(b.LC_RPATH, "@loader_path/../Frameworks")
        .raw(b.LC_SOURCE_VERSION, struct.pack("<Q", (12 << 40) | (3 << 30) | (4 << 20)))
        .raw(b.LC_VERSION_MIN_MACOSX, struct.pack("<II", b.pack_version(10, 15), b.pack_version(11, 0)))
        .raw(b.LC_BUILD_VERSION, struct.pack(
            "<IIIIII", 1, b.pack_version(13, 0), b.pack_version(14, 2, 1), 1, 3, b.pack_version(902, 11),
        ))
        .raw(b.LC_DYLD_INFO_ONLY, struct.pack("<10I", *range(1, 11)))
        .raw(b.LC_ENCRYPTION_INFO_64, struct.pack("<IIII", 0x4000, 0x1000, 1, 0))
        .raw(b.LC_UNIXTHREAD, struct.pack("<II", 4, 2) + struct.pack("<II", 0xAA, 0xBB))
        .lc_str(b.LC_SUB_FRAMEWORK, "Umbrella")
        .linkedit(b.LC_CODE_SIGNATURE, 0x8000, 0x200)
        .linkedit(b.LC_FUNCTION_STARTS, 0x7000, 0x10)
        .linkedit(b.LC_DATA_IN_CODE, 0x7010, 0)
        .linkedit(b.LC_DYLD_CHAINED_FIXUPS, 0x6000, 0x80)
        .raw(0x9999, b"\x00" * 8)
        .build()
    )
    root = macho.parse(data, config)
    assert root is not None
    yield root
    root.close()


def test_every_known_variant_is_classified(every_command: macho.FatBinary) -> None:
    variants = [type(c) for c in every_command[0].commands]
    assert variants == [
        SegmentCommand,
        SymbolCommand,
        DynamicSymbolCommand,
        DylibCommand,
        DylibCommand,
        DylinkerCommand,
        UUIDCommand,
        MainCommand,
        RPathCommand,
        SourceVersion,
        VersionMin,
        BuildVersion,
        DyldInfo,
        EncryptionInfo,
        ThreadCommand,
        SubFramework,
        CodeSignature,
        FunctionStarts,
        DataInCode,
        DyldChainedFixups,
        UnknownCommand,
    ]


def test_base_matches_engine_record(every_command: macho.FatBinary) -> None:
    binary = every_command[0]
    records = binary._handle.get().commands
    for command, record in zip(binary.commands, records):
        base = command.base()
        assert isinstance(base, CommandRecord)
        assert base.discriminator == record.command
        assert base.size == record.size
        assert base.offset == record.command_offset


def test_base_is_stable(every_command: macho.FatBinary) -> None:
    command = every_command[0].commands[0]
    assert command.base() is command.base()


def test_variant_fields(every_command: macho.FatBinary) -> None:
    commands = list(every_command[0].commands)

    dylib = commands[3]
    assert dylib.name == "/usr/lib/libSystem.B.dylib"
    assert dylib.current_version == (1, 2, 3)
    assert dylib.compatibility_version == (1, 0, 0)
    assert not dylib.is_weak
    assert commands[4].is_weak

    assert commands[2].idx_local_symbol == 0
    assert commands[2].nb_local_relocations == 17
    assert commands[5].name == "/usr/lib/dyld"
    assert str(commands[6]) == "00010203-0405-0607-0809-0A0B0C0D0E0F"
    assert (commands[7].entrypoint, commands[7].stack_size) == (0x3F50, 0x8000)
    assert commands[8].path == "@loader_path/../Frameworks"
    assert str(commands[9]) == "12.3.4.0.0"
    assert commands[10].version == (10, 15, 0)
    assert commands[10].sdk == (11, 0, 0)

    build = commands[11]
    assert build.platform_name == "MACOS"
    assert build.minos == (13, 0, 0)
    assert build.sdk == (14, 2, 1)
    assert build.tools == ((3, (902, 11, 0)),)

    assert commands[12].rebase == (1, 2)
    assert commands[12].export_info == (9, 10)
    assert commands[13].is_encrypted
    assert commands[14].flavor == 4
    assert commands[14].state == struct.pack("<II", 0xAA, 0xBB)
    assert commands[15].umbrella == "Umbrella"
    assert (commands[16].data_offset, commands[16].data_size) == (0x8000, 0x200)


def test_unknown_keeps_original_command(every_command: macho.FatBinary) -> None:
    unknown = every_command[0].commands[-1]
    assert isinstance(unknown, UnknownCommand)
    assert unknown.original_command == 0x9999
    assert unknown.base().discriminator == 0x9999
    assert unknown.command_type == "0x9999"


def test_end_to_end_segment_unknown_symtab(macho_bytes: bytes, config) -> None:
    with macho.parse(macho_bytes, config) as root:
        commands = list(root[0].commands)
        assert [type(c) for c in commands] == [SegmentCommand, UnknownCommand, SymbolCommand]
        assert [c.base().discriminator for c in commands] == [0x19, 0x9999, 0x2]
        assert commands[1].original_command == 0x9999


def test_classify_is_total_over_unrecognised_records() -> None:
    for discriminator in (0x0, 0x3, 0x35 | 0x80000000, 0xFFFFFFFF, 0x1_0000_0019):
        command = _classify(native.NativeCommand(command=discriminator, size=8))
        assert isinstance(command, UnknownCommand)
        assert command.original_command == discriminator


def test_wrong_engine_type_is_a_fatal_fault() -> None:
    record = native.NativeCommand(command=LoadCommandType.LC_SEGMENT_64, size=72)
    with pytest.raises(NativeTypeError) as excinfo:
        _classify(record)
    assert excinfo.value.expected is native.NativeSegmentCommand
    assert excinfo.value.actual is native.NativeCommand


def test_known_commands_is_closed() -> None:
    known = known_commands()
    assert isinstance(known, frozenset)
    assert LoadCommandType.LC_SEGMENT_64 in known
    assert 0x9999 not in known
    assert macho.variant_for(0x9999) is UnknownCommand
    assert macho.variant_for(LoadCommandType.LC_RPATH) is RPathCommand


def test_duplicate_discriminators_are_rejected() -> None:
    class Clash(MainCommand):
        __slots__ = ()

    with pytest.raises(ValueError, match="claimed by both"):
        _build_table([MainCommand, Clash])


def test_repr_includes_base_fields(macho_bytes: bytes, config) -> None:
    root = macho.parse(macho_bytes, config)
    unknown = root[0].commands[1]
    assert repr(unknown) == (
        f"UnknownCommand(command=0x9999, size=0x10, offset={unknown.base().offset:#x}, "
        "original_command=0x9999)"
    )
    root.close()
    assert repr(unknown) == "<UnknownCommand released>"


def test_to_dict_lists_base_then_fields(macho_bytes: bytes, config) -> None:
    with macho.parse(macho_bytes, config) as root:
        segment = root[0].commands[0]
        data = segment.to_dict()
        assert list(data)[:3] == ["command", "size", "offset"]
        assert data["name"] == "__TEXT"
        assert data["numberof_sections"] == 2
