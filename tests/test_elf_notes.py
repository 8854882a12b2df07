"""ELF notes: classification by engine-computed type, views and release."""

from __future__ import annotations

import struct

import pytest

import tether
from shared.config import ELFConfig, TetherConfig
from tether import elf
from tether.core import Anchor, NativeTypeError, ReleasedBinaryError
from tether.elf import (
    AndroidIdent,
    BuildId,
    CoreAuxv,
    Note,
    NoteAbi,
    NoteType,
    UnknownNote,
    classify,
    known_note_types,
    type_owner,
    type_to_section,
)
from tether.elf.dispatch import _build_table
from tether.engine import native

from tests import builders as b


def test_header(elf_bytes: bytes, config: TetherConfig) -> None:
    with elf.parse(elf_bytes, config) as binary:
        header = binary.header
        assert header.is_64
        assert header.machine_name == "x86_64"
        assert header.file_type_name == "DYN"
        assert header.numberof_sections == 5
        assert header.numberof_segments == 0


def test_notes_are_classified(elf_bytes: bytes, config: TetherConfig) -> None:
    with elf.parse(elf_bytes, config) as binary:
        notes = list(binary.notes)
        assert [type(n) for n in notes] == [NoteAbi, BuildId, UnknownNote]
        assert [n.section_name for n in notes] == [
            ".note.ABI-tag", ".note.gnu.build-id", ".note.acme",
        ]

        abi = notes[0]
        assert abi.abi == 0
        assert abi.abi_name == "LINUX"
        assert abi.version == (3, 2, 0)
        assert abi.type is NoteType.GNU_ABI_TAG

        assert notes[1].build_id == bytes(range(20)).hex()

        unknown = notes[2]
        assert unknown.original_type == 0x1234
        assert unknown.name == "ACME"
        assert unknown.description == b"payload!"
        assert unknown.type is NoteType.UNKNOWN


def test_base_fields(elf_bytes: bytes, config: TetherConfig) -> None:
    with elf.parse(elf_bytes, config) as binary:
        abi, build_id, unknown = binary.notes
        assert abi.base().type == "GNU_ABI_TAG"
        assert abi.base().offset == 64
        assert abi.base().size == 12 + 4 + 16
        assert build_id.base().offset == abi.base().offset + abi.base().size
        assert unknown.base().type == "UNKNOWN"
        assert unknown.base().original_type == 0x1234
        assert unknown.base().name == "ACME"


def test_recognised_type_without_variant_is_a_plain_note(config: TetherConfig) -> None:
    data = b.ELFBuilder().note("GNU", 5, b"\x00" * 16).build()
    with elf.parse(data, config) as binary:
        (note,) = binary.notes
        assert type(note) is Note
        assert note.type is NoteType.GNU_PROPERTY_TYPE_0
        assert note.base().original_type == 5


def test_same_raw_type_depends_on_owner_and_file_type(config: TetherConfig) -> None:
    data = (
        b.ELFBuilder()
        .note("GNU", 1, struct.pack("<IIII", 3, 12, 0, 0))
        .note("Android", 1, struct.pack("<I", 30) + b"r25c".ljust(64, b"\x00") + b"8775105".ljust(64, b"\x00"))
        .note("CORE", 1, b"\x00" * 8)
        .build()
    )
    with elf.parse(data, config) as binary:
        abi, android, core = binary.notes
        assert isinstance(abi, NoteAbi)
        assert abi.abi_name == "FREEBSD"
        assert isinstance(android, AndroidIdent)
        assert android.sdk_version == 30
        assert android.ndk_version == "r25c"
        assert android.ndk_build_number == "8775105"
        # Outside a core file, "CORE" notes are not recognised.
        assert isinstance(core, UnknownNote)


def test_type_owner_and_section_reverse_lookups(elf_bytes: bytes, config: TetherConfig) -> None:
    with elf.parse(elf_bytes, config) as binary:
        for note in binary.notes:
            if note.type is NoteType.UNKNOWN:
                assert type_owner(note.type) is None
                assert type_to_section(note.type) is None
            else:
                assert type_owner(note.type) == note.name
                assert type_to_section(note.type) == note.section_name

    assert type_owner(NoteType.ANDROID_IDENT) == "Android"
    assert type_to_section(NoteType.ANDROID_IDENT) == ".note.android.ident"
    assert type_owner(NoteType.CORE_AUXV) == "CORE"
    assert type_owner(NoteType.CORE_ARM_PAC_MASK) == "LINUX"
    assert type_to_section(NoteType.CORE_PRSTATUS) is None
    assert type_owner(NoteType.UNKNOWN) is None


def test_core_auxv(config: TetherConfig) -> None:
    auxv = struct.pack("<QQQQQQ", 6, 0x1000, 25, 0x7FFF0000, 0, 0)
    data = (
        b.ELFBuilder(file_type=b.ET_CORE)
        .note("CORE", 6, auxv)
        .note("CORE", 1, b"\x00" * 16)
        .build()
    )
    with elf.parse(data, config) as binary:
        assert binary.header.file_type_name == "CORE"
        auxv_note, prstatus = binary.notes
        assert isinstance(auxv_note, CoreAuxv)
        assert auxv_note.values == {6: 0x1000, 25: 0x7FFF0000}
        assert type(prstatus) is Note
        assert prstatus.type is NoteType.CORE_PRSTATUS


def test_notes_from_segments(config: TetherConfig) -> None:
    data = b.ELFBuilder().note("GNU", 3, b"\xAB" * 8).build_segments()
    with elf.parse(data, config) as binary:
        (note,) = binary.notes
        assert isinstance(note, BuildId)
        assert note.build_id == "ab" * 8
        assert note.section_name == ""
        assert binary.header.numberof_segments == 1


def test_segment_fallback_can_be_disabled() -> None:
    config = TetherConfig(elf=ELFConfig(notes_from_segments=False))
    data = b.ELFBuilder().note("GNU", 3, b"\xAB" * 8).build_segments()
    with elf.parse(data, config) as binary:
        assert list(binary.notes) == []


def test_truncated_abi_tag_fails_parse(config: TetherConfig) -> None:
    data = b.ELFBuilder().note("GNU", 1, b"\x00" * 8).build()
    assert elf.parse(data, config) is None


def test_get_and_has(elf_bytes: bytes, config: TetherConfig) -> None:
    with elf.parse(elf_bytes, config) as binary:
        assert isinstance(binary.get(NoteType.GNU_BUILD_ID), BuildId)
        assert binary.has(NoteType.UNKNOWN)
        assert not binary.has(NoteType.CORE_AUXV)
        assert binary.get(NoteType.ANDROID_IDENT) is None


def test_access_after_release_is_fatal(elf_bytes: bytes, config: TetherConfig) -> None:
    binary = elf.parse(elf_bytes, config)
    notes = binary.notes
    abi = notes[0]
    binary.close()
    assert binary.released
    with pytest.raises(ReleasedBinaryError):
        abi.base()
    with pytest.raises(ReleasedBinaryError):
        _ = abi.version
    with pytest.raises(ReleasedBinaryError):
        list(notes)
    with pytest.raises(ReleasedBinaryError):
        _ = binary.header
    assert repr(abi) == "<NoteAbi released>"
    assert repr(binary) == "<Binary <memory> released>"
    binary.close()


def test_unknown_note_repr(elf_bytes: bytes, config: TetherConfig) -> None:
    with elf.parse(elf_bytes, config) as binary:
        unknown = binary.notes[2]
        offset = unknown.base().offset
        assert repr(unknown) == (
            f"UnknownNote(name='ACME', type=UNKNOWN, original_type=0x1234, "
            f"size=0x1c, offset={offset:#x})"
        )


def test_to_dict(elf_bytes: bytes, config: TetherConfig) -> None:
    with elf.parse(elf_bytes, config) as binary:
        data = binary.notes[0].to_dict()
        assert data["type"] == "GNU_ABI_TAG"
        assert data["abi"] == 0
        assert data["version"] == (3, 2, 0)


def test_every_recognised_type_has_a_variant() -> None:
    known = known_note_types()
    assert isinstance(known, frozenset)
    assert NoteType.UNKNOWN not in known
    assert known == frozenset(NoteType) - {NoteType.UNKNOWN}


def test_wrong_engine_type_is_a_fatal_fault() -> None:
    record = native.NativeNote(
        name="GNU", type=NoteType.GNU_ABI_TAG, original_type=1, description=b"",
    )
    anchor = Anchor([record], "test")
    with pytest.raises(NativeTypeError):
        classify(anchor.lend(record))


def test_duplicate_note_types_are_rejected() -> None:
    with pytest.raises(ValueError, match="claimed by both"):
        _build_table([BuildId, BuildId])


def test_auto_detect(write_file, elf_bytes: bytes, config: TetherConfig) -> None:
    root = tether.parse(write_file("libfoo.so", elf_bytes), config)
    assert isinstance(root, elf.Binary)
    assert len(root.notes) == 3
    root.close()
