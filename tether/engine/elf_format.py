"""
ELF Note Types
===============

The ``n_type`` field of an ELF note only has meaning together with the
note's owner name (and, for core dumps, the file type).  This module maps
the raw ``(file type, n_type, owner)`` triple onto :class:`NoteType`.

References:
    - System V Application Binary Interface, "Note Section".
    - Linux ``include/uapi/linux/elf.h``.
    - Android NDK ``abi-note.S``.
"""

from __future__ import annotations

import enum

ET_CORE: int = 4


class NoteType(str, enum.Enum):
    """Engine-level classification of an ELF note."""
    UNKNOWN = "UNKNOWN"
    GNU_ABI_TAG = "GNU_ABI_TAG"
    GNU_HWCAP = "GNU_HWCAP"
    GNU_BUILD_ID = "GNU_BUILD_ID"
    GNU_GOLD_VERSION = "GNU_GOLD_VERSION"
    GNU_PROPERTY_TYPE_0 = "GNU_PROPERTY_TYPE_0"
    GNU_BUILD_ATTRIBUTE_OPEN = "GNU_BUILD_ATTRIBUTE_OPEN"
    GNU_BUILD_ATTRIBUTE_FUNC = "GNU_BUILD_ATTRIBUTE_FUNC"
    CRASHPAD = "CRASHPAD"
    CORE_PRSTATUS = "CORE_PRSTATUS"
    CORE_FPREGSET = "CORE_FPREGSET"
    CORE_PRPSINFO = "CORE_PRPSINFO"
    CORE_TASKSTRUCT = "CORE_TASKSTRUCT"
    CORE_AUXV = "CORE_AUXV"
    CORE_PSTATUS = "CORE_PSTATUS"
    CORE_FPREGS = "CORE_FPREGS"
    CORE_PSINFO = "CORE_PSINFO"
    CORE_LWPSTATUS = "CORE_LWPSTATUS"
    CORE_LWPSINFO = "CORE_LWPSINFO"
    CORE_WIN32PSTATUS = "CORE_WIN32PSTATUS"
    CORE_FILE = "CORE_FILE"
    CORE_PRXFPREG = "CORE_PRXFPREG"
    CORE_SIGINFO = "CORE_SIGINFO"
    CORE_ARM_VFP = "CORE_ARM_VFP"
    CORE_ARM_TLS = "CORE_ARM_TLS"
    CORE_ARM_HW_BREAK = "CORE_ARM_HW_BREAK"
    CORE_ARM_HW_WATCH = "CORE_ARM_HW_WATCH"
    CORE_ARM_SYSTEM_CALL = "CORE_ARM_SYSTEM_CALL"
    CORE_ARM_SVE = "CORE_ARM_SVE"
    CORE_ARM_PAC_MASK = "CORE_ARM_PAC_MASK"
    CORE_ARM_PACA_KEYS = "CORE_ARM_PACA_KEYS"
    CORE_ARM_PACG_KEYS = "CORE_ARM_PACG_KEYS"
    CORE_TAGGED_ADDR_CTRL = "CORE_TAGGED_ADDR_CTRL"
    CORE_PAC_ENABLED_KEYS = "CORE_PAC_ENABLED_KEYS"
    CORE_X86_TLS = "CORE_X86_TLS"
    CORE_X86_IOPERM = "CORE_X86_IOPERM"
    CORE_X86_XSTATE = "CORE_X86_XSTATE"
    CORE_X86_CET = "CORE_X86_CET"
    ANDROID_IDENT = "ANDROID_IDENT"
    ANDROID_MEMTAG = "ANDROID_MEMTAG"
    ANDROID_KUSER = "ANDROID_KUSER"
    GO_BUILDID = "GO_BUILDID"
    STAPSDT = "STAPSDT"


# ---------------------------------------------------------------------------
# Owner-specific n_type tables
# ---------------------------------------------------------------------------

_OWNER_TYPES: dict[str, dict[int, NoteType]] = {
    "GNU": {
        1: NoteType.GNU_ABI_TAG,
        2: NoteType.GNU_HWCAP,
        3: NoteType.GNU_BUILD_ID,
        4: NoteType.GNU_GOLD_VERSION,
        5: NoteType.GNU_PROPERTY_TYPE_0,
        0x100: NoteType.GNU_BUILD_ATTRIBUTE_OPEN,
        0x101: NoteType.GNU_BUILD_ATTRIBUTE_FUNC,
    },
    "Android": {
        1: NoteType.ANDROID_IDENT,
        3: NoteType.ANDROID_KUSER,
        4: NoteType.ANDROID_MEMTAG,
    },
    "Go": {
        4: NoteType.GO_BUILDID,
    },
    "stapsdt": {
        3: NoteType.STAPSDT,
    },
    "Crashpad": {
        0x4F464E49: NoteType.CRASHPAD,
    },
}

_CORE_OWNERS: frozenset[str] = frozenset({"CORE", "LINUX"})

_CORE_TYPES: dict[int, NoteType] = {
    1: NoteType.CORE_PRSTATUS,
    2: NoteType.CORE_FPREGSET,
    3: NoteType.CORE_PRPSINFO,
    4: NoteType.CORE_TASKSTRUCT,
    6: NoteType.CORE_AUXV,
    10: NoteType.CORE_PSTATUS,
    12: NoteType.CORE_FPREGS,
    13: NoteType.CORE_PSINFO,
    16: NoteType.CORE_LWPSTATUS,
    17: NoteType.CORE_LWPSINFO,
    18: NoteType.CORE_WIN32PSTATUS,
    0x46494C45: NoteType.CORE_FILE,
    0x46E62B7F: NoteType.CORE_PRXFPREG,
    0x53494749: NoteType.CORE_SIGINFO,
    0x200: NoteType.CORE_X86_TLS,
    0x201: NoteType.CORE_X86_IOPERM,
    0x202: NoteType.CORE_X86_XSTATE,
    0x203: NoteType.CORE_X86_CET,
    0x400: NoteType.CORE_ARM_VFP,
    0x401: NoteType.CORE_ARM_TLS,
    0x402: NoteType.CORE_ARM_HW_BREAK,
    0x403: NoteType.CORE_ARM_HW_WATCH,
    0x404: NoteType.CORE_ARM_SYSTEM_CALL,
    0x405: NoteType.CORE_ARM_SVE,
    0x406: NoteType.CORE_ARM_PAC_MASK,
    0x407: NoteType.CORE_ARM_PACA_KEYS,
    0x408: NoteType.CORE_ARM_PACG_KEYS,
    0x409: NoteType.CORE_TAGGED_ADDR_CTRL,
    0x40A: NoteType.CORE_PAC_ENABLED_KEYS,
}


def convert_type(file_type: int, n_type: int, name: str) -> NoteType:
    """Classify a raw note.

    Args:
        file_type: ``e_type`` of the containing ELF file.
        n_type: Raw ``n_type`` of the note.
        name: Owner name, without the trailing NUL.

    Returns:
        The matching :class:`NoteType`, or ``NoteType.UNKNOWN``.
    """
    if file_type == ET_CORE and name in _CORE_OWNERS:
        return _CORE_TYPES.get(n_type, NoteType.UNKNOWN)
    return _OWNER_TYPES.get(name, {}).get(n_type, NoteType.UNKNOWN)


# ---------------------------------------------------------------------------
# Reverse lookups: owner and conventional section of a note type
# ---------------------------------------------------------------------------

# Register-set notes added by the Linux kernel carry the "LINUX" owner.
_LINUX_CORE_TYPES: frozenset[NoteType] = frozenset({
    NoteType.CORE_X86_TLS,
    NoteType.CORE_X86_IOPERM,
    NoteType.CORE_X86_XSTATE,
    NoteType.CORE_X86_CET,
    NoteType.CORE_ARM_VFP,
    NoteType.CORE_ARM_TLS,
    NoteType.CORE_ARM_HW_BREAK,
    NoteType.CORE_ARM_HW_WATCH,
    NoteType.CORE_ARM_SYSTEM_CALL,
    NoteType.CORE_ARM_SVE,
    NoteType.CORE_ARM_PAC_MASK,
    NoteType.CORE_ARM_PACA_KEYS,
    NoteType.CORE_ARM_PACG_KEYS,
    NoteType.CORE_TAGGED_ADDR_CTRL,
    NoteType.CORE_PAC_ENABLED_KEYS,
})

_TYPE_OWNERS: dict[NoteType, str] = {
    **{
        note_type: owner
        for owner, types in _OWNER_TYPES.items()
        for note_type in types.values()
    },
    **{
        note_type: "LINUX" if note_type in _LINUX_CORE_TYPES else "CORE"
        for note_type in _CORE_TYPES.values()
    },
}

_TYPE_SECTIONS: dict[NoteType, str] = {
    NoteType.GNU_ABI_TAG: ".note.ABI-tag",
    NoteType.GNU_HWCAP: ".note.gnu.hwcap",
    NoteType.GNU_BUILD_ID: ".note.gnu.build-id",
    NoteType.GNU_GOLD_VERSION: ".note.gnu.gold-version",
    NoteType.GNU_PROPERTY_TYPE_0: ".note.gnu.property",
    NoteType.GNU_BUILD_ATTRIBUTE_OPEN: ".gnu.build.attributes",
    NoteType.GNU_BUILD_ATTRIBUTE_FUNC: ".gnu.build.attributes",
    NoteType.ANDROID_IDENT: ".note.android.ident",
    NoteType.ANDROID_MEMTAG: ".note.android.memtag",
    NoteType.GO_BUILDID: ".note.go.buildid",
    NoteType.STAPSDT: ".note.stapsdt",
    NoteType.CRASHPAD: ".note.crashpad.info",
}


def type_owner(note_type: NoteType) -> str | None:
    """Return the owner name that produces *note_type* (``None`` for ``UNKNOWN``)."""
    return _TYPE_OWNERS.get(note_type)


def type_to_section(note_type: NoteType) -> str | None:
    """Return the section a linker conventionally puts *note_type* in.

    Core-dump notes live in ``PT_NOTE`` segments only and have no section.
    """
    return _TYPE_SECTIONS.get(note_type)


# ---------------------------------------------------------------------------
# GNU ABI tag operating systems
# ---------------------------------------------------------------------------

_ABI_NAMES: dict[int, str] = {
    0: "LINUX",
    1: "GNU",
    2: "SOLARIS2",
    3: "FREEBSD",
    4: "NETBSD",
    5: "SYLLABLE",
    6: "NACL",
}


def abi_name(abi: int) -> str:
    return _ABI_NAMES.get(abi, f"UNKNOWN({abi})")
