"""
Mach-O Format Constants
========================

Magic numbers, CPU and file types, and the load-command discriminator
table of the Mach-O object format.

References:
    - Apple. ``<mach-o/loader.h>``, ``<mach-o/fat.h>``, ``<mach/machine.h>``.
"""

from __future__ import annotations

import enum

# ---------------------------------------------------------------------------
# Magic numbers (as read little-endian from the first four bytes)
# ---------------------------------------------------------------------------

MH_MAGIC: int = 0xFEEDFACE
MH_CIGAM: int = 0xCEFAEDFE
MH_MAGIC_64: int = 0xFEEDFACF
MH_CIGAM_64: int = 0xCFFAEDFE

# Fat headers are always big-endian.
FAT_MAGIC: int = 0xCAFEBABE
FAT_MAGIC_64: int = 0xCAFEBABF

# A Java class file shares FAT_MAGIC; its version field is far above this.
FAT_MAX_ARCHS: int = 64

MACH_HEADER_SIZE: int = 28
MACH_HEADER_64_SIZE: int = 32

# ---------------------------------------------------------------------------
# CPU types
# ---------------------------------------------------------------------------

CPU_ARCH_ABI64: int = 0x01000000
CPU_ARCH_ABI64_32: int = 0x02000000

CPU_TYPE_X86: int = 7
CPU_TYPE_X86_64: int = CPU_TYPE_X86 | CPU_ARCH_ABI64
CPU_TYPE_ARM: int = 12
CPU_TYPE_ARM64: int = CPU_TYPE_ARM | CPU_ARCH_ABI64
CPU_TYPE_ARM64_32: int = CPU_TYPE_ARM | CPU_ARCH_ABI64_32
CPU_TYPE_POWERPC: int = 18
CPU_TYPE_POWERPC64: int = CPU_TYPE_POWERPC | CPU_ARCH_ABI64

_CPU_NAMES: dict[int, str] = {
    CPU_TYPE_X86: "x86",
    CPU_TYPE_X86_64: "x86_64",
    CPU_TYPE_ARM: "ARM",
    CPU_TYPE_ARM64: "ARM64",
    CPU_TYPE_ARM64_32: "ARM64_32",
    CPU_TYPE_POWERPC: "PowerPC",
    CPU_TYPE_POWERPC64: "PowerPC64",
}

# ---------------------------------------------------------------------------
# File types
# ---------------------------------------------------------------------------

MH_OBJECT: int = 0x1
MH_EXECUTE: int = 0x2
MH_FVMLIB: int = 0x3
MH_CORE: int = 0x4
MH_PRELOAD: int = 0x5
MH_DYLIB: int = 0x6
MH_DYLINKER: int = 0x7
MH_BUNDLE: int = 0x8
MH_DYLIB_STUB: int = 0x9
MH_DSYM: int = 0xA
MH_KEXT_BUNDLE: int = 0xB
MH_FILESET: int = 0xC

_FILETYPE_NAMES: dict[int, str] = {
    MH_OBJECT: "OBJECT",
    MH_EXECUTE: "EXECUTE",
    MH_FVMLIB: "FVMLIB",
    MH_CORE: "CORE",
    MH_PRELOAD: "PRELOAD",
    MH_DYLIB: "DYLIB",
    MH_DYLINKER: "DYLINKER",
    MH_BUNDLE: "BUNDLE",
    MH_DYLIB_STUB: "DYLIB_STUB",
    MH_DSYM: "DSYM",
    MH_KEXT_BUNDLE: "KEXT_BUNDLE",
    MH_FILESET: "FILESET",
}

# ---------------------------------------------------------------------------
# Load commands
# ---------------------------------------------------------------------------

LC_REQ_DYLD: int = 0x80000000


class LoadCommandType(enum.IntEnum):
    """Raw ``cmd`` values of the load commands this engine decodes or names."""
    LC_SEGMENT = 0x1
    LC_SYMTAB = 0x2
    LC_SYMSEG = 0x3
    LC_THREAD = 0x4
    LC_UNIXTHREAD = 0x5
    LC_LOADFVMLIB = 0x6
    LC_IDFVMLIB = 0x7
    LC_IDENT = 0x8
    LC_FVMFILE = 0x9
    LC_PREPAGE = 0xA
    LC_DYSYMTAB = 0xB
    LC_LOAD_DYLIB = 0xC
    LC_ID_DYLIB = 0xD
    LC_LOAD_DYLINKER = 0xE
    LC_ID_DYLINKER = 0xF
    LC_PREBOUND_DYLIB = 0x10
    LC_ROUTINES = 0x11
    LC_SUB_FRAMEWORK = 0x12
    LC_SUB_UMBRELLA = 0x13
    LC_SUB_CLIENT = 0x14
    LC_SUB_LIBRARY = 0x15
    LC_TWOLEVEL_HINTS = 0x16
    LC_PREBIND_CKSUM = 0x17
    LC_LOAD_WEAK_DYLIB = 0x18 | LC_REQ_DYLD
    LC_SEGMENT_64 = 0x19
    LC_ROUTINES_64 = 0x1A
    LC_UUID = 0x1B
    LC_RPATH = 0x1C | LC_REQ_DYLD
    LC_CODE_SIGNATURE = 0x1D
    LC_SEGMENT_SPLIT_INFO = 0x1E
    LC_REEXPORT_DYLIB = 0x1F | LC_REQ_DYLD
    LC_LAZY_LOAD_DYLIB = 0x20
    LC_ENCRYPTION_INFO = 0x21
    LC_DYLD_INFO = 0x22
    LC_DYLD_INFO_ONLY = 0x22 | LC_REQ_DYLD
    LC_LOAD_UPWARD_DYLIB = 0x23 | LC_REQ_DYLD
    LC_VERSION_MIN_MACOSX = 0x24
    LC_VERSION_MIN_IPHONEOS = 0x25
    LC_FUNCTION_STARTS = 0x26
    LC_DYLD_ENVIRONMENT = 0x27
    LC_MAIN = 0x28 | LC_REQ_DYLD
    LC_DATA_IN_CODE = 0x29
    LC_SOURCE_VERSION = 0x2A
    LC_DYLIB_CODE_SIGN_DRS = 0x2B
    LC_ENCRYPTION_INFO_64 = 0x2C
    LC_LINKER_OPTION = 0x2D
    LC_LINKER_OPTIMIZATION_HINT = 0x2E
    LC_VERSION_MIN_TVOS = 0x2F
    LC_VERSION_MIN_WATCHOS = 0x30
    LC_NOTE = 0x31
    LC_BUILD_VERSION = 0x32
    LC_DYLD_EXPORTS_TRIE = 0x33 | LC_REQ_DYLD
    LC_DYLD_CHAINED_FIXUPS = 0x34 | LC_REQ_DYLD
    LC_FILESET_ENTRY = 0x35 | LC_REQ_DYLD


def command_name(cmd: int) -> str:
    """Return the ``LC_*`` name of *cmd*, or its hex value when unnamed."""
    try:
        return LoadCommandType(cmd).name
    except ValueError:
        return f"0x{cmd:x}"


# ---------------------------------------------------------------------------
# Build-version platforms and tools
# ---------------------------------------------------------------------------

_PLATFORM_NAMES: dict[int, str] = {
    1: "MACOS",
    2: "IOS",
    3: "TVOS",
    4: "WATCHOS",
    5: "BRIDGEOS",
    6: "MACCATALYST",
    7: "IOSSIMULATOR",
    8: "TVOSSIMULATOR",
    9: "WATCHOSSIMULATOR",
    10: "DRIVERKIT",
    11: "VISIONOS",
    12: "VISIONOSSIMULATOR",
}

_TOOL_NAMES: dict[int, str] = {
    1: "CLANG",
    2: "SWIFT",
    3: "LD",
    4: "LLD",
}

# ---------------------------------------------------------------------------
# Symbol table
# ---------------------------------------------------------------------------

N_STAB: int = 0xE0
N_PEXT: int = 0x10
N_TYPE: int = 0x0E
N_EXT: int = 0x01

NLIST_SIZE: int = 12
NLIST_64_SIZE: int = 16


def cpu_name(cputype: int) -> str:
    return _CPU_NAMES.get(cputype, f"unknown({cputype})")


def filetype_name(filetype: int) -> str:
    return _FILETYPE_NAMES.get(filetype, f"0x{filetype:x}")


def platform_name(platform: int) -> str:
    return _PLATFORM_NAMES.get(platform, f"UNKNOWN({platform})")


def tool_name(tool: int) -> str:
    return _TOOL_NAMES.get(tool, f"UNKNOWN({tool})")
