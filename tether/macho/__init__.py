"""Mach-O bridge: root containers, load-command variants and their dispatcher."""

from tether.engine.macho_format import LoadCommandType
from tether.macho.binary import Binary, FatBinary, parse
from tether.macho.commands import (
    BuildVersion,
    CodeSignature,
    CodeSignatureDir,
    Command,
    DataInCode,
    DyldChainedFixups,
    DyldExportsTrie,
    DyldInfo,
    DylibCommand,
    DylinkerCommand,
    DynamicSymbolCommand,
    EncryptionInfo,
    FunctionStarts,
    Header,
    LinkEditData,
    LinkerOptHint,
    MainCommand,
    RPathCommand,
    Section,
    SegmentCommand,
    SegmentSplitInfo,
    SourceVersion,
    SubFramework,
    Symbol,
    SymbolCommand,
    ThreadCommand,
    UnknownCommand,
    UUIDCommand,
    VersionMin,
)
from tether.macho.dispatch import classify, known_commands, variant_for

__all__ = [
    "Binary",
    "BuildVersion",
    "CodeSignature",
    "CodeSignatureDir",
    "Command",
    "DataInCode",
    "DyldChainedFixups",
    "DyldExportsTrie",
    "DyldInfo",
    "DylibCommand",
    "DylinkerCommand",
    "DynamicSymbolCommand",
    "EncryptionInfo",
    "FatBinary",
    "FunctionStarts",
    "Header",
    "LinkEditData",
    "LinkerOptHint",
    "LoadCommandType",
    "MainCommand",
    "RPathCommand",
    "Section",
    "SegmentCommand",
    "SegmentSplitInfo",
    "SourceVersion",
    "SubFramework",
    "Symbol",
    "SymbolCommand",
    "ThreadCommand",
    "UUIDCommand",
    "UnknownCommand",
    "VersionMin",
    "classify",
    "known_commands",
    "parse",
    "variant_for",
]
