"""
Load-Command Dispatch
======================

Maps a raw ``cmd`` discriminator to the load-command variant that wraps
it.  The table is closed: it is built once, at import time, from the
variants listed below, and callers can inspect it through
:func:`known_commands` but never extend it.

:func:`classify` is total.  A discriminator missing from the table yields
an :class:`~tether.macho.commands.UnknownCommand` that keeps the raw
value; a known discriminator sitting on an engine record of the wrong
type is an engine defect and raises
:class:`~tether.core.errors.NativeTypeError`.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from shared.logger import get_logger

from tether.core.errors import NativeTypeError
from tether.core.handle import Handle
from tether.engine.native import NativeCommand
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
    LinkerOptHint,
    MainCommand,
    RPathCommand,
    SegmentCommand,
    SegmentSplitInfo,
    SourceVersion,
    SubFramework,
    SymbolCommand,
    ThreadCommand,
    UnknownCommand,
    UUIDCommand,
    VersionMin,
)

_log = get_logger("macho")

_VARIANTS: tuple[type[Command], ...] = (
    SegmentCommand,
    SymbolCommand,
    DynamicSymbolCommand,
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
    SegmentSplitInfo,
    FunctionStarts,
    DataInCode,
    CodeSignatureDir,
    LinkerOptHint,
    DyldExportsTrie,
    DyldChainedFixups,
)


def _build_table(variants: Iterable[type[Command]]) -> Mapping[int, type[Command]]:
    """Index *variants* by discriminator, rejecting overlaps."""
    table: dict[int, type[Command]] = {}
    for variant in variants:
        for discriminator in variant.commands:
            owner = table.get(int(discriminator))
            if owner is not None:
                raise ValueError(
                    f"discriminator 0x{int(discriminator):x} claimed by both "
                    f"{owner.__name__} and {variant.__name__}"
                )
            table[int(discriminator)] = variant
    return MappingProxyType(table)


_TABLE: Mapping[int, type[Command]] = _build_table(_VARIANTS)


def classify(handle: Handle[NativeCommand]) -> Command:
    """Wrap the command behind *handle* in its variant.

    Raises:
        NativeTypeError: If the discriminator is known but the engine
            record is not the type that variant wraps.
    """
    native = handle.get()
    variant = _TABLE.get(native.command)
    if variant is None:
        _log.debug(
            "Unrecognised load command 0x%x at offset 0x%x",
            native.command, native.command_offset,
        )
        return UnknownCommand.from_native(handle)
    if not isinstance(native, variant.native_type):
        raise NativeTypeError(native.command, variant.native_type, type(native))
    return variant.from_native(handle)


def variant_for(discriminator: int) -> type[Command]:
    """Return the variant *discriminator* classifies to."""
    return _TABLE.get(discriminator, UnknownCommand)


def known_commands() -> frozenset[int]:
    """Every discriminator with a registered variant."""
    return frozenset(_TABLE)
