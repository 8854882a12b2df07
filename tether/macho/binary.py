"""
Mach-O Binaries
================

Root containers of the Mach-O bridge.

A :class:`FatBinary` owns the whole record graph the engine built for one
file; a thin file is a fat binary with a single slice.  Every
:class:`Binary` (slice), command, section and symbol obtained from it
carries the fat binary's anchor: closing the fat binary releases them
all at once.

:meth:`FatBinary.take` hands one slice over to the caller.  The slice
leaves the fat graph and becomes the root of its own anchor, so it
outlives the fat binary and is released by its own :meth:`Binary.close`.

Usage::

    with tether.macho.parse("/usr/lib/dyld") as fat:
        for binary in fat:
            for command in binary.commands:
                print(command.base().discriminator, command)
"""

from __future__ import annotations

from typing import Any, Iterator, Sequence, overload

from shared.config import TetherConfig, get_config
from shared.logger import get_logger

from tether.core.convert import NativeWrapper
from tether.core.errors import NativeTypeError
from tether.core.handle import Anchor, Ownership
from tether.core.source import Source, read_source
from tether.core.views import CollectionView
from tether.engine.macho_format import cpu_name
from tether.engine.macho_parser import MachOParser
from tether.engine.native import (
    NativeCommand,
    NativeFatBinary,
    NativeMachOBinary,
    NativeSection,
    NativeSymbol,
)
from tether.macho.commands import (
    Command,
    DylibCommand,
    Header,
    Section,
    SegmentCommand,
    Symbol,
    SymbolCommand,
)
from tether.macho.dispatch import classify

_log = get_logger("macho")


class Binary(NativeWrapper[NativeMachOBinary]):
    """One architecture slice of a Mach-O file."""

    native_type = NativeMachOBinary
    __slots__ = ()

    # ------------------------------------------------------------------ #
    #  Views
    # ------------------------------------------------------------------ #

    @property
    def header(self) -> Header:
        return Header.from_native(self._handle.lend(self._handle.get().header))

    @property
    def fat_offset(self) -> int:
        """Offset of this slice inside its fat file (0 for thin files)."""
        return self._handle.get().fat_offset

    @property
    def commands(self) -> CollectionView[Command]:
        """Every load command, in file order, classified into its variant."""
        return CollectionView(
            self._handle.anchor,
            lambda: self._handle.get().commands,
            classify,
            label="commands",
        )

    def _commands_of(self, variant: type[Command]) -> list[NativeCommand]:
        """Engine records claimed by *variant*, checked against its native type.

        Raises:
            NativeTypeError: If a claimed record is not *variant*'s engine type.
        """
        matched = []
        for native in self._handle.get().commands:
            if native.command not in variant.commands:
                continue
            if not isinstance(native, variant.native_type):
                raise NativeTypeError(native.command, variant.native_type, type(native))
            matched.append(native)
        return matched

    @property
    def segments(self) -> CollectionView[SegmentCommand]:
        return CollectionView(
            self._handle.anchor,
            lambda: self._commands_of(SegmentCommand),
            classify,
            label="segments",
        )

    @property
    def libraries(self) -> CollectionView[DylibCommand]:
        """Dylib commands (dependencies and the slice's own identity)."""
        return CollectionView(
            self._handle.anchor,
            lambda: self._commands_of(DylibCommand),
            classify,
            label="libraries",
        )

    @property
    def sections(self) -> CollectionView[Section]:
        """Sections of every segment, flattened in segment order."""
        def source() -> list[NativeSection]:
            return [
                section
                for segment in self._commands_of(SegmentCommand)
                for section in segment.sections  # type: ignore[attr-defined]
            ]
        return CollectionView(self._handle.anchor, source, Section.from_native, label="sections")

    @property
    def symbols(self) -> CollectionView[Symbol]:
        """Symbols of every ``LC_SYMTAB`` command."""
        def source() -> list[NativeSymbol]:
            return [
                symbol
                for symtab in self._commands_of(SymbolCommand)
                for symbol in symtab.symbols  # type: ignore[attr-defined]
            ]
        return CollectionView(self._handle.anchor, source, Symbol.from_native, label="symbols")

    # ------------------------------------------------------------------ #
    #  Lookup
    # ------------------------------------------------------------------ #

    def get(self, kind: int | type[Command]) -> Command | None:
        """Return the first command matching a discriminator or a variant."""
        for command in self.commands:
            if isinstance(kind, type):
                if isinstance(command, kind):
                    return command
            elif command.base().discriminator == kind:
                return command
        return None

    def has(self, kind: int | type[Command]) -> bool:
        return self.get(kind) is not None

    # ------------------------------------------------------------------ #
    #  Lifetime
    # ------------------------------------------------------------------ #

    @property
    def owns_anchor(self) -> bool:
        """``True`` for a slice taken out of its fat binary."""
        return self._handle.ownership is Ownership.OWNED

    def close(self) -> None:
        """Release a taken slice.

        A slice still borrowed from its fat binary is released together
        with the fat binary; closing it here does nothing.
        """
        if self.owns_anchor:
            self._handle.anchor.release()

    def __enter__(self) -> Binary:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        if self.released:
            return "<Binary released>"
        native = self._handle.get()
        return f"<Binary {cpu_name(native.header.cpu_type)} {len(native.commands)} commands>"


class FatBinary(Sequence[Binary]):
    """Root container of a parsed Mach-O file: one :class:`Binary` per slice."""

    __slots__ = ("_anchor",)

    def __init__(self, native: NativeFatBinary, label: str = "fat binary") -> None:
        self._anchor = Anchor(native, label)

    @property
    def _native(self) -> NativeFatBinary:
        return self._anchor.root  # type: ignore[return-value]

    @property
    def anchor(self) -> Anchor:
        return self._anchor

    @property
    def released(self) -> bool:
        return not self._anchor.alive

    @property
    def is_fat(self) -> bool:
        """``True`` when the file carried a fat header."""
        return self._native.is_fat

    def _view(self) -> CollectionView[Binary]:
        return CollectionView(
            self._anchor,
            lambda: self._native.binaries,
            Binary.from_native,
            label="slices",
        )

    def __len__(self) -> int:
        return len(self._view())

    @overload
    def __getitem__(self, index: int) -> Binary: ...

    @overload
    def __getitem__(self, index: slice) -> list[Binary]: ...

    def __getitem__(self, index: int | slice) -> Binary | list[Binary]:
        return self._view()[index]

    def __iter__(self) -> Iterator[Binary]:
        return iter(self._view())

    def take(self, index: int) -> Binary:
        """Move slice *index* out of the fat binary.

        The returned binary is the root of a new anchor and stays valid
        after this fat binary is closed.
        """
        native = self._native.binaries.pop(index)
        anchor = Anchor(native, f"{self._anchor.label}[{index}]")
        _log.debug("Slice %d moved out of %s", index, self._anchor.label)
        return Binary.from_native(anchor.adopt(native))

    def close(self) -> None:
        """Release the record graph.  Idempotent."""
        self._anchor.release()

    def __enter__(self) -> FatBinary:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        if self.released:
            return f"<FatBinary {self._anchor.label} released>"
        return f"<FatBinary {self._anchor.label} {len(self)} slices>"


def parse(source: Source, config: TetherConfig | None = None) -> FatBinary | None:
    """Parse a Mach-O file (path or raw bytes).

    Returns:
        The root container, or ``None`` when the data is not a valid
        Mach-O file or exceeds the configured size limit.

    Raises:
        FileNotFoundError: If *source* names a path that does not exist.
    """
    config = config or get_config()
    data, label = read_source(source, config.global_settings.max_file_size, _log)
    if data is None:
        return None

    with _log.timed(f"parse {label}"):
        parser = MachOParser(data, config.macho, get_logger("engine"))
        if not parser.parse():
            _log.error("Failed to parse %s as Mach-O", label)
            return None
    return FatBinary(parser.binary, label)
