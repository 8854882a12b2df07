"""
ELF Notes
==========

Safe value types for the notes of a parsed ELF file.

The engine computes each note's :class:`~tether.engine.elf_format.NoteType`
from the owner name and the raw ``n_type`` (``n_type`` alone is ambiguous:
type 1 is ``NT_GNU_ABI_TAG`` for ``"GNU"`` but ``NT_PRSTATUS`` in a core
file).  That type is the discriminator the dispatcher classifies on; the
raw value stays available as ``original_type``.

References:
    - System V Application Binary Interface, "Note Section".
    - LIEF. ``LIEF::ELF::Note``.
"""

from __future__ import annotations

from typing import Any, ClassVar

from tether.core.convert import NativeWrapper, native_field
from tether.core.handle import Handle
from tether.core.models import NoteRecord
from tether.engine.elf_format import NoteType, abi_name
from tether.engine.native import (
    NativeAndroidIdent,
    NativeCoreAuxv,
    NativeElfHeader,
    NativeNote,
    NativeNoteAbi,
)
from tether.engine.elf_parser import file_type_name, machine_name


class Header(NativeWrapper[NativeElfHeader]):
    """ELF file header."""

    native_type = NativeElfHeader
    __slots__ = ()

    identity_class = native_field()
    identity_data = native_field()
    file_type = native_field()
    machine = native_field()
    entrypoint = native_field()
    numberof_sections = native_field()
    numberof_segments = native_field()

    @property
    def is_64(self) -> bool:
        return self.identity_class == 2

    @property
    def machine_name(self) -> str:
        return machine_name(self.machine)

    @property
    def file_type_name(self) -> str:
        return file_type_name(self.file_type)


class Note(NativeWrapper[NativeNote]):
    """An ELF note.

    Used as-is for every recognised note type without a dedicated variant.
    """

    native_type: ClassVar[type] = NativeNote
    note_types: ClassVar[tuple[NoteType, ...]] = ()

    __slots__ = ("_base",)

    name = native_field()
    description = native_field()

    def __init__(self, handle: Handle[NativeNote]) -> None:
        super().__init__(handle)
        native = handle.get()
        self._base = NoteRecord(
            name=native.name,
            type=native.type.value,
            original_type=native.original_type,
            size=native.size,
            offset=native.offset,
        )

    def base(self) -> NoteRecord:
        """Owner, type, raw type, size and offset of this note."""
        self._handle.anchor.ensure_alive()
        return self._base

    @property
    def type(self) -> NoteType:
        return self._handle.get().type

    @property
    def section_name(self) -> str:
        """Name of the section holding the note (empty for segment notes)."""
        return self._handle.get().section_name

    def to_dict(self) -> dict[str, Any]:
        return {**self.base().model_dump(), **super().to_dict()}

    def _render_fields(self) -> str:
        base = self._base
        head = (
            f"name={base.name!r}, type={base.type}, "
            f"original_type={base.original_type:#x}, size={base.size:#x}, "
            f"offset={base.offset:#x}"
        )
        rest = ", ".join(
            f"{name}={getattr(self, name)!r}" for name in self.fields
            if name not in ("name", "description", "original_type")
        )
        return f"{head}, {rest}" if rest else head


class UnknownNote(Note):
    """A note whose (owner, type) pair the engine does not recognise."""

    __slots__ = ()

    original_type = native_field()


class NoteAbi(Note):
    """``NT_GNU_ABI_TAG``: target operating system and minimum kernel."""

    native_type = NativeNoteAbi
    note_types = (NoteType.GNU_ABI_TAG,)
    __slots__ = ()

    abi = native_field()
    version = native_field()

    @property
    def abi_name(self) -> str:
        return abi_name(self.abi)


class BuildId(Note):
    """``NT_GNU_BUILD_ID``: the description is the build id itself."""

    note_types = (NoteType.GNU_BUILD_ID, NoteType.GO_BUILDID)
    __slots__ = ()

    @property
    def build_id(self) -> str:
        return self.description.hex()


class AndroidIdent(Note):
    native_type = NativeAndroidIdent
    note_types = (NoteType.ANDROID_IDENT,)
    __slots__ = ()

    sdk_version = native_field()
    ndk_version = native_field()
    ndk_build_number = native_field()


class CoreAuxv(Note):
    """``NT_AUXV`` of a core dump: ``(a_type, a_val)`` pairs up to ``AT_NULL``."""

    native_type = NativeCoreAuxv
    note_types = (NoteType.CORE_AUXV,)
    __slots__ = ()

    values = native_field(convert=dict)
