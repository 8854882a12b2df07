"""
Tether Data Models
===================

Pydantic models for the records every variant shares and for the
serialisable summaries produced by the command-line front end.

The shared records are frozen: :meth:`Command.base` and :meth:`Note.base`
hand out the same instance on every call, so callers can read it freely
but never change what the engine computed.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class BinaryFormat(str, enum.Enum):
    """Object formats the bridge understands."""
    MACHO = "macho"
    ELF = "elf"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Shared capability records
# ---------------------------------------------------------------------------

class CommandRecord(BaseModel):
    """Fields every Mach-O load command carries.

    Attributes:
        discriminator: Raw ``cmd`` value as reported by the engine (up to 64 bits).
        size: Raw ``cmdsize`` in bytes.
        offset: Offset of the command from the start of its Mach-O slice.
    """
    model_config = ConfigDict(frozen=True)

    discriminator: int = Field(..., ge=0, le=0xFFFFFFFFFFFFFFFF)
    size: int = Field(..., ge=0)
    offset: int = Field(..., ge=0)


class NoteRecord(BaseModel):
    """Fields every ELF note carries.

    Attributes:
        name: Owner name (``"GNU"``, ``"Android"``, ...).
        type: Engine-computed note type name (``"UNKNOWN"`` when unrecognised).
        original_type: Raw ``n_type`` value.
        size: Size of the raw note, padding included.
        offset: File offset of the note header.
    """
    model_config = ConfigDict(frozen=True)

    name: str = ""
    type: str = "UNKNOWN"
    original_type: int = Field(..., ge=0, le=0xFFFFFFFF)
    size: int = Field(default=0, ge=0)
    offset: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Serialisable summaries
# ---------------------------------------------------------------------------

class EntrySummary(BaseModel):
    """One classified record (load command or note) in a summary."""
    index: int = 0
    variant: str = ""
    type_name: str = ""
    discriminator: int = 0
    size: int = 0
    offset: int = 0
    fields: dict[str, Any] = Field(default_factory=dict)

    @field_serializer("fields")
    def _serialise_fields(self, value: dict[str, Any]) -> dict[str, Any]:
        return {k: to_plain(v) for k, v in value.items()}


class SliceSummary(BaseModel):
    """Header and classified records of one Mach-O slice or ELF file."""
    format: BinaryFormat = BinaryFormat.UNKNOWN
    arch: str = "unknown"
    bits: int = 0
    endian: str = "little"
    file_type: str = ""
    entries: list[EntrySummary] = Field(default_factory=list)

    @property
    def unknown_count(self) -> int:
        return sum(1 for e in self.entries if e.variant.startswith("Unknown"))


class BinarySummary(BaseModel):
    """Top-level output of one CLI run."""
    path: str = ""
    size: int = 0
    format: BinaryFormat = BinaryFormat.UNKNOWN
    slices: list[SliceSummary] = Field(default_factory=list)
    error: Optional[str] = None


def to_plain(value: Any) -> Any:
    """Reduce a field value to JSON-friendly primitives."""
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    return str(value)
