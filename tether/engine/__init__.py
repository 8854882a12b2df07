"""Struct-based object-format engine producing the record graphs Tether bridges."""

from tether.engine.elf_parser import ELFParser, is_elf
from tether.engine.macho_parser import MachOParser, is_macho

__all__ = ["ELFParser", "MachOParser", "is_elf", "is_macho"]
