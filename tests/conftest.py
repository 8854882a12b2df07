"""Shared fixtures: synthetic binaries on disk and a default configuration."""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from shared.config import TetherConfig

from tether import macho

from tests.builders import CPU_TYPE_ARM64, ELFBuilder, MachOBuilder, fat, sample_macho


@pytest.fixture()
def config() -> TetherConfig:
    """Default configuration, independent of any ``config.toml`` on disk."""
    return TetherConfig()


@pytest.fixture()
def write_file(tmp_path: Path) -> Callable[[str, bytes], Path]:
    """Write *data* under the test's temporary directory."""

    def _write(name: str, data: bytes) -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture()
def macho_bytes() -> bytes:
    return sample_macho()


@pytest.fixture()
def elf_bytes() -> bytes:
    return (
        ELFBuilder()
        .note("GNU", 1, struct.pack("<IIII", 0, 3, 2, 0), section=".note.ABI-tag")
        .note("GNU", 3, bytes(range(20)), section=".note.gnu.build-id")
        .note("ACME", 0x1234, b"payload!", section=".note.acme")
        .build()
    )


@pytest.fixture()
def fat_binary(config: TetherConfig) -> Iterator[macho.FatBinary]:
    """A parsed two-slice fat binary, closed after the test."""
    data = fat(
        sample_macho(),
        MachOBuilder(cputype=CPU_TYPE_ARM64).segment("__PAGEZERO").build(),
    )
    root = macho.parse(data, config)
    assert root is not None
    yield root
    root.close()
