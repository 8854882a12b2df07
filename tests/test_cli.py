"""Command-line front end and the summaries it renders."""

from __future__ import annotations

import json
from logging.handlers import RotatingFileHandler

from click.testing import CliRunner

from shared.console import TetherConsole
from shared.logger import get_logger

from tether import elf, macho
from tether.cli import _COMPONENTS, tether_cli
from tether.core.models import BinaryFormat
from tether.output import TetherConsoleOutput, summarize


def test_macho_summary(macho_bytes: bytes, config) -> None:
    with macho.parse(macho_bytes, config) as root:
        summary = summarize(root, path="a.out", size=len(macho_bytes))
    assert summary.format is BinaryFormat.MACHO
    (slice_,) = summary.slices
    assert (slice_.arch, slice_.bits, slice_.endian) == ("x86_64", 64, "little")
    assert [e.variant for e in slice_.entries] == ["SegmentCommand", "UnknownCommand", "SymbolCommand"]
    assert slice_.entries[1].fields == {"original_command": 0x9999}
    assert slice_.entries[0].type_name == "LC_SEGMENT_64"
    assert slice_.unknown_count == 1


def test_elf_summary(elf_bytes: bytes, config) -> None:
    with elf.parse(elf_bytes, config) as root:
        summary = summarize(root)
    (slice_,) = summary.slices
    assert slice_.format is BinaryFormat.ELF
    assert [e.type_name for e in slice_.entries] == [
        "GNU:GNU_ABI_TAG", "GNU:GNU_BUILD_ID", "ACME:UNKNOWN",
    ]
    dumped = json.loads(summary.model_dump_json())
    assert dumped["slices"][0]["entries"][1]["fields"]["description"] == bytes(range(20)).hex()


def test_cli_json(write_file, macho_bytes: bytes) -> None:
    path = write_file("a.out", macho_bytes)
    result = CliRunner().invoke(tether_cli, [str(path), "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["format"] == "macho"
    entries = data["slices"][0]["entries"]
    assert [e["discriminator"] for e in entries] == [0x19, 0x9999, 0x2]
    assert entries[1]["variant"] == "UnknownCommand"
    assert entries[0]["fields"]["name"] == "__TEXT"


def test_cli_table(write_file, elf_bytes: bytes) -> None:
    path = write_file("libfoo.so", elf_bytes)
    result = CliRunner().invoke(tether_cli, [str(path)])
    assert result.exit_code == 0, result.output
    assert "Records: 3 (1 unrecognised)" in result.output


def test_cli_rejects_unknown_format(write_file) -> None:
    path = write_file("notes.txt", b"just some text, not a binary")
    result = CliRunner().invoke(tether_cli, [str(path)])
    assert result.exit_code == 1


def test_cli_missing_file() -> None:
    result = CliRunner().invoke(tether_cli, ["/nonexistent/binary"])
    assert result.exit_code == 2


def test_cli_version() -> None:
    result = CliRunner().invoke(tether_cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output


def test_console_output_highlights_unknown_records(macho_bytes: bytes, config) -> None:
    with macho.parse(macho_bytes, config) as root:
        summary = summarize(root, path="/tmp/[odd] a.out", size=len(macho_bytes))
    console = TetherConsole(record=True)
    console.rich.width = 200
    TetherConsoleOutput(console=console).display(summary, version="1.0.0")
    text = console.export_text()
    assert "/tmp/[odd] a.out" in text
    assert "LC_SEGMENT_64" in text
    assert "UnknownCommand" in text
    assert "1 unrecognised record(s)" in text


def test_cli_log_file_uses_one_handler_for_all_components(write_file, macho_bytes: bytes, tmp_path) -> None:
    path = write_file("a.out", macho_bytes)
    log_path = tmp_path / "tether.log"
    result = CliRunner().invoke(tether_cli, [str(path), "--json", "--log-file", str(log_path)])
    assert result.exit_code == 0, result.output

    handlers = {
        id(h): h
        for component in _COMPONENTS
        for h in get_logger(component).underlying.handlers
        if isinstance(h, RotatingFileHandler)
    }
    try:
        assert len(handlers) == 1
        for component in _COMPONENTS:
            assert len([
                h for h in get_logger(component).underlying.handlers
                if isinstance(h, RotatingFileHandler)
            ]) == 1
    finally:
        for component in _COMPONENTS:
            get_logger(component).configure()
        for handler in handlers.values():
            handler.close()
