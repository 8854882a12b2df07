"""Loading the bytes behind a ``parse(source)`` call."""

from __future__ import annotations

from pathlib import Path

from shared.logger import TetherLogger

Source = str | Path | bytes | bytearray | memoryview


def read_source(source: Source, max_size: int, logger: TetherLogger) -> tuple[bytes | None, str]:
    """Return ``(data, label)`` for *source*.

    *source* is either a filesystem path or the raw file contents.  A file
    (or buffer) larger than *max_size* is refused: ``data`` is ``None`` and
    the refusal is logged.

    Raises:
        FileNotFoundError: If *source* names a path that does not exist.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        label = "<memory>"
    else:
        path = Path(source)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        label = str(path)
        file_size = path.stat().st_size
        if file_size > max_size:
            logger.error(
                "File too large: %s bytes (max: %s bytes)",
                f"{file_size:,}", f"{max_size:,}",
            )
            return None, label
        data = path.read_bytes()

    if len(data) > max_size:
        logger.error(
            "Buffer too large: %s bytes (max: %s bytes)",
            f"{len(data):,}", f"{max_size:,}",
        )
        return None, label
    return data, label
