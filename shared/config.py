"""
Tether Configuration Management
================================

Centralized configuration for the Tether engine, bridge and command-line
front end using Python dataclasses and TOML-based persistence.

References:
    - Wiggins, A. (2011). The Twelve-Factor App. https://12factor.net/
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"


# ========================== Format-Specific Configs ========================


@dataclass(frozen=False, slots=True)
class MachOConfig:
    """Configuration for the Mach-O engine.

    ``max_commands`` and ``max_symbols`` bound the size of the record
    graph built from a single slice; a header announcing more load
    commands than ``max_commands`` is rejected as malformed.
    """

    parse_symbols: bool = True
    max_commands: int = 4096
    max_symbols: int = 1_000_000


@dataclass(frozen=False, slots=True)
class ELFConfig:
    """Configuration for the ELF note engine."""

    # Fall back to PT_NOTE segments when the file has no section headers.
    notes_from_segments: bool = True


# =========================== Global Settings ===============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Settings shared by every Tether component."""

    log_level: str = "WARNING"
    log_file: str | None = None
    log_json: bool = False
    max_file_size: int = 268_435_456  # 256 MiB
    output_format: str = "table"
    version: str = "1.0.0"


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class TetherConfig:
    """Master configuration aggregating format-specific and global settings.

    Usage:
        >>> config = TetherConfig.load()                  # from default path
        >>> config = TetherConfig.load("custom.toml")     # from custom path
        >>> config.macho.parse_symbols
        True
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    macho: MachOConfig = field(default_factory=MachOConfig)
    elf: ELFConfig = field(default_factory=ELFConfig)

    # ------------------------------------------------------------------ #
    #  TOML Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> TetherConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``config.toml`` in the
        project root.  Missing keys fall back to dataclass defaults.

        Args:
            path: Filesystem path to a TOML configuration file.

        Returns:
            A fully-populated :class:`TetherConfig` instance.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            macho=cls._build_section(MachOConfig, raw.get("macho", {})),
            elf=cls._build_section(ELFConfig, raw.get("elf", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the entire configuration tree to a plain dictionary."""
        return asdict(self)

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are ignored so that
        forward-compatible config files do not break older code.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)


# ========================= Module-level convenience ========================

def get_config(path: str | Path | None = None) -> TetherConfig:
    """Module-level convenience wrapper around :meth:`TetherConfig.load`.

    Caches the result so that repeated calls share one instance.
    """
    if not hasattr(get_config, "_cached") or path is not None:
        get_config._cached = TetherConfig.load(path)  # type: ignore[attr-defined]
    return get_config._cached  # type: ignore[attr-defined]
