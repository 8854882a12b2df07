"""
Tether Structured Logger
=========================

Provides :class:`TetherLogger`, a structured logging facade that emits
human-friendly Rich console output and, optionally, machine-parseable
JSON lines to a rotating log file.

Library modules obtain a shared, per-tool instance through
:func:`get_logger`; the command-line front end reconfigures that same
instance from configuration and flags.

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich library. https://github.com/Textualize/rich
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# ---------------------------------------------------------------------------
# Rich theme consistent with TetherConsole colour palette
# ---------------------------------------------------------------------------
_LOG_THEME = Theme(
    {
        "log.level.debug": "dim cyan",
        "log.level.info": "bold bright_blue",
        "log.level.warning": "bold yellow",
        "log.level.error": "bold red",
        "log.level.critical": "bold white on red",
    }
)


# ========================== JSON Formatter =================================


class _JSONFormatter(logging.Formatter):
    """Emit each log record as a single-line JSON object.

    Output fields::

        {
          "timestamp": "...",
          "level": "INFO",
          "logger": "tether.macho",
          "message": "...",
          "tool_name": "macho",
          "operation": "load_commands",
          "extra": { ... },
          "exc_info": "..."
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr in ("tool_name", "operation"):
            val = getattr(record, attr, None)
            if val is not None:
                entry[attr] = val

        extra = getattr(record, "tether_extra", None)
        if extra is not None:
            entry["extra"] = extra

        if record.exc_info and record.exc_info[1] is not None:
            entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


# ========================== Rich Console Handler ===========================


class _ColorConsoleHandler(RichHandler):
    """Thin wrapper over :class:`rich.logging.RichHandler` applying the
    Tether theme and writing to stderr.
    """

    def __init__(self, **kwargs: Any) -> None:
        console = Console(theme=_LOG_THEME, stderr=True)
        super().__init__(
            console=console,
            show_path=False,
            show_time=True,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=False,
            **kwargs,
        )


# ========================== File Handler ===================================


def build_file_handler(
    log_file: str | Path,
    *,
    log_level: str = "WARNING",
    json_logs: bool = False,
    max_bytes: int = 10_485_760,
    backup_count: int = 5,
) -> RotatingFileHandler:
    """Create a rotating file handler for *log_file*.

    One handler can be attached to several loggers through
    :meth:`TetherLogger.configure`; rotation then happens in one place.
    """
    file_path = Path(log_file)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fh = RotatingFileHandler(
        filename=str(file_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    fh.setLevel(getattr(logging, log_level.upper(), logging.WARNING))
    if json_logs:
        fh.setFormatter(_JSONFormatter())
    else:
        fh.setFormatter(
            logging.Formatter(
                fmt=(
                    "%(asctime)s | %(levelname)-8s | "
                    "%(name)s | %(message)s"
                ),
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
        )
    return fh


# ========================== TetherLogger ===================================


class TetherLogger:
    """Structured, context-aware logger for Tether components.

    Each instance is bound to a *tool_name* (e.g. ``"macho"``) and
    can carry a temporary *operation* context via a context manager.

    Usage::

        log = get_logger("macho")
        log.info("Parsing %s", path)
        with log.operation("load_commands"):
            log.debug("Unrecognised command 0x%x", cmd)

    Args:
        tool_name:       Identifying name for the Tether component.
        log_level:       Minimum severity (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file:        Path to the rotating log file. ``None`` disables file logging.
        json_logs:       If ``True`` the file handler emits JSON lines.
        max_bytes:       Maximum log-file size before rotation (default 10 MiB).
        backup_count:    Number of rotated backup files to keep.
        console_output:  If ``True`` attach a colour Rich console handler.
    """

    def __init__(
        self,
        tool_name: str,
        *,
        log_level: str = "WARNING",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
        console_output: bool = True,
    ) -> None:
        self._tool_name = tool_name
        self._operation: str | None = None
        self._logger = logging.getLogger(f"tether.{tool_name}")
        self._logger.propagate = False
        self._owned: list[logging.Handler] = []
        self.configure(
            log_level=log_level,
            log_file=log_file,
            json_logs=json_logs,
            max_bytes=max_bytes,
            backup_count=backup_count,
            console_output=console_output,
        )

    def configure(
        self,
        *,
        log_level: str = "WARNING",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
        console_output: bool = True,
        file_handler: logging.Handler | None = None,
    ) -> TetherLogger:
        """(Re)build the handlers of the underlying stdlib logger.

        A *file_handler* built by :func:`build_file_handler` is attached as
        is and the caller keeps ownership of it.  Otherwise a private
        handler is built for *log_file*.

        Returns:
            ``self`` for fluent chaining.
        """
        level = getattr(logging, log_level.upper(), logging.WARNING)
        self._logger.setLevel(level)

        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
        for handler in self._owned:
            handler.close()
        self._owned = []

        if console_output:
            console = _ColorConsoleHandler(level=level)
            self._owned.append(console)
            self._logger.addHandler(console)

        if file_handler is None and log_file is not None:
            file_handler = build_file_handler(
                log_file,
                log_level=log_level,
                json_logs=json_logs,
                max_bytes=max_bytes,
                backup_count=backup_count,
            )
            self._owned.append(file_handler)
        if file_handler is not None:
            self._logger.addHandler(file_handler)
        return self

    # ------------------------------------------------------------------ #
    #  Context management -- operation scope
    # ------------------------------------------------------------------ #

    class _OperationContext:
        """Context manager that temporarily binds an operation name."""

        def __init__(self, parent: TetherLogger, operation: str) -> None:
            self._parent = parent
            self._operation = operation
            self._prev: str | None = None

        def __enter__(self) -> TetherLogger:
            self._prev = self._parent._operation
            self._parent._operation = self._operation
            return self._parent

        def __exit__(self, *exc: Any) -> None:
            self._parent._operation = self._prev

    def operation(self, name: str) -> _OperationContext:
        """Return a context manager that sets the *operation* field.

        While active, every log record will include ``operation=<name>``.
        """
        return self._OperationContext(self, name)

    # ------------------------------------------------------------------ #
    #  Log methods
    # ------------------------------------------------------------------ #

    def _enrich(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Inject Tether context into the log record via *extra*."""
        extra = kwargs.pop("extra", {}) or {}

        tether_extra_data: dict[str, Any] = {}
        standard_keys = {"exc_info", "stack_info", "stacklevel"}
        for key in list(kwargs):
            if key not in standard_keys:
                tether_extra_data[key] = kwargs.pop(key)

        extra["tool_name"] = self._tool_name
        extra["operation"] = self._operation
        if tether_extra_data:
            extra["tether_extra"] = tether_extra_data

        kwargs["extra"] = extra
        return kwargs

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a DEBUG-level message."""
        kwargs = self._enrich(kwargs)
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an INFO-level message."""
        kwargs = self._enrich(kwargs)
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a WARNING-level message."""
        kwargs = self._enrich(kwargs)
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an ERROR-level message."""
        kwargs = self._enrich(kwargs)
        self._logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an ERROR-level message with full exception traceback."""
        kwargs["exc_info"] = kwargs.get("exc_info", True)
        kwargs = self._enrich(kwargs)
        self._logger.error(msg, *args, **kwargs)

    # ------------------------------------------------------------------ #
    #  Timing helper
    # ------------------------------------------------------------------ #

    class _TimingContext:
        """Context manager for measuring and logging elapsed time."""

        def __init__(self, logger_inst: TetherLogger, label: str) -> None:
            self._logger = logger_inst
            self._label = label
            self._start: float = 0.0

        def __enter__(self) -> TetherLogger._TimingContext:
            self._start = time.perf_counter()
            self._logger.debug("Started: %s", self._label)
            return self

        def __exit__(self, *exc: Any) -> None:
            elapsed = time.perf_counter() - self._start
            self._logger.debug(
                "Completed: %s (%.3f sec)",
                self._label,
                elapsed,
            )

        @property
        def elapsed(self) -> float:
            """Seconds elapsed since entering the context."""
            return time.perf_counter() - self._start

    def timed(self, label: str) -> _TimingContext:
        """Context manager that logs start / finish and elapsed time.

        Usage::

            with log.timed("load command walk"):
                parser.parse()
        """
        return self._TimingContext(self, label)

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def tool_name(self) -> str:
        """Name of the Tether component this logger is bound to."""
        return self._tool_name

    @property
    def underlying(self) -> logging.Logger:
        """Direct access to the stdlib :class:`logging.Logger`."""
        return self._logger


# ========================= Module-level convenience ========================

_LOGGERS: dict[str, TetherLogger] = {}


def get_logger(tool_name: str) -> TetherLogger:
    """Return the shared :class:`TetherLogger` bound to *tool_name*.

    The first call creates the logger with warning-level console output;
    later calls return the same instance, so a front end can call
    :meth:`TetherLogger.configure` once and every module picks it up.
    """
    logger = _LOGGERS.get(tool_name)
    if logger is None:
        logger = TetherLogger(tool_name)
        _LOGGERS[tool_name] = logger
    return logger
