"""structlog setup for the relay: stdout plus an optional per-run log file.

Environment variables:
- LOG_FORMAT: "json" for log aggregation, "console" (default) for readable output.
- LOG_LEVEL: root level name, INFO by default.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def _serialize_enums(_logger: object, _method_name: str, event_dict: Mapping[str, Any]) -> dict[str, Any]:
    """Log seat roles, reject reasons and other enums by value."""
    return {key: value.value if isinstance(value, Enum) else value for key, value in event_dict.items()}


def _is_test() -> bool:
    return "pytest" in sys.modules


def _json_mode_from_env() -> bool:
    value = os.environ.get("LOG_FORMAT", "").lower() or "console"
    if value not in ("json", "console"):
        raise ValueError(f"Invalid LOG_FORMAT={value!r}. Must be 'json' or 'console'.")
    return value == "json"


def _level_from_env() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelNamesMapping().get(name)
    if level is None:
        raise ValueError(f"Invalid LOG_LEVEL={name!r}.")
    return level


def configure_structlog() -> None:
    """Route structlog events through stdlib logging.

    Rendering is left to the handlers' ProcessorFormatter, so the same event
    can go to stdout and a file in different formats.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _serialize_enums,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _attach(root: logging.Logger, handler: logging.Handler, *, json_mode: bool, colors: bool = False) -> None:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )
    )
    root.addHandler(handler)


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
    *,
    service: str = "relay",
) -> Path | None:
    """Configure logging to stdout and, when log_dir is set, to ``<service>_<timestamp>.log``.

    Returns the log file path, or None when no file is written (no log_dir,
    or running under pytest).
    """
    json_mode = _json_mode_from_env()
    if level is None:
        level = _level_from_env()

    configure_structlog()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _attach(root, logging.StreamHandler(sys.stdout), json_mode=json_mode, colors=sys.stdout.isatty())

    if log_dir is None or _is_test():
        return None

    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    file_path = dir_path / f"{service}_{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    _attach(root, logging.FileHandler(file_path), json_mode=json_mode)
    return file_path
