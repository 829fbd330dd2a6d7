"""Root logging setup for the recorder process."""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional, Union

from .paths import DEFAULT_LOG_FILE

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Accepted names for ``logging.level`` and ``--log-level``, most severe first.
LOG_LEVEL_NAMES = ("critical", "error", "warning", "info", "debug")

# A single recording is short-lived; keep a few megabytes of history.
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3

# Storage SDK and HTTP internals are noisy at INFO; PyAV forwards libav
# messages through the "libav" logger.
DEFAULT_SUPPRESSED_LOGGERS = ("oci", "urllib3", "dbus_fast", "libav")

_configured = False


def resolve_level(level: Union[int, str]) -> int:
    """Turn a level name from config or the command line into a numeric level."""
    if isinstance(level, int):
        return level
    name = str(level).strip().lower()
    if name not in LOG_LEVEL_NAMES:
        raise ValueError(f"Unknown log level '{level}'")
    return getattr(logging, name.upper())


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    force: bool = False,
    suppressed_loggers: Iterable[str] = DEFAULT_SUPPRESSED_LOGGERS,
) -> Optional[Path]:
    """Install the console and optional rotating file handlers.

    ``log_file`` may be a path or the word ``"default"``, which logs to
    ``DEFAULT_LOG_FILE`` under the user state directory. Calling again
    without ``force`` only adjusts the level. Returns the log file in use,
    if any.
    """

    global _configured
    numeric_level = resolve_level(level)
    root = logging.getLogger()

    if _configured and not force:
        root.setLevel(numeric_level)
        _quiet(suppressed_loggers)
        return None

    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    if console:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

    log_path = _resolve_log_file(log_file)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if not root.handlers:
        root.addHandler(logging.NullHandler())

    root.setLevel(numeric_level)
    _quiet(suppressed_loggers)
    _configured = True
    return log_path


def _resolve_log_file(log_file: Optional[Union[str, Path]]) -> Optional[Path]:
    if log_file is None:
        return None
    text = str(log_file).strip()
    if not text:
        return None
    if text.lower() == "default":
        return DEFAULT_LOG_FILE
    return Path(text).expanduser()


def _quiet(names: Iterable[str]) -> None:
    for name in names:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = [
    "DEFAULT_SUPPRESSED_LOGGERS",
    "LOG_DATEFMT",
    "LOG_FORMAT",
    "LOG_LEVEL_NAMES",
    "configure_logging",
    "resolve_level",
]
