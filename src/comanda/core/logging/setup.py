from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .json_formatter import JSONFormatter

_LOGGER_NAME = "comanda"
_MARKER = "_comanda_handler"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class LogOptions:
    level: int = logging.INFO
    to_file: bool = False
    log_dir: Path | None = None
    max_bytes: int = 5_000_000
    backup_count: int = 5

    @classmethod
    def from_env(cls) -> "LogOptions":
        level = getattr(logging, os.getenv("COMANDA_LOG_LEVEL", "INFO").strip().upper(), None)
        log_dir = os.getenv("COMANDA_LOG_DIR")
        return cls(
            level=level if isinstance(level, int) else logging.INFO,
            to_file=os.getenv("COMANDA_LOG_TO_FILE", "off").strip().casefold() == "on",
            log_dir=Path(log_dir) if log_dir else None,
            max_bytes=_env_int("COMANDA_LOG_MAX_BYTES", 5_000_000),
            backup_count=_env_int("COMANDA_LOG_BACKUP_COUNT", 5),
        )


def _marked(logger: logging.Logger, kind: str) -> list[logging.Handler]:
    return [handler for handler in logger.handlers if getattr(handler, _MARKER, None) == kind]


def configure_logging(state_dir: Path, options: LogOptions | None = None) -> logging.Logger:
    """Attach the JSON handlers to the ``comanda`` logger.

    Safe to call repeatedly: handlers installed by an earlier call are reused,
    and a file handler is only replaced when the log path changes.
    """
    options = options or LogOptions.from_env()
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(options.level)
    logger.propagate = False
    formatter = JSONFormatter()

    if not _marked(logger, "stdout"):
        stdout_handler = logging.StreamHandler(stream=sys.stdout)
        stdout_handler.setFormatter(formatter)
        setattr(stdout_handler, _MARKER, "stdout")
        logger.addHandler(stdout_handler)

    if options.to_file:
        log_dir = options.log_dir or state_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = (log_dir / "comanda.log").resolve()

        for handler in _marked(logger, "file"):
            if Path(handler.baseFilename) == log_path:
                break
            logger.removeHandler(handler)
            handler.close()
        else:
            file_handler = RotatingFileHandler(
                filename=log_path,
                maxBytes=options.max_bytes,
                backupCount=options.backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            setattr(file_handler, _MARKER, "file")
            logger.addHandler(file_handler)

    return logger
