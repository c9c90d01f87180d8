"""Logging setup for hosts that drive density runs.

Reads the ``logging`` section of the density config and attaches a stderr
handler, plus a rotating file handler when ``file`` is set, to the
``cvfield`` package logger.  Every module logs through
``logging.getLogger(__name__)``, so this one logger controls them all.

Usage:
    from cvfield.utils.logging_config import setup_logging

    setup_logging()                      # level and file from config
    setup_logging(level="DEBUG")         # override the configured level
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from cvfield.config.density_config import DensityConfig, get_density_config
from cvfield.errors import InvalidConfiguration

PACKAGE_LOGGER = "cvfield"

# Marks handlers owned by setup_logging so repeat calls replace them.
_OWNED = "_cvfield_owned"


def parse_level(value: int | str) -> int:
    """Accept a logging level number or name ("debug", "INFO", ...)."""
    if isinstance(value, bool):
        raise InvalidConfiguration(f"Invalid log level {value!r}")
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    if not isinstance(level, int):
        raise InvalidConfiguration(f"Unknown log level {value!r}")
    return level


def setup_logging(
    cfg: Optional[DensityConfig] = None,
    *,
    level: int | str | None = None,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """Configure the ``cvfield`` logger from config; returns it.

    *level* and *log_file* override the config values.  Calling again
    swaps out the handlers installed by the previous call and leaves any
    others alone.
    """
    section = (cfg or get_density_config()).get("logging")
    resolved_level = parse_level(level if level is not None else section["level"])
    path = log_file or section.get("file")
    formatter = logging.Formatter(section["format"])

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=int(section["max_bytes"]),
                backupCount=int(section["backup_count"]),
            )
        )

    logger = logging.getLogger(PACKAGE_LOGGER)
    for old in [h for h in logger.handlers if getattr(h, _OWNED, False)]:
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _OWNED, True)
        logger.addHandler(handler)
    logger.setLevel(resolved_level)

    if path:
        logger.info("Logging to %s", path)
    return logger
