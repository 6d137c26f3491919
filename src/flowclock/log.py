"""Logging setup for the command-line front end."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE = "flowclock.log"


def configure_logging(
    log_dir: Path,
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
    name: str = "flowclock",
) -> logging.Logger:
    """Attach a rotating file handler and, if *verbose*, a console handler.

    Handlers are named so calling this twice does not duplicate output.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    fmt = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    file_handler_name = f"{name}:file"
    if not any(h.get_name() == file_handler_name for h in logger.handlers):
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=log_dir / LOG_FILE,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("File logging disabled: %s", exc)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(fmt)
            file_handler.set_name(file_handler_name)
            logger.addHandler(file_handler)

    console_handler_name = f"{name}:console"
    if verbose and not any(h.get_name() == console_handler_name for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(fmt)
        console_handler.set_name(console_handler_name)
        logger.addHandler(console_handler)

    return logger
