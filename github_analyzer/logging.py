"""Logging helpers shared by the CLI, the service and the pipeline stages."""

from __future__ import annotations

import logging
import re
from pathlib import Path

_LOGGER_NAME = "github_analyzer"
_CREDENTIAL_IN_URL = re.compile(r"(https?://)[^/@\s]+@")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the github_analyzer hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Install a console handler and, optionally, a file handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[github-analyzer] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(file_handler)

    return logger


def redact(text: str) -> str:
    """Strip user:token credentials embedded in URLs."""
    return _CREDENTIAL_IN_URL.sub(r"\1***@", text)


__all__ = ["configure_logging", "get_logger", "redact"]
