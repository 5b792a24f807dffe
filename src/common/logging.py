"""Logging helpers for the NFT activity crawler."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = Path("logs/bot.log")
ERROR_LOG_NAME = "errors.log"


def setup_logging(log_level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Configure console and rotating file handlers.

    Warnings and errors are additionally written to ``errors.log`` next to
    the main log file so degraded events can be reviewed on their own.

    Args:
        log_level: Numeric logging level (e.g., ``logging.INFO``).
        log_file: Optional path to a log file. Defaults to ``logs/bot.log``.
    """

    logger = logging.getLogger()
    if logger.handlers:
        # Avoid adding duplicate handlers when called multiple times.
        return

    logger.setLevel(log_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_path = log_file or DEFAULT_LOG_PATH
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(file_path, maxBytes=2_000_000, backupCount=5)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    error_handler = RotatingFileHandler(
        file_path.parent / ERROR_LOG_NAME, maxBytes=2_000_000, backupCount=5
    )
    error_handler.setLevel(logging.WARNING)
    error_handler.setFormatter(formatter)
    logger.addHandler(error_handler)

    # web3 logs every provider request at DEBUG.
    logging.getLogger("web3").setLevel(max(log_level, logging.INFO))

    logger.debug("Logging configured", extra={"log_file": str(file_path)})


__all__ = ["setup_logging"]
