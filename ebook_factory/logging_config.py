"""Logging setup shared by the CLI and the GUI server."""
from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_FILE_ENV = "EBOOK_LOG_FILE"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger with a console handler.

    A rotating file handler is added when ``EBOOK_LOG_FILE`` is set. Existing
    root handlers are removed so repeated calls do not duplicate output.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    resolved_level = (level or os.getenv("LOG_LEVEL") or "WARNING").upper()
    logging.root.setLevel(resolved_level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logging.root.addHandler(console_handler)

    log_file = os.getenv(LOG_FILE_ENV)
    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logging.root.addHandler(file_handler)

    logging.captureWarnings(True)
