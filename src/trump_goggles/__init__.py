"""Trump Goggles - rewrites political names on a live page into nicknames.

Matches a fixed phrase table against the text of a document, wraps each
match in a focusable span that keeps the original text, and shows that
text in a tooltip on hover or focus.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "3.0.0"


def setup_logging(log_dir: Path | None = None, level: str | None = None) -> Path:
    """Configure logging to both console and rotating file.

    Applications call this once at startup; the library itself never
    configures logging.

    Returns:
        Path of the log file.
    """
    from trump_goggles.config import get_settings

    log_config = get_settings().log
    log_dir = log_dir or log_config.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"trump_goggles.{os.getpid()}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # File handler - detailed logging with rotation (10MB, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    # Console handler - less verbose
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level or log_config.level)
    console_formatter = logging.Formatter("%(levelname)s: %(message)s")
    console_handler.setFormatter(console_formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.info("Logging configured. Log file: %s", log_file.absolute())
    return log_file
