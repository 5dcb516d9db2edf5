"""Logging setup. The terminal belongs to the UI, so logs go to a file."""

import logging
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def default_log_file() -> Path:
    return Path(tempfile.gettempdir()) / f"llamachat-{datetime.now():%Y%m%d-%H%M%S}.log"


def configure_logging(
    log_file: Union[str, Path, None] = None, debug: bool = False
) -> Path:
    """Sends the ``llamachat`` loggers to ``log_file`` and returns its path."""
    path = Path(log_file) if log_file else default_log_file()
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("llamachat")
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.propagate = False
    return path
