import os
import logging
from logging.handlers import RotatingFileHandler
from config import LOG_DIR, LOG_FILE, LOG_LEVEL

ROOT = "pretext"


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT)
    if any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        return root

    os.makedirs(LOG_DIR, exist_ok=True)
    root.setLevel(getattr(logging, LOG_LEVEL, logging.DEBUG))

    handler = RotatingFileHandler(
        os.path.join(LOG_DIR, LOG_FILE),
        maxBytes=5 * 1024 * 1024,   # 5 MB
        backupCount=5,
    )
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    root.addHandler(handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """Module logger under 'pretext'; all of them share the one rotating log file."""
    _root_logger()
    return logging.getLogger(f"{ROOT}.{name}")
