"""Logging setup for dbwrap entry points."""

import logging
import os
import re
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Backup runs get their own rotating file so dump/restore history survives
FILE_LOGGERS = ["dbwrap.backup"]

_SECRET_PATTERN = re.compile(r"(password|PGPASSWORD)=([^\s;]+)", re.IGNORECASE)


class RedactSecretsFilter(logging.Filter):
    """Mask `password=...` fragments that end up in formatted messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRET_PATTERN.sub(r"\1=***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level=logging.INFO, log_dir="logs"):
    """Configure console and per-logger file handlers.

    - Root logger: console handler at `level`
    - Loggers in FILE_LOGGERS: RotatingFileHandler in `log_dir/`
      (5 MB max, 3 backups)

    Every handler carries RedactSecretsFilter. Skips if the root logger
    already has handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    console.addFilter(RedactSecretsFilter())
    root.addHandler(console)

    os.makedirs(log_dir, exist_ok=True)
    for name in FILE_LOGGERS:
        handler = RotatingFileHandler(
            os.path.join(log_dir, f"{name.replace('.', '_')}.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(RedactSecretsFilter())
        logging.getLogger(name).addHandler(handler)
