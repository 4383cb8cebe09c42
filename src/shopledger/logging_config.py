from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

# money-moving commands also get a file of their own
LOG_CHANNELS = {
    "shopledger.sales": "sales.log",
    "shopledger.cash": "cash.log",
}

MAX_BYTES = 2_000_000
BACKUP_COUNT = 5

_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line. Values passed via ``extra=`` become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        # Decimal amounts and paths are written as text
        return json.dumps(entry, default=str, ensure_ascii=False)


def _file_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    handler.setLevel(level)
    return handler


def setup_logging(logs_dir: Path, level: int = logging.INFO) -> None:
    """app.log and errors.log on the root logger, plus one file per channel.

    Does nothing to handlers when the root logger is already configured.
    """
    logs_dir = Path(logs_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return

    root.addHandler(_file_handler(logs_dir / "app.log", level))
    root.addHandler(_file_handler(logs_dir / "errors.log", logging.ERROR))

    for channel, filename in LOG_CHANNELS.items():
        logger = logging.getLogger(channel)
        logger.addHandler(_file_handler(logs_dir / filename, logging.INFO))
        logger.setLevel(min(level, logging.INFO))
