from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path


FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"

_configured = False


class IsoFormatter(logging.Formatter):
    """Renders timestamps as UTC ISO-8601 with milliseconds."""

    def formatTime(self, record, datefmt=None):  # noqa: N802
        ct = time.gmtime(record.created)
        return time.strftime("%Y-%m-%dT%H:%M:%S", ct) + ".%03dZ" % record.msecs


def log_file_for(log_dir: Path, day: str | None = None) -> Path:
    day = day or datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return Path(log_dir) / f"etl-{day}.log"


class DailyFileHandler(logging.FileHandler):
    """Appends to ``etl-<YYYY-MM-DD>.log``, switching file when the UTC day changes."""

    def __init__(self, log_dir: Path, encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        super().__init__(
            log_file_for(self.log_dir, self._day), mode="a", encoding=encoding, delay=True
        )

    def emit(self, record: logging.LogRecord) -> None:
        day = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%d")
        if day != self._day:
            self.acquire()
            try:
                self.close()
                self._day = day
                self.baseFilename = os.path.abspath(log_file_for(self.log_dir, day))
            finally:
                self.release()
        super().emit(record)


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    level = os.getenv("ETL_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    _configured = True


def get_logger(
    name: str, log_dir: Path | None = None, level: str | None = None
) -> logging.Logger:
    _ensure_base_logger()
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not log_dir:
        return logger
    target = Path(log_dir)
    # Do not duplicate handlers if already set; one pointing elsewhere is replaced
    for h in [h for h in logger.handlers if isinstance(h, DailyFileHandler)]:
        if h.log_dir == target:
            return logger
        logger.removeHandler(h)
        h.close()
    handler = DailyFileHandler(target)
    handler.setFormatter(IsoFormatter(FILE_FORMAT))
    logger.addHandler(handler)
    return logger
