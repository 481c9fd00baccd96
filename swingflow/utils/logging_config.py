"""Logging setup for the swing analysis CLI and pipeline."""

import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Pose and imaging libraries that log per frame at INFO
NOISY_LOGGERS = ("mediapipe", "absl", "PIL", "matplotlib", "urllib3")


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
    console_output: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Logging level name.
        log_file: Optional path of a rotating log file.
        stream: Console stream; defaults to stdout.
        console_output: Whether to attach a console handler.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files to keep.

    Returns:
        Root logger instance.
    """
    numeric_level = getattr(logging, str(level).upper(), logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    if console_output:
        console_handler = logging.StreamHandler(stream or sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(f"Logging configured: level={level}, file={log_file}")
    return root_logger


def setup_logging_from_config(
    config: Optional[Dict[str, Any]],
    verbose: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure logging from the ``logging`` section of the YAML config.

    ``verbose`` forces DEBUG regardless of the configured level.
    """
    section = (config or {}).get("logging") or {}
    return setup_logging(
        level="DEBUG" if verbose else section.get("level", "WARNING"),
        log_file=section.get("file"),
        stream=stream,
        max_bytes=int(section.get("max_bytes", 10 * 1024 * 1024)),
        backup_count=int(section.get("backup_count", 5)),
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class ProgressLogger:
    """
    Periodic progress reports for per-frame loops.

    Logs every ``log_interval`` percent with the frame throughput so far.
    """

    def __init__(
        self,
        logger: logging.Logger,
        total: int,
        description: str = "Processing",
        log_interval: int = 10,
    ):
        self.logger = logger
        self.total = total
        self.description = description
        self.log_interval = log_interval
        self.current = 0
        self.last_logged_percent = -log_interval
        self._started = time.monotonic()

    @property
    def rate(self) -> float:
        """Frames per second since construction."""
        elapsed = time.monotonic() - self._started
        return self.current / elapsed if elapsed > 0 else 0.0

    def update(self, n: int = 1) -> None:
        self.current += n
        if self.total <= 0:
            return
        percent = int((self.current / self.total) * 100)

        if percent >= self.last_logged_percent + self.log_interval:
            self.logger.info(
                f"{self.description}: {percent}% ({self.current}/{self.total}, "
                f"{self.rate:.1f} frames/s)"
            )
            self.last_logged_percent = percent

    def finish(self) -> None:
        self.logger.info(
            f"{self.description}: complete, {self.current}/{self.total} frames "
            f"at {self.rate:.1f} frames/s"
        )
