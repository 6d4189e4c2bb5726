# pulse_feed/config/logging_config.py

"""Per-run logging for the lookup and generation pipelines.

Every launch writes ``logs/run_YYYYMMDD_HHMMSS.log``.  The
``pulse_feed`` logger owns two handlers:

* a file handler at ``Settings.LOG_LEVEL`` with source locations
* a stderr handler at WARNING (INFO with ``verbose``) that never
  shows ``pulse_feed.metrics`` records

Per-event metric lines are DEBUG records; unless
``Settings.LOG_METRIC_EVENTS`` is set the metrics logger is held at
INFO and they are not written at all.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from pulse_feed.config.settings import Settings

ROOT_LOGGER = "pulse_feed"
METRICS_LOGGER = "pulse_feed.metrics"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _ExcludeLogger(logging.Filter):
    """Reject records emitted by *name* or its children."""

    def __init__(self, name: str) -> None:
        super().__init__()
        self._prefix = name

    def filter(self, record: logging.LogRecord) -> bool:
        return not (
            record.name == self._prefix
            or record.name.startswith(f"{self._prefix}.")
        )


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.DEBUG


def setup_logging(verbose: bool = False) -> Path:
    """Configure the ``pulse_feed`` logger for the current run.

    Args:
        verbose: show INFO records (not only warnings) on stderr.

    Returns:
        The path of the log file for this run.  Repeated calls keep
        the existing handlers and only adjust the console level.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"
    console_level = logging.INFO if verbose else logging.WARNING

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)
    logging.getLogger(METRICS_LOGGER).setLevel(
        logging.DEBUG if Settings.LOG_METRIC_EVENTS else logging.INFO
    )

    if root_logger.handlers:
        for handler in root_logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(console_level)
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(_resolve_level(Settings.LOG_LEVEL))
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.addFilter(_ExcludeLogger(METRICS_LOGGER))
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger.info("Logging initialised, log file: %s", log_file)
    return log_file
