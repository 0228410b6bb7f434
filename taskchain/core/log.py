"""taskchain.core.log

Root logger setup. Call once, early, from an entry point.

Modules log through ``logging.getLogger(__name__)`` with short snake_case
messages (``task_read_dropped``) and put variable data in the format args.
"""

from __future__ import annotations

import json
import logging
import sys

from taskchain.core.config import LoggingConfig

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        row = {
            "ts": self.formatTime(record, _DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            row["exc"] = self.formatException(record.exc_info)
        return json.dumps(row, sort_keys=True)


class _LibraryNoiseFilter(logging.Filter):
    """Keep taskchain logs; only warnings and up from third parties (httpx logs every request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(("taskchain", "api")):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(cfg: LoggingConfig) -> None:
    root = logging.getLogger()
    root.setLevel(str(cfg.level).upper())

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter() if cfg.json_output else logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    handler.addFilter(_LibraryNoiseFilter())
    root.addHandler(handler)

    logging.captureWarnings(True)
