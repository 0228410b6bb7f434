from __future__ import annotations

import json
import logging
from collections.abc import Iterator

import pytest

from taskchain.core.config import LoggingConfig
from taskchain.core.log import _JsonFormatter, _LibraryNoiseFilter, setup_logging


@pytest.fixture()
def restore_root() -> Iterator[logging.Logger]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


def _record(name: str, level: int, msg: str = "event") -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


def test_setup_installs_one_handler(restore_root: logging.Logger) -> None:
    setup_logging(LoggingConfig(level="debug"))
    setup_logging(LoggingConfig(level="debug"))
    assert len(restore_root.handlers) == 1
    assert restore_root.level == logging.DEBUG


def test_json_lines() -> None:
    line = _JsonFormatter().format(_record("taskchain.sync.reader", logging.INFO, "snapshot_published"))
    row = json.loads(line)
    assert row["level"] == "INFO"
    assert row["logger"] == "taskchain.sync.reader"
    assert row["msg"] == "snapshot_published"


def test_third_party_noise_is_filtered() -> None:
    f = _LibraryNoiseFilter()
    assert f.filter(_record("taskchain.ledger.rpc", logging.DEBUG))
    assert not f.filter(_record("httpx", logging.INFO))
    assert f.filter(_record("httpx", logging.WARNING))
