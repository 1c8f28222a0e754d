# tests/core/test_configure_logging.py
import logging

import pytest

from pubrules.core.utils.configure_logging import LogWithTqdm, configure_logger, to_level


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_to_level():
    assert to_level("debug", logging.INFO) == logging.DEBUG
    assert to_level("nonsense", logging.INFO) == logging.INFO
    assert to_level(logging.ERROR, logging.INFO) == logging.ERROR
    assert to_level(None, logging.WARNING) == logging.WARNING


def test_console_handler_and_levels():
    root = configure_logger("ERROR", {"pubrules.rules": "DEBUG"}, {"aiohttp": "CRITICAL"})
    assert [type(h) for h in root.handlers] == [LogWithTqdm]
    assert root.level == logging.ERROR
    assert logging.getLogger("pubrules.rules").level == logging.DEBUG
    assert logging.getLogger("aiohttp").level == logging.CRITICAL


def test_log_file_receives_debug_records(tmp_path):
    log_file = tmp_path / "logs" / "pubrules.log"
    root = configure_logger("WARNING", log_file=log_file)
    assert root.level == logging.DEBUG

    logging.getLogger("pubrules.test").debug("resolved %s", "https://www.w3.org/TR/foo/")
    for handler in root.handlers:
        handler.flush()

    assert "resolved https://www.w3.org/TR/foo/" in log_file.read_text(encoding="utf-8")
