"""
Tests for structured logging
"""

import json
import logging

import pytest

from core_library.logging_config import JSONFormatter, log_action, setup_logging


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "libsys.log"
    logger = setup_logging("INFO", logger_name="libsys.test", log_file=str(path))
    yield logger, path
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


class TestJSONFormatter:
    """Test the JSON line format"""

    def test_drops_empty_fields(self):
        record = logging.LogRecord("libsys.x", logging.INFO, __file__, 1, "hello", (), None)
        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["module"] == "libsys.x"
        assert entry["message"] == "hello"
        assert "user_id" not in entry

    def test_keeps_non_ascii(self):
        record = logging.LogRecord("libsys.x", logging.INFO, __file__, 1, "《三体》", (), None)
        assert "《三体》" in JSONFormatter().format(record)


class TestLogAction:
    """Test structured action records"""

    def test_fields_written(self, log_file):
        logger, path = log_file
        log_action(logger, "info", "Book borrowed", user_id=7, action="borrow",
                   resource="A1", extra={"loan_days": 3})

        entry = json.loads(path.read_text(encoding="utf-8").strip())
        assert entry["user_id"] == 7
        assert entry["action"] == "borrow"
        assert entry["resource"] == "A1"
        assert entry["extra"] == {"loan_days": 3}

    def test_below_level_is_dropped(self, log_file):
        logger, path = log_file
        log_action(logger, "debug", "noise")
        assert path.read_text(encoding="utf-8") == ""

    def test_setup_replaces_handlers(self, log_file, tmp_path):
        logger, _ = log_file
        setup_logging("INFO", logger_name="libsys.test", log_file=str(tmp_path / "other.log"))
        assert len(logger.handlers) == 1
        assert not logger.propagate
