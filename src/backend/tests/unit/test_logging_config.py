"""
Unit tests for configure_logging
"""

import json
import logging

import pytest
import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

from mytrip.logging_config import configure_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    clear_contextvars()
    structlog.reset_defaults()


@pytest.mark.unit
class TestConfigureLogging:

    def test_production_writes_json_with_bound_context(self, tmp_path, monkeypatch, restore_logging):
        # Arrange
        log_file = tmp_path / "logs" / "listing.log"
        monkeypatch.setenv("ENV", "production")
        monkeypatch.setenv("LOG_LEVEL", "INFO")

        # Act
        configure_logging(str(log_file))
        bind_contextvars(query_id="abc123def456")
        logging.getLogger("mytrip.services.listing.engine").info("Page 1 applied")
        for handler in logging.getLogger().handlers:
            handler.flush()

        # Assert
        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "Page 1 applied"
        assert record["level"] == "info"
        assert record["logger"] == "mytrip.services.listing.engine"
        assert record["query_id"] == "abc123def456"
        assert "timestamp" in record

    def test_log_level_from_environment(self, monkeypatch, restore_logging):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.delenv("LOG_FILE_PATH", raising=False)

        configure_logging()

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, monkeypatch, restore_logging):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        monkeypatch.delenv("LOG_FILE_PATH", raising=False)

        configure_logging()

        assert logging.getLogger().level == logging.INFO
