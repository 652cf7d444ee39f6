"""
Tests for logging configuration.
"""

import json
import logging

from alloy_pipeline.logging_config import (
    CONFIG_UPDATES_LOGGER,
    HumanReadableFormatter,
    StructuredFormatter,
    log_config_operation,
    setup_logging,
)


class TestFormatters:
    """Test log formatters."""

    def test_structured_formatter(self):
        """JSON output carries the message and operation fields."""
        record = logging.makeLogRecord(
            {
                "name": CONFIG_UPDATES_LOGGER,
                "levelname": "INFO",
                "msg": "Config write: SUCCESS",
                "operation": "write",
                "config_path": "/etc/alloy/config.alloy",
            }
        )
        data = json.loads(StructuredFormatter().format(record))
        assert data["message"] == "Config write: SUCCESS"
        assert data["logger"] == CONFIG_UPDATES_LOGGER
        assert data["operation"] == "write"
        assert data["config_path"] == "/etc/alloy/config.alloy"
        assert "duration_ms" not in data

    def test_colors_do_not_leak(self):
        """Coloring the console copy leaves the record untouched for other handlers."""
        record = logging.makeLogRecord({"name": "x", "levelname": "INFO", "msg": "hello"})
        output = HumanReadableFormatter(use_colors=True).format(record)
        assert "\033[32mINFO" in output
        assert record.levelname == "INFO"


class TestSetupLogging:
    """Test handler setup."""

    def test_creates_log_files(self, tmp_path, restore_root_logger):
        """The main, error and config update logs are created."""
        setup_logging(log_dir=str(tmp_path / "logs"), console_level="WARNING")
        for name in ("generator.log", "error.log", "config-updates.log"):
            assert (tmp_path / "logs" / name).exists()

        log_config_operation("write", success=True, path="/tmp/config.alloy")
        for handler in logging.getLogger(CONFIG_UPDATES_LOGGER).handlers:
            handler.flush()
        assert "Config write: SUCCESS" in (tmp_path / "logs" / "config-updates.log").read_text()


class TestLogConfigOperation:
    """Test config operation records."""

    def test_failure_logged_as_error(self, caplog):
        """Failed operations are errors with the reason in the message."""
        with caplog.at_level(logging.INFO, logger=CONFIG_UPDATES_LOGGER):
            log_config_operation("write", success=False, path="/x", error="disk full")
        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.getMessage() == "Config write: FAILED - /x - disk full"
        assert record.operation == "write"
