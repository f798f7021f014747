"""Tests for per-entity logging."""

import logging
import re

import pytest

from entity_agents.utils.error_handling import log_and_ignore
from entity_agents.utils.rich_logging import (
    SUCCESS,
    EntityLogFormatter,
    format_line,
    iso_timestamp,
    setup_entity_logging,
)


def test_iso_timestamp_is_utc_with_millis():
    assert iso_timestamp(0) == "1970-01-01T00:00:00.000Z"


def test_format_line():
    assert format_line("Quinn", "info", "hello", 0) == "[1970-01-01T00:00:00.000Z] [INFO] Quinn: hello"


def test_formatter_uses_entity_name():
    record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful %s", ("now",), None)
    line = EntityLogFormatter("Amber").format(record)
    assert re.match(r"^\[[^\]]+Z\] \[WARNING\] Amber: careful now$", line)


class TestSetupEntityLogging:
    def test_writes_to_log_file(self, tmp_path):
        path = tmp_path / "logs" / "agent.log"
        log = setup_entity_logging("Quinn", path, use_console=False)
        try:
            log.info("started")
            log.success("done")
            log.debug("hidden")
        finally:
            log.close()

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("[INFO] Quinn: started")
        assert lines[1].endswith("[SUCCESS] Quinn: done")

    def test_appends_across_setups(self, tmp_path):
        path = tmp_path / "agent.log"
        for message in ("one", "two"):
            log = setup_entity_logging("Quinn", path, use_console=False)
            log.info(message)
            log.close()

        assert len(path.read_text().splitlines()) == 2

    def test_debug_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEBUG", "1")
        log = setup_entity_logging("Quinn", tmp_path / "a.log", use_console=False)
        try:
            assert log.logger.level == logging.DEBUG
        finally:
            log.close()

    def test_explicit_level_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEBUG", "1")
        log = setup_entity_logging("Quinn", tmp_path / "a.log", log_level="warning", use_console=False)
        try:
            assert log.logger.level == logging.WARNING
        finally:
            log.close()

    def test_unknown_level_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_entity_logging("Quinn", tmp_path / "a.log", log_level="LOUD", use_console=False)

    def test_success_level_sits_between_info_and_warning(self):
        assert logging.INFO < SUCCESS < logging.WARNING
        assert logging.getLevelName(SUCCESS) == "SUCCESS"


def test_log_and_ignore(caplog):
    with caplog.at_level(logging.WARNING):
        log_and_ignore(ValueError("bad"), "desktop notification failed")

    assert "desktop notification failed: bad" in caplog.text
