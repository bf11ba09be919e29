"""Unit tests for logging configuration and log context."""

import json
import logging
from pathlib import Path

import pytest
import structlog

from src.ecsbridge.observability.logger import (
    TRACE,
    VERBOSE,
    LogContext,
    clear_all_context,
    configure_logging,
    current_context,
    get_log_level,
)


class TestLogLevels:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("TRACE", TRACE),
            ("debug", logging.DEBUG),
            ("VERBOSE", VERBOSE),
            ("INFO", logging.INFO),
            ("warning", logging.WARNING),
            ("ERROR", logging.ERROR),
        ],
    )
    def test_known_levels(self, name, expected):
        assert get_log_level(name) == expected

    def test_unknown_level_defaults_to_info(self):
        assert get_log_level("chatty") == logging.INFO

    def test_custom_level_names_registered(self):
        assert logging.getLevelName(TRACE) == "TRACE"
        assert logging.getLevelName(VERBOSE) == "VERBOSE"


class TestConfigureLogging:
    @pytest.mark.parametrize("level", ["DEBUG", "INFO", "WARNING", "ERROR"])
    def test_root_level(self, level):
        configure_logging(level=level)
        assert logging.getLogger().level == getattr(logging, level)

    def test_httpx_kept_at_warning(self):
        configure_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_logs_to_file(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "bridge.log"
        configure_logging(level="INFO", json_logs=True, log_file=log_file)

        with LogContext(search_id="abc123", structure="Tasks"):
            structlog.get_logger("test").info("Search started")

        line = log_file.read_text().strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "Search started"
        assert event["search_id"] == "abc123"
        assert event["structure"] == "Tasks"


class TestLogContext:
    def test_nested_contexts_merge_and_restore(self):
        with LogContext(search_id="outer"):
            with LogContext(structure="Clusters"):
                assert current_context() == {"search_id": "outer", "structure": "Clusters"}
            assert current_context() == {"search_id": "outer"}
        assert current_context() == {}

    def test_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext(search_id="x"):
                raise RuntimeError("boom")
        assert current_context() == {}

    def test_clear_all_context(self):
        LogContext(search_id="leak").__enter__()
        clear_all_context()
        assert current_context() == {}
