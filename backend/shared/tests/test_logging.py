import json
import logging
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from shared.logging import _serialize_enums, configure_structlog, setup_logging


@pytest.fixture(autouse=True)
def _cleanup_root_logger():
    """Close and remove all handlers from the root logger after each test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


@pytest.fixture(autouse=True)
def _allow_file_logging():
    """Disable the _is_test guard so logging tests can create real file handlers."""
    with patch("shared.logging._is_test", return_value=False):
        yield


class TestSetupLogging:
    def test_configures_stdout_handler(self):
        setup_logging()
        root = logging.getLogger()

        assert root.level == logging.INFO
        assert len(root.handlers) == 1

        handler = root.handlers[0]
        assert isinstance(handler, logging.StreamHandler)
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)

    def test_configures_file_handler_in_log_dir(self, tmp_path):
        log_dir = tmp_path / "relay"
        setup_logging(log_dir=log_dir)
        root = logging.getLogger()

        assert len(root.handlers) == 2
        file_handler = root.handlers[1]
        assert isinstance(file_handler, logging.FileHandler)
        assert Path(file_handler.baseFilename).parent == log_dir

    def test_log_file_named_after_service_and_time(self, tmp_path):
        fixed_time = datetime(2025, 3, 15, 10, 30, 45, tzinfo=UTC)
        with patch("shared.logging.datetime") as mock_dt:
            mock_dt.now.return_value = fixed_time
            log_path = setup_logging(log_dir=tmp_path, service="relay")

        assert log_path is not None
        assert log_path.name == "relay_2025-03-15_10-30-45.log"

    def test_returns_none_without_log_dir(self):
        assert setup_logging() is None

    def test_no_file_under_pytest(self, tmp_path):
        with patch("shared.logging._is_test", return_value=True):
            assert setup_logging(log_dir=tmp_path / "relay") is None
        assert not (tmp_path / "relay").exists()

    def test_writes_to_file_in_nested_dir(self, tmp_path):
        log_dir = tmp_path / "nested" / "dir"
        log_path = setup_logging(log_dir=str(log_dir))

        structlog.get_logger("test.file").info("room created", room_id="ABC123")

        assert log_dir.exists()
        assert log_path is not None
        content = log_path.read_text()
        assert "room created" in content
        assert "ABC123" in content

    def test_clears_existing_handlers_on_repeated_calls(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_custom_log_level(self):
        setup_logging(level=logging.DEBUG)
        assert logging.getLogger().level == logging.DEBUG

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        setup_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_invalid_log_level_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "bogus")
        with pytest.raises(ValueError, match="Invalid LOG_LEVEL"):
            setup_logging()

    def test_invalid_log_format_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError, match="Invalid LOG_FORMAT"):
            setup_logging()

    def test_quiets_chatty_loggers(self):
        setup_logging(level=logging.DEBUG)
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_mode_includes_context(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log_path = setup_logging(log_dir=tmp_path)

        structlog.contextvars.bind_contextvars(connection_id="conn-1")
        structlog.get_logger("test.json").info("player joined room", room_id="R1", player_count=2)
        structlog.contextvars.clear_contextvars()

        assert log_path is not None
        parsed = json.loads(log_path.read_text().strip().splitlines()[0])
        assert parsed["event"] == "player joined room"
        assert parsed["connection_id"] == "conn-1"
        assert parsed["room_id"] == "R1"
        assert parsed["player_count"] == 2
        assert parsed["level"] == "info"


class TestSerializeEnums:
    class _Role(Enum):
        HOST = "host"

    def test_replaces_enum_with_value(self):
        result = _serialize_enums(None, "", {"role": self._Role.HOST, "msg": "hi"})
        assert result == {"role": "host", "msg": "hi"}

    def test_leaves_non_enum_values_unchanged(self):
        event_dict = {"count": 42, "name": "test"}
        assert _serialize_enums(None, "", dict(event_dict)) == event_dict

    def test_enum_fields_logged_by_value(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log_path = setup_logging(log_dir=tmp_path)

        structlog.get_logger("test.enum").info("join rejected", role=self._Role.HOST)

        assert log_path is not None
        assert json.loads(log_path.read_text().strip().splitlines()[0])["role"] == "host"


class TestConfigureStructlog:
    def test_events_reach_stdlib_handlers(self, caplog):
        configure_structlog()
        with caplog.at_level(logging.INFO):
            structlog.get_logger("test.stdlib").info("room created", room_id="ABC123")

        assert "room created" in caplog.text
        assert caplog.records[-1].name == "test.stdlib"
