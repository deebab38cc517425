"""
Tests for settings and logging configuration
"""
import json
import logging
from pathlib import Path

import pytest

from taskmanager.config.logging import (
    JSONFormatter,
    get_logger,
    request_id_var,
    setup_logging,
)
from taskmanager.config.settings import Settings


# ==================== SETTINGS TESTS ====================


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.database.path == Path("data/tasks.sqlite3")
        assert settings.database.wal_mode is True
        assert settings.database.busy_timeout_ms == 5000
        assert settings.store.backend == "sqlite"
        assert settings.api.port == 8000
        assert settings.api.request_timeout_seconds == 10.0
        assert settings.api.cors_origins == ["*"]
        assert settings.log.level == "INFO"
        assert settings.log.json is True

    def test_overrides(self):
        settings = Settings.from_env({
            "TASKS_DATABASE_PATH": "/tmp/t.db",
            "TASKS_DATABASE_WAL": "false",
            "TASKS_DATABASE_BUSY_TIMEOUT_MS": "250",
            "TASKS_STORE_BACKEND": "Memory",
            "API_PORT": "9001",
            "API_REQUEST_TIMEOUT_SECONDS": "2.5",
            "API_CORS_ORIGINS": "http://a.test, http://b.test",
            "LOG_LEVEL": "warning",
            "LOG_FILE": "logs/x.log",
        })

        assert settings.database.path == Path("/tmp/t.db")
        assert settings.database.wal_mode is False
        assert settings.database.busy_timeout_ms == 250
        assert settings.store.backend == "memory"
        assert settings.api.port == 9001
        assert settings.api.request_timeout_seconds == 2.5
        assert settings.api.cors_origins == ["http://a.test", "http://b.test"]
        assert settings.log.level == "WARNING"
        assert settings.log.file == "logs/x.log"

    def test_port_fallback(self):
        assert Settings.from_env({"PORT": "7000"}).api.port == 7000
        assert Settings.from_env({"PORT": "7000", "API_PORT": "7001"}).api.port == 7001

    def test_development_logging(self):
        settings = Settings.from_env({"APP_ENV": "development"})
        assert settings.log.level == "DEBUG"
        assert settings.log.json is False

    @pytest.mark.parametrize("env", [
        {"TASKS_STORE_BACKEND": "postgres"},
        {"API_PORT": "eighty"},
        {"API_REQUEST_TIMEOUT_SECONDS": "soon"},
        {"TASKS_DATABASE_BUSY_TIMEOUT_MS": "1.5"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ValueError):
            Settings.from_env(env)


# ==================== LOGGING TESTS ====================


class TestLogging:
    """Tests for logging helpers."""

    def make_record(self, **extra):
        record = logging.LogRecord(
            "taskmanager.test", logging.INFO, __file__, 10, "hello %s", ("world",), None
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter(self):
        output = JSONFormatter().format(
            self.make_record(request_id="abcd1234", extra_data={"task_id": 7})
        )
        data = json.loads(output)

        assert data["level"] == "INFO"
        assert data["logger"] == "taskmanager.test"
        assert data["message"] == "hello world"
        assert data["request_id"] == "abcd1234"
        assert data["data"] == {"task_id": 7}

    def test_json_formatter_without_request(self):
        data = json.loads(JSONFormatter().format(self.make_record()))
        assert "request_id" not in data

    def test_get_logger_namespace(self):
        assert get_logger("tasks.service").logger.name == "taskmanager.tasks.service"

    def test_bound_context_in_records(self, caplog):
        logger = get_logger("tests", component="unit")
        with caplog.at_level(logging.INFO, logger="taskmanager.tests"):
            logger.info("bound", extra={"extra_data": {"task_id": 3}})

        assert caplog.records[-1].extra_data == {"component": "unit", "task_id": 3}

    def test_setup_logging_replaces_handlers(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        setup_logging("DEBUG", json_logs=True, log_file=str(log_file))
        logger = setup_logging("INFO", json_logs=False)

        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert log_file.parent.exists()

    def test_request_id_written_to_file(self, tmp_path):
        log_file = tmp_path / "app.log"
        setup_logging("INFO", json_logs=True, log_file=str(log_file))
        token = request_id_var.set("req00001")
        try:
            get_logger("tests").info("inside request")
        finally:
            request_id_var.reset(token)
        for handler in logging.getLogger("taskmanager").handlers:
            handler.flush()

        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert lines[-1]["request_id"] == "req00001"
        assert lines[-1]["message"] == "inside request"

