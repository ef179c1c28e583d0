"""Unit tests for millitime._logging — JSON formatter and config.

Test Techniques Used:
    - Specification-based Testing: JsonFormatter output schema and
      sync-specific extra fields
    - State Inspection: Root logger handler/level after configure
    - Fixture Isolation: Save/restore root logger state
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from millitime._logging import JsonFormatter, configure_logging
from millitime._settings import LoggingSettings


@pytest.fixture
def _restore_root_logger() -> Iterator[None]:
    """Save and restore root logger handlers and level."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def _record(message: str = "synced", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="millitime._sync",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def _format(formatter: JsonFormatter, record: logging.LogRecord) -> dict[str, object]:
    return json.loads(formatter.format(record))


class TestJsonFormatter:
    """JsonFormatter output schema.

    Technique: Specification-based Testing.
    """

    def test_core_fields(self) -> None:
        entry = _format(JsonFormatter(service="millitime"), _record("hello"))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "millitime._sync"
        assert entry["message"] == "hello"
        assert entry["service"] == "millitime"

    def test_timestamp_is_utc(self) -> None:
        entry = _format(JsonFormatter(), _record())
        parsed = datetime.fromisoformat(str(entry["timestamp"]))
        assert parsed.tzinfo == UTC

    def test_version_only_when_set(self) -> None:
        assert _format(JsonFormatter(version="1.2.3"), _record())["version"] == "1.2.3"
        assert "version" not in _format(JsonFormatter(), _record())

    def test_sync_extra_fields_copied(self) -> None:
        record = _record(server="pool.ntp.org", skew_ms=-12, latency_ms=33)
        entry = _format(JsonFormatter(), record)

        assert entry["server"] == "pool.ntp.org"
        assert entry["skew_ms"] == -12
        assert entry["latency_ms"] == 33
        assert "reason" not in entry

    def test_failure_reason_copied(self) -> None:
        entry = _format(JsonFormatter(), _record(server="x", reason="timeout"))
        assert entry["reason"] == "timeout"

    def test_unlisted_extras_ignored(self) -> None:
        entry = _format(JsonFormatter(), _record(secret="nope"))
        assert "secret" not in entry

    def test_exception_included(self) -> None:
        record = _record()
        try:
            raise ValueError("boom")
        except ValueError as exc:
            record.exc_info = (ValueError, exc, exc.__traceback__)

        entry = _format(JsonFormatter(), record)

        assert "ValueError: boom" in str(entry["exception"])

    def test_stack_info_included(self) -> None:
        record = _record()
        record.stack_info = "Stack (most recent call last)"
        assert "stack_info" in _format(JsonFormatter(), record)

    def test_single_line(self) -> None:
        record = _record("multi\nline")
        assert "\n" not in JsonFormatter().format(record)


@pytest.mark.usefixtures("_restore_root_logger")
class TestConfigureLogging:
    """configure_logging() root logger setup.

    Technique: State Inspection.
    """

    def test_json_format(self) -> None:
        configure_logging(LoggingSettings(format="json"), service="millitime")

        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter, JsonFormatter)

    def test_text_format(self) -> None:
        configure_logging(LoggingSettings(format="text"), service="millitime")

        (handler,) = logging.getLogger().handlers
        assert not isinstance(handler.formatter, JsonFormatter)

    def test_sets_level(self) -> None:
        configure_logging(LoggingSettings(level="DEBUG"), service="millitime")
        assert logging.getLogger().level == logging.DEBUG

    def test_replaces_existing_handlers(self) -> None:
        root = logging.getLogger()
        stale = logging.NullHandler()
        root.addHandler(stale)

        configure_logging(LoggingSettings(), service="millitime")

        assert stale not in root.handlers

    def test_rotating_file_handler(self, tmp_path: Path) -> None:
        settings = LoggingSettings(
            file=str(tmp_path / "millitime.log"),
            max_file_size_mb=2,
            backup_count=5,
        )

        configure_logging(settings, service="millitime")

        (rotating,) = [
            h
            for h in logging.getLogger().handlers
            if isinstance(h, RotatingFileHandler)
        ]
        assert rotating.maxBytes == 2 * 1024 * 1024
        assert rotating.backupCount == 5

    def test_file_receives_json_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "millitime.log"
        configure_logging(
            LoggingSettings(file=str(path)), service="millitime", version="0.1.0"
        )

        logging.getLogger("millitime.test").info(
            "Synchronised", extra={"server": "time.test", "skew_ms": 5}
        )
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(path.read_text().strip().splitlines()[-1])
        assert entry["message"] == "Synchronised"
        assert entry["server"] == "time.test"
        assert entry["version"] == "0.1.0"
