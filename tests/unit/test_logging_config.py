"""Unit tests for reanchor.logging_config."""
from __future__ import annotations

import json
import logging

import pytest

from reanchor.logging_config import StructuredFormatter, configure_logging


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord(
            "reanchor.engine.resolver", logging.INFO, __file__, 10, "Anchor %s", ("resolved",), None
        )
        record.__dict__.update(extra)
        return record

    def test_emits_json_with_core_fields(self) -> None:
        payload = json.loads(StructuredFormatter().format(self._record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "reanchor.engine.resolver"
        assert payload["message"] == "Anchor resolved"
        assert "timestamp" in payload

    def test_includes_extra_fields(self) -> None:
        record = self._record(anchor_id="abc", strategies=["identifier"])
        payload = json.loads(StructuredFormatter().format(record))

        assert payload["anchor_id"] == "abc"
        assert payload["strategies"] == ["identifier"]

    def test_non_serializable_extra_is_stringified(self) -> None:
        payload = json.loads(StructuredFormatter().format(self._record(node=object())))
        assert payload["node"].startswith("<object object")


class TestConfigureLogging:
    def test_sets_level_and_formatter(self, restore_root_logger) -> None:
        configure_logging("debug")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_defaults_to_configured_level(self, restore_root_logger, monkeypatch) -> None:
        from reanchor.service import config

        monkeypatch.setattr(config.settings, "log_level", "WARNING")
        configure_logging()

        assert restore_root_logger.level == logging.WARNING
