"""Tests for experience_layer.core.logging."""

import json
import logging

import pytest

from experience_layer.core.logging import (
    ExperienceLogger,
    OperationContext,
    _add_context,
    _sanitize_event_dict,
    configure_logging,
    get_current_context,
    get_logger,
    with_context,
)


class TestOperationContext:
    def test_request_id_is_generated(self):
        first = OperationContext(operation="record_experience")
        second = OperationContext(operation="record_experience")
        assert len(first.request_id) == 12
        assert first.request_id != second.request_id

    def test_to_dict_omits_missing_source(self):
        ctx = OperationContext(operation="cleanup", request_id="abc")
        assert ctx.to_dict() == {"operation": "cleanup", "request_id": "abc"}
        with_source = OperationContext(operation="cleanup", request_id="abc", source="cli")
        assert with_source.to_dict()["source"] == "cli"

    def test_contexts_nest_and_restore(self):
        outer = OperationContext(operation="outer")
        inner = OperationContext(operation="inner")
        assert get_current_context() is None
        with with_context(outer):
            with with_context(inner):
                assert get_current_context() is inner
            assert get_current_context() is outer
        assert get_current_context() is None

    def test_context_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with with_context(OperationContext(operation="x")):
                raise RuntimeError
        assert get_current_context() is None


class TestProcessors:
    def test_sensitive_fields_are_redacted(self):
        event = {
            "event": "peer_connected",
            "api_key": "sk-123",
            "peer": {"auth_token": "t", "name": "builder"},
            "count": 3,
        }
        sanitized = _sanitize_event_dict(None, "info", event)
        assert sanitized["api_key"] == "[REDACTED]"
        assert sanitized["peer"] == {"auth_token": "[REDACTED]", "name": "builder"}
        assert sanitized["count"] == 3

    def test_context_fields_do_not_override_bound_fields(self):
        ctx = OperationContext(operation="apply_lesson", request_id="r1", source="cli")
        with with_context(ctx):
            event = _add_context(None, "info", {"event": "e", "source": "signal"})
        assert event == {
            "event": "e",
            "operation": "apply_lesson",
            "request_id": "r1",
            "source": "signal",
        }


class TestExperienceLogger:
    def test_bind_returns_new_logger(self):
        base = get_logger("learning.lessons")
        bound = base.bind(lesson_id=4)
        assert isinstance(bound, ExperienceLogger)
        assert bound is not base
        assert bound._context == {"component": "learning.lessons", "lesson_id": 4}
        assert base._context == {"component": "learning.lessons"}


class TestConfigureLogging:
    def test_both_requires_file(self):
        with pytest.raises(ValueError, match="file_path"):
            configure_logging(format="both")

    def test_json_output_carries_component_and_context(self, capsys):
        configure_logging(level="INFO", format="json", include_timestamps=False)
        logger = get_logger("learning.detector")
        with with_context(OperationContext(operation="record_experience", request_id="r9")):
            logger.info("pattern_created", pattern_id=7)

        [line] = capsys.readouterr().out.strip().splitlines()
        record = json.loads(line)
        assert record["event"] == "pattern_created"
        assert record["component"] == "learning.detector"
        assert record["pattern_id"] == 7
        assert record["operation"] == "record_experience"
        assert record["request_id"] == "r9"
        assert record["level"] == "info"

    def test_level_filters_lower_events(self, capsys):
        configure_logging(level="WARNING", format="json")
        get_logger("store").info("schema_created")
        assert capsys.readouterr().out == ""

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "experience.log"
        configure_logging(level="DEBUG", format="json", file_path=log_file)
        get_logger("cli").debug("service_opened", db_path="/tmp/x.db")
        for handler in logging.getLogger().handlers:
            handler.flush()
        record = json.loads(log_file.read_text().strip())
        assert record["event"] == "service_opened"
        assert "timestamp" in record

    def test_reconfiguring_replaces_handlers(self, tmp_path):
        configure_logging(format="console")
        configure_logging(format="both", file_path=tmp_path / "x.log")
        assert len(logging.getLogger().handlers) == 2
