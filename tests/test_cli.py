"""Tests for the experience CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from experience_layer import __version__
from experience_layer.cli import app

runner = CliRunner()


@pytest.fixture
def invoke(db_path: Path):
    """Run a CLI command against the temporary store with logging quietened."""

    def _invoke(*args: str, **kwargs):
        return runner.invoke(
            app, ["--db", str(db_path), "--log-level", "ERROR", *args], **kwargs
        )

    return _invoke


def _json(result) -> dict:
    return json.loads(result.stdout)


def _record_builds(invoke, count=3, outcome="success"):
    return [
        _json(invoke("record", "build", outcome, "--server", "builder-1", "--json"))
        for _ in range(count)
    ]


class TestGlobalOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"experience-layer v{__version__}" in result.stdout

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("record", "recall-type", "recall-outcome", "lessons", "apply",
                        "learn", "deprecate", "cleanup", "stats", "patterns"):
            assert command in result.stdout

    def test_invalid_config_file(self, tmp_path, db_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("utility:\n  novelty: 0.9\n")
        result = runner.invoke(
            app, ["--db", str(db_path), "--config", str(config_file), "stats"]
        )
        assert result.exit_code == 1
        assert "E301" in result.stdout

    def test_config_file_sets_store(self, tmp_path):
        db = tmp_path / "from-config.db"
        config_file = tmp_path / "experience.yaml"
        config_file.write_text(f"db_path: {db}\nlogging:\n  level: ERROR\n")
        result = runner.invoke(
            app, ["--config", str(config_file), "record", "build", "success"]
        )
        assert result.exit_code == 0
        assert db.exists()


class TestRecord:
    def test_record_json(self, invoke):
        result = invoke(
            "record", "search", "partial",
            "--query", "find config",
            "--metadata", '{"environment": "ci", "triggers": ["push"]}',
            "--quality", "0.8",
            "--json",
        )
        assert result.exit_code == 0, result.stdout
        payload = _json(result)
        assert payload["recorded"] is True
        assert payload["episode_id"] == 1
        assert payload["patterns_triggered"] == []

    def test_third_record_reports_pattern(self, invoke):
        results = _record_builds(invoke)
        assert results[-1]["patterns_triggered"] == [
            "build: 100% success rate over 3 episodes"
        ]

    def test_human_output(self, invoke):
        result = invoke("record", "build", "success")
        assert result.exit_code == 0
        assert "Recorded episode 1" in result.stdout

    def test_invalid_outcome(self, invoke):
        result = invoke("record", "build", "maybe", "--json")
        assert result.exit_code == 1
        payload = _json(result)
        assert payload["success"] is False
        assert any(hint.startswith("outcome") for hint in payload["hints"])

    def test_invalid_json_option(self, invoke):
        result = invoke("record", "build", "success", "--metadata", "[1, 2]")
        assert result.exit_code == 2


class TestRecall:
    def test_recall_type(self, invoke):
        _record_builds(invoke)
        invoke("record", "build", "failure")
        result = invoke("recall-type", "build", "--outcome", "success", "-n", "2", "--json")
        assert result.exit_code == 0
        payload = _json(result)
        assert payload["count"] == 2
        assert {e["outcome"] for e in payload["episodes"]} == {"success"}
        assert len(payload["patterns_detected"]) == 1

    def test_recall_outcome(self, invoke):
        invoke("record", "deploy", "failure")
        invoke("record", "build", "failure")
        result = invoke("recall-outcome", "failure", "--type", "deploy", "--json")
        payload = _json(result)
        assert [e["operation_type"] for e in payload["episodes"]] == ["deploy"]

    def test_recall_human_output_when_empty(self, invoke):
        result = invoke("recall-type", "build")
        assert result.exit_code == 0
        assert "No episodes found" in result.stdout


class TestLessonCommands:
    def _learn(self, invoke, ids):
        args = ["learn", "build", "--statement", "Warm the cache before building"]
        for episode_id in ids:
            args += ["-e", str(episode_id)]
        return invoke(*args, "--json")

    def test_learn_apply_and_list(self, invoke):
        ids = [r["episode_id"] for r in _record_builds(invoke, count=5)]
        learned = _json(self._learn(invoke, ids))
        assert learned["created"] is True

        listed = _json(invoke("lessons", "--type", "build", "--json"))
        [lesson] = listed["lessons"]
        assert lesson["id"] == learned["lesson_id"]
        assert listed["confidence_summary"]["high"] == 1

        applied = invoke("apply", str(learned["lesson_id"]), "success", "--json")
        assert applied.exit_code == 0
        payload = _json(applied)
        assert payload["applied"] is True
        assert payload["total_applications"] == 1

    def test_learn_with_two_episodes(self, invoke):
        ids = [r["episode_id"] for r in _record_builds(invoke, count=2)]
        result = self._learn(invoke, ids)
        assert result.exit_code == 1
        assert _json(result)["error_code"] == "E422"

    def test_apply_unknown_lesson(self, invoke):
        result = invoke("apply", "999", "success", "--json")
        assert result.exit_code == 1
        payload = _json(result)
        assert payload["error_code"] == "E404"
        assert "999" in payload["message"]

    def test_apply_unknown_lesson_human(self, invoke):
        result = invoke("apply", "999", "failure")
        assert result.exit_code == 1
        assert "Lesson 999 not found" in result.stdout

    def test_lessons_context_filter(self, invoke):
        ids = [r["episode_id"] for r in _record_builds(invoke)]
        self._learn(invoke, ids)
        matching = _json(invoke("lessons", "--context", '{"server": "builder-1"}', "--json"))
        other = _json(invoke("lessons", "--context", '{"env": "prod"}', "--json"))
        assert len(matching["lessons"]) == 1
        assert other["lessons"] == []

    def test_lessons_context_must_be_object(self, invoke):
        result = invoke("lessons", "--context", "[1]")
        assert result.exit_code == 2

    def test_deprecate(self, invoke):
        ids = [r["episode_id"] for r in _record_builds(invoke)]
        learned = _json(self._learn(invoke, ids))
        result = invoke("deprecate", str(learned["lesson_id"]), "--json")
        assert result.exit_code == 0
        assert _json(result)["deprecated_at"] is not None
        assert _json(invoke("lessons", "--json"))["lessons"] == []

    def test_lessons_human_output_when_empty(self, invoke):
        result = invoke("lessons")
        assert result.exit_code == 0
        assert "No applicable lessons" in result.stdout


class TestMaintenanceCommands:
    def test_stats(self, invoke):
        _record_builds(invoke)
        payload = _json(invoke("stats", "--json"))
        assert payload["episodes"] == 3
        assert payload["patterns"] == 1
        assert payload["by_outcome"]["success"] == 3

    def test_stats_human(self, invoke):
        result = invoke("stats")
        assert result.exit_code == 0
        assert "Experience Store Statistics" in result.stdout

    def test_patterns(self, invoke):
        _record_builds(invoke)
        payload = _json(invoke("patterns", "--type", "success", "--json"))
        assert [p["pattern_type"] for p in payload] == ["success"]
        assert _json(invoke("patterns", "--type", "failure", "--json")) == []

    def test_patterns_unknown_type(self, invoke):
        result = invoke("patterns", "--type", "bogus")
        assert result.exit_code == 2

    def test_cleanup(self, invoke):
        _record_builds(invoke)
        payload = _json(invoke("cleanup", "--json"))
        assert payload == {
            "episodes_deleted": 0,
            "patterns_deleted": 0,
            "lessons_deprecated": 0,
        }

    def test_cleanup_rejects_non_positive_days(self, invoke):
        result = invoke("cleanup", "--days", "0")
        assert result.exit_code == 2

    def test_cleanup_rejects_out_of_range_days(self, invoke):
        result = invoke("cleanup", "--days", "1e9")
        assert result.exit_code == 2
