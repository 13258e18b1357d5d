"""Tests for the ExperienceService facade.

Exercises the public operations end to end against a temporary store, with
inputs passed as plain dicts the way CLI and signal callers pass them.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from experience_layer.core.config import ExperienceConfig
from experience_layer.core.errors import InsufficientEvidenceError, NotFoundError
from experience_layer.core.logging import get_current_context
from experience_layer.learning.models import RecordExperienceInput
from experience_layer.service import ExperienceService
from experience_layer.store import Outcome, PatternType


def _record_builds(service, now, count=3, outcome="success"):
    return [
        service.record_experience(
            {"operation_type": "build", "outcome": outcome, "server_name": "builder-1"},
            now=now + timedelta(minutes=i),
        )
        for i in range(count)
    ]


class TestConstruction:
    def test_from_config_uses_configured_path(self, tmp_path):
        config = ExperienceConfig(db_path=tmp_path / "sub" / "x.db")
        service = ExperienceService.from_config(config)
        assert service.store.db_path == tmp_path / "sub" / "x.db"
        assert (tmp_path / "sub" / "x.db").exists()

    def test_components_share_store_and_config(self, service):
        assert service.recorder.store is service.store
        assert service.lessons.store is service.store
        assert service.query.config is service.config
        assert service.recorder.detector is service.detector


class TestRecordExperience:
    def test_accepts_dict_or_model(self, service, now):
        from_dict = service.record_experience(
            {"operation_type": "build", "outcome": "success"}, now=now
        )
        from_model = service.record_experience(
            RecordExperienceInput(operation_type="build", outcome=Outcome.FAILURE), now=now
        )
        assert from_model.episode_id == from_dict.episode_id + 1

    def test_rejects_malformed_input(self, service):
        with pytest.raises(ValidationError):
            service.record_experience({"operation_type": "build"})
        with pytest.raises(ValidationError):
            service.record_experience(
                {"operation_type": "build", "outcome": "success", "extra": 1}
            )
        assert service.store.count_episodes() == 0

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("problem", {"query": {"a", "b"}}),
            ("solution", {"params": (1, 2)}),
            ("metadata", {"triggers": [object()]}),
        ],
    )
    def test_rejects_payloads_that_are_not_json(self, service, field, value):
        with pytest.raises(ValidationError):
            service.record_experience(
                {"operation_type": "build", "outcome": "success", field: value}
            )
        assert service.store.count_episodes() == 0

    def test_nested_payload_is_stored_as_given(self, service):
        payload = {"query": "q", "constraints": {"max": 3, "tags": ["a", None, 1.5, True]}}
        result = service.record_experience(
            {"operation_type": "search", "outcome": "success", "problem": payload}
        )
        assert service.get_episode(result.episode_id).problem == payload

    def test_result_dict(self, service, now):
        payload = service.record_experience(
            {"operation_type": "build", "outcome": "success"}, now=now
        ).to_dict()
        assert payload == {
            "episode_id": 1,
            "recorded": True,
            "utility_score": pytest.approx(0.9),
            "patterns_triggered": [],
        }

    def test_operation_context_is_cleared_afterwards(self, service, now):
        service.record_experience({"operation_type": "build", "outcome": "success"}, now=now)
        assert get_current_context() is None


class TestRecall:
    def test_recall_by_type(self, service, now):
        recorded = _record_builds(service, now)
        result = service.recall_by_type({"operation_type": "build", "limit": 2})
        assert [e.id for e in result.episodes] == [
            recorded[2].episode_id,
            recorded[1].episode_id,
        ]
        assert len(result.patterns_detected) == 1

    def test_recall_by_outcome(self, service, now):
        _record_builds(service, now, count=2, outcome="failure")
        service.record_experience({"operation_type": "deploy", "outcome": "success"}, now=now)
        result = service.recall_by_outcome({"outcome": "failure"})
        assert result.count == 2
        assert result.patterns_detected == []

    def test_rejects_bad_limit(self, service):
        with pytest.raises(ValidationError):
            service.recall_by_type({"operation_type": "build", "limit": 0})


class TestLessonLifecycle:
    def test_learn_apply_and_query(self, service, now):
        recorded = _record_builds(service, now, count=5)
        learned = service.learn_from_pattern(
            {
                "pattern_description": "build",
                "episode_ids": [r.episode_id for r in recorded],
                "lesson_statement": "Warm the cache before building",
            },
            now=now,
        )
        # the detector already mined a "build: ..." pattern; it is reused
        assert learned.pattern_id == service.list_patterns()[0].id

        lessons = service.get_lessons({"operation_type": "build"}, now=now)
        assert [item.lesson.id for item in lessons.lessons] == [learned.lesson_id]
        assert lessons.lessons[0].lesson.contexts == ["server:builder-1", "operation:build"]

        applied = service.apply_lesson(
            {"lesson_id": learned.lesson_id, "outcome": "success", "notes": "worked"},
            now=now,
        )
        assert applied.new_confidence > applied.previous_confidence
        assert service.get_pattern(learned.pattern_id).times_applied == 1

    def test_learn_requires_three_episodes(self, service, now):
        recorded = _record_builds(service, now, count=2)
        with pytest.raises(InsufficientEvidenceError):
            service.learn_from_pattern(
                {
                    "pattern_description": "build",
                    "episode_ids": [r.episode_id for r in recorded],
                    "lesson_statement": "s",
                }
            )

    def test_apply_unknown_lesson(self, service):
        with pytest.raises(NotFoundError):
            service.apply_lesson({"lesson_id": 12, "outcome": "failure"})

    def test_get_lessons_without_filters(self, service, now):
        assert service.get_lessons().lessons == []

    def test_deprecate_lesson(self, service, now):
        recorded = _record_builds(service, now)
        learned = service.learn_from_pattern(
            {
                "pattern_description": "build",
                "episode_ids": [r.episode_id for r in recorded],
                "lesson_statement": "s",
            },
            now=now,
        )
        lesson = service.deprecate_lesson(learned.lesson_id, now=now)
        assert lesson.deprecated_at == now
        assert service.active_lessons(now=now) == []
        assert service.get_stats(now=now).deprecated_lessons == 1


class TestReadHelpers:
    def test_get_episode_and_pattern(self, service, now):
        recorded = _record_builds(service, now)
        assert service.get_episode(recorded[0].episode_id).operation_type == "build"
        with pytest.raises(NotFoundError):
            service.get_episode(999)
        with pytest.raises(NotFoundError):
            service.get_pattern(999)

    def test_list_patterns(self, service, now):
        _record_builds(service, now)
        assert len(service.list_patterns("success")) == 1
        assert service.list_patterns(PatternType.FAILURE) == []
        with pytest.raises(ValueError):
            service.list_patterns("bogus")

    def test_recent_episodes_paging(self, service, now):
        recorded = _record_builds(service, now, count=4)
        page = service.recent_episodes(limit=2, offset=1)
        assert [e.id for e in page] == [recorded[2].episode_id, recorded[1].episode_id]

    def test_cleanup(self, service, now):
        _record_builds(service, now - timedelta(days=120))
        result = service.cleanup(now=now)
        assert result.episodes_deleted == 3
        assert service.get_stats(now=now).episodes == 0
