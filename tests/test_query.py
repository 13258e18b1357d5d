"""Tests for experience_layer.learning.query."""

import math
from datetime import timedelta

import pytest

from experience_layer.learning import QueryLayer
from experience_layer.learning.models import (
    GetLessonsInput,
    RecallByOutcomeInput,
    RecallByTypeInput,
)
from experience_layer.learning.query import matches_context
from experience_layer.store import Lesson, Outcome, PatternType
from helpers import days_ago, insert_scored_episode


@pytest.fixture
def query(store, config):
    return QueryLayer(store, config)


def _lesson(store, now, statement="Cache dependencies", confidence=0.8, **kw):
    return store.insert_lesson(
        statement=statement,
        initial_confidence=confidence,
        decay_constant=0.01,
        now=now,
        **kw,
    )


def _pattern(store, now, description, pattern_type=PatternType.SUCCESS, weight=0.5):
    return store.insert_pattern(
        pattern_type=pattern_type,
        description=description,
        episode_ids=[],
        initial_confidence=0.5,
        decay_constant=0.01,
        discrimination_weight=weight,
        now=now,
    )


class TestMatchesContext:
    def _make(self, contexts):
        return Lesson(
            id=1,
            statement="s",
            initial_confidence=0.5,
            decay_constant=0.01,
            last_validated=None,
            created_at=None,
            contexts=contexts,
        )

    def test_lesson_without_contexts_always_matches(self):
        assert matches_context(self._make(None), {"anything": "at all"})

    def test_empty_contexts_never_match(self):
        assert not matches_context(self._make([]), {"server": "builder-1"})

    def test_tag_containing_key_matches(self):
        lesson = self._make(["server:builder-1", "operation:build"])
        assert matches_context(lesson, {"Server": "elsewhere"})

    def test_value_containing_tag_matches(self):
        lesson = self._make(["env:prod"])
        assert matches_context(lesson, {"target": "deploy to ENV:PROD now"})

    def test_non_string_values_are_stringified(self):
        lesson = self._make(["42"])
        assert matches_context(lesson, {"attempt": 1042})

    def test_unrelated_context(self):
        lesson = self._make(["server:builder-1", "operation:build"])
        assert not matches_context(lesson, {"env": "prod"})


class TestRecall:
    def test_recall_by_type_newest_first_with_related_patterns(self, query, store, now):
        older = insert_scored_episode(store, "build", Outcome.SUCCESS, days_ago(now, 2), utility=0.4)
        newer = insert_scored_episode(store, "build", Outcome.FAILURE, now, utility=0.8)
        insert_scored_episode(store, "deploy", Outcome.SUCCESS, now)
        related = _pattern(store, now, "Build: 50% success rate over 2 episodes")
        _pattern(store, now, "deploy: 100% success rate over 3 episodes")

        result = query.recall_by_type(RecallByTypeInput(operation_type="build"))

        assert [e.id for e in result.episodes] == [newer.id, older.id]
        assert result.count == 2
        assert result.avg_utility == pytest.approx(0.6)
        assert [p.id for p in result.patterns_detected] == [related.id]

    def test_outcome_filter_is_applied_before_limit(self, query, store, now):
        for i in range(6):
            outcome = Outcome.SUCCESS if i % 2 else Outcome.FAILURE
            insert_scored_episode(store, "build", outcome, now + timedelta(minutes=i))

        result = query.recall_by_type(
            RecallByTypeInput(operation_type="build", outcome_filter="failure", limit=3)
        )
        assert result.count == 3
        assert {e.outcome for e in result.episodes} == {Outcome.FAILURE}

    def test_empty_recall(self, query):
        result = query.recall_by_type(RecallByTypeInput(operation_type="build"))
        assert result.episodes == []
        assert result.avg_utility == 0.0
        assert result.to_dict()["count"] == 0

    def test_recall_by_outcome_uses_matching_pattern_type(self, query, store, now):
        insert_scored_episode(store, "build", Outcome.PARTIAL, now)
        insert_scored_episode(store, "deploy", Outcome.PARTIAL, now)
        correlation = _pattern(store, now, "build: 50%", pattern_type=PatternType.CORRELATION)
        _pattern(store, now, "build: 100%", pattern_type=PatternType.SUCCESS)

        result = query.recall_by_outcome(RecallByOutcomeInput(outcome="partial"))
        assert result.count == 2
        assert [p.id for p in result.patterns_detected] == [correlation.id]

    def test_recall_by_outcome_narrowed_to_type(self, query, store, now):
        insert_scored_episode(store, "build", Outcome.FAILURE, now)
        insert_scored_episode(store, "deploy", Outcome.FAILURE, now)
        build_failure = _pattern(store, now, "build: 0%", pattern_type=PatternType.FAILURE)
        _pattern(store, now, "deploy: 0%", pattern_type=PatternType.FAILURE)

        result = query.recall_by_outcome(
            RecallByOutcomeInput(outcome="failure", operation_type="build")
        )
        assert [e.operation_type for e in result.episodes] == ["build"]
        assert [p.id for p in result.patterns_detected] == [build_failure.id]


class TestActiveLessons:
    def test_sorted_by_decayed_confidence(self, query, store, now):
        weak = _lesson(store, now, confidence=0.5)
        strong = _lesson(store, now, confidence=0.9)
        decayed = _lesson(store, days_ago(now, 50), confidence=0.9)

        ranked = query.active_lessons(now=now)
        assert [item.lesson.id for item in ranked] == [strong.id, decayed.id, weak.id]
        assert ranked[1].current_confidence == pytest.approx(0.9 * math.exp(-0.5))

    def test_ties_keep_id_order(self, query, store, now):
        first = _lesson(store, now, confidence=0.6)
        second = _lesson(store, now, confidence=0.6)
        assert [item.lesson.id for item in query.active_lessons(now=now)] == [first.id, second.id]

    def test_deprecated_are_excluded(self, query, store, now):
        kept = _lesson(store, now)
        gone = _lesson(store, now)
        store.deprecate_lesson(gone.id, now)
        assert [item.lesson.id for item in query.active_lessons(now=now)] == [kept.id]

    def test_min_confidence_applies_after_decay(self, query, store, now):
        _lesson(store, days_ago(now, 100), confidence=0.9)
        assert query.active_lessons(0.5, now=now) == []
        assert len(query.active_lessons(0.3, now=now)) == 1

    def test_decay_is_not_persisted(self, query, store, now):
        lesson = _lesson(store, days_ago(now, 30), confidence=0.9)
        query.active_lessons(now=now)
        assert store.get_lesson(lesson.id).initial_confidence == 0.9


class TestGetLessons:
    def test_confidence_summary(self, query, store, now):
        _lesson(store, now, confidence=0.9)
        _lesson(store, now, confidence=0.7)
        _lesson(store, now, confidence=0.5)
        _lesson(store, now, confidence=0.2)

        result = query.get_lessons(GetLessonsInput(), now=now)
        assert len(result.lessons) == 4
        assert result.confidence_summary.to_dict() == {"high": 2, "medium": 1, "low": 1}

    def test_operation_type_matches_statement_contexts_or_pattern(self, query, store, now):
        pattern = _pattern(store, now, "deploy: 100% success rate over 3 episodes")
        by_statement = _lesson(store, now, statement="Warm the Deploy cache")
        by_context = _lesson(store, now, statement="Pin versions", contexts=["operation:deploy"])
        by_pattern = _lesson(store, now, statement="Retry once", pattern_id=pattern.id)
        _lesson(store, now, statement="Unrelated", contexts=["operation:build"])
        _lesson(store, now, statement="Orphan", pattern_id=999)

        result = query.get_lessons(GetLessonsInput(operation_type="deploy"), now=now)
        assert sorted(item.lesson.id for item in result.lessons) == [
            by_statement.id,
            by_context.id,
            by_pattern.id,
        ]

    def test_context_filter(self, query, store, now):
        untagged = _lesson(store, now, statement="General advice")
        tagged = _lesson(store, now, statement="Builder advice", contexts=["server:builder-1"])
        _lesson(store, now, statement="Other", contexts=["env:staging"])
        _lesson(store, now, statement="Empty", contexts=[])

        result = query.get_lessons(
            GetLessonsInput(context={"server": "builder-1"}), now=now
        )
        assert sorted(item.lesson.id for item in result.lessons) == [untagged.id, tagged.id]

    def test_empty_context_means_no_filter(self, query, store, now):
        _lesson(store, now, contexts=[])
        _lesson(store, now, contexts=["env:staging"])
        result = query.get_lessons(GetLessonsInput(context={}), now=now)
        assert len(result.lessons) == 2

    def test_min_confidence(self, query, store, now):
        _lesson(store, now, confidence=0.9)
        _lesson(store, now, confidence=0.3)
        result = query.get_lessons(GetLessonsInput(min_confidence=0.5), now=now)
        assert [item.current_confidence for item in result.lessons] == [0.9]

    def test_to_dict_includes_current_confidence(self, query, store, now):
        _lesson(store, now, confidence=0.8, contexts=["operation:build"])
        payload = query.get_lessons(GetLessonsInput(), now=now).to_dict()
        [lesson] = payload["lessons"]
        assert lesson["current_confidence"] == 0.8
        assert lesson["contexts"] == ["operation:build"]
        assert lesson["deprecated_at"] is None


class TestStats:
    def test_stats(self, query, store, now):
        insert_scored_episode(store, "build", Outcome.SUCCESS, now, utility=1.0)
        insert_scored_episode(store, "build", Outcome.FAILURE, now, utility=0.5)
        _pattern(store, now, "build: x")
        _lesson(store, now, confidence=0.9)
        _lesson(store, now, confidence=0.5)
        gone = _lesson(store, now, confidence=0.9)
        store.deprecate_lesson(gone.id, now)

        stats = query.stats(now=now)
        assert stats.episodes == 2
        assert stats.patterns == 1
        assert stats.lessons == 2
        assert stats.high_confidence_lessons == 1
        assert stats.deprecated_lessons == 1
        assert stats.avg_utility == pytest.approx(0.75)
        assert stats.by_outcome == {"success": 1, "failure": 1, "partial": 0}

    def test_empty_store(self, query):
        stats = query.stats()
        assert stats.to_dict() == {
            "episodes": 0,
            "patterns": 0,
            "lessons": 0,
            "avg_utility": 0.0,
            "high_confidence_lessons": 0,
            "deprecated_lessons": 0,
            "by_outcome": {"success": 0, "failure": 0, "partial": 0},
        }
