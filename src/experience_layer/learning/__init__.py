"""Knowledge lifecycle engine: scoring, pattern mining, lessons and queries."""

from experience_layer.learning.detector import PatternDetector
from experience_layer.learning.lessons import LessonManager
from experience_layer.learning.models import (
    ApplyLessonInput,
    ApplyLessonResult,
    CleanupResult,
    ConfidenceSummary,
    GetLessonsInput,
    LearnFromPatternInput,
    LearnFromPatternResult,
    LessonsResult,
    RecallByOutcomeInput,
    RecallByTypeInput,
    RecallResult,
    RecordExperienceInput,
    RecordExperienceResult,
)
from experience_layer.learning.query import QueryLayer
from experience_layer.learning.recorder import EpisodeRecorder
from experience_layer.learning.signals import Signal, SignalTranslator, SignalType

__all__ = [
    # Components
    "EpisodeRecorder",
    "PatternDetector",
    "LessonManager",
    "QueryLayer",
    # Signals
    "Signal",
    "SignalType",
    "SignalTranslator",
    # Inputs
    "RecordExperienceInput",
    "RecallByTypeInput",
    "RecallByOutcomeInput",
    "GetLessonsInput",
    "ApplyLessonInput",
    "LearnFromPatternInput",
    # Results
    "RecordExperienceResult",
    "RecallResult",
    "LessonsResult",
    "ConfidenceSummary",
    "ApplyLessonResult",
    "LearnFromPatternResult",
    "CleanupResult",
]
