"""Engine constants for the experience layer.

Centralizes the numeric policy of the knowledge lifecycle so that the
configuration defaults, the scoring functions and the tests agree.
"""

# =============================================================================
# Pattern mining
# =============================================================================

MIN_EPISODES = 3
"""Minimum episodes needed to form a pattern or a lesson."""

RECENCY_WINDOW_DAYS = 30
"""Look-back window for pattern detection."""

DECAY_CONSTANT = 0.01
"""k in CF(t) = CF0 * e^(-k * days)."""

MIN_DISCRIMINATION_WEIGHT = 0.3
"""Patterns weaker than this are neither created nor refreshed."""

DETECTION_LIMIT = 500
"""Maximum same-type episodes considered by one detection pass."""

NOVELTY_LOOKBACK = 50
"""Recent same-type episodes compared when scoring novelty."""

FREQUENCY_LOOKBACK = 1000
"""Cap on the same-type episode count used by generalizability."""

SUCCESS_PATTERN_THRESHOLD = 0.6
"""Success rate above which a pattern is classified as ``success``."""

FAILURE_PATTERN_THRESHOLD = 0.4
"""Success rate below which a pattern is classified as ``failure``."""

# =============================================================================
# Utility weights (sum to 1.0)
# =============================================================================

NOVELTY_WEIGHT = 0.3
EFFECTIVENESS_WEIGHT = 0.5
GENERALIZABILITY_WEIGHT = 0.2

# =============================================================================
# Confidence thresholds
# =============================================================================

HIGH_CONFIDENCE = 0.7
MEDIUM_CONFIDENCE = 0.4

DEPRECATION_THRESHOLD = 0.1
"""Lessons whose updated confidence falls below this may be deprecated."""

MIN_APPLICATIONS_FOR_DEPRECATION = 5
"""Applications required before auto-deprecation is allowed."""

MIN_LESSON_CONFIDENCE = 0.1
MAX_LESSON_CONFIDENCE = 0.95

# =============================================================================
# Retention
# =============================================================================

EPISODE_RETENTION_DAYS = 90
"""Episodes older than this are deleted by the retention sweep."""

PATTERN_RETENTION_FACTOR = 2
"""Patterns unseen for factor * retention days are deleted."""

DEFAULT_RECALL_LIMIT = 50
