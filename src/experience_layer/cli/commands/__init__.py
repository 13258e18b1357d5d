# experience_layer/cli/commands: Command modules for the experience CLI.
#
# Each module in this package provides one or more CLI commands.

from .lessons import apply, deprecate, learn, lessons
from .maintenance import cleanup, patterns, stats
from .recall import recall_outcome, recall_type
from .record import record

__all__ = [
    # record.py
    "record",
    # recall.py
    "recall_type",
    "recall_outcome",
    # lessons.py
    "lessons",
    "apply",
    "learn",
    "deprecate",
    # maintenance.py
    "cleanup",
    "stats",
    "patterns",
]
