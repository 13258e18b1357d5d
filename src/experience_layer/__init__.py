"""Experience Layer - episodic memory with decaying, reusable lessons.

Records experiences (attempted operations and their outcomes), mines
recurring patterns from them, distills patterns into lessons and keeps
every lesson's confidence current as time passes and as it is reused.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
