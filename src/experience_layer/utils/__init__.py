"""Shared utilities for the experience layer."""

from experience_layer.utils.time import days_between, from_iso, to_iso, utc_now

__all__ = ["days_between", "from_iso", "to_iso", "utc_now"]
