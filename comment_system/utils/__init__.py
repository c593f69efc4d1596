"""Shared utilities."""

from comment_system.utils.dates import ensure_utc_aware, utcnow


__all__ = ["ensure_utc_aware", "utcnow"]
