"""
core/clock.py -- Time source shared by the token and session code.

Everything that needs "now" takes a Clock callable so tests can pin or advance
time. Timestamps are always timezone-aware UTC.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
