from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

#: Callable returning the current time as an aware UTC ``datetime``.
Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Wall-clock UTC time."""
    return datetime.now(UTC)
