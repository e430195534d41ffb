"""Time source used by services and handlers.

Everything that stamps a timestamp takes a ``Clock`` so tests can pin time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
