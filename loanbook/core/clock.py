"""
Time source for the domain services.

All persisted timestamps are naive datetimes in UTC. Services accept a
``clock`` callable so tests can freeze or advance time.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
