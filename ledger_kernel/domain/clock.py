"""
Clock -- the only source of "now" in the ledger.

Every version timestamp (valid_from, system_from, the close instant of a
superseded version), every ``voided_at``, ``closed_at`` and
``reconciled_at`` comes from an injected Clock, so a test can pin time and
replay an exact version chain.

Failure modes:
    - DeterministicClock rejects naive datetimes with ValueError.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_INSTANT = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _require_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        raise ValueError("DeterministicClock requires a timezone-aware datetime")
    return moment


class Clock(ABC):
    """now() is timezone-aware UTC; today() is its UTC calendar date."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Two writes made without moving the clock share one instant, which is
    how same-instant revisions are exercised.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _require_aware(fixed_time or DEFAULT_TEST_INSTANT)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _require_aware(time)

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new instant."""
        self.advance(1)
        return self._current
