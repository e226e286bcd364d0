"""Injected clock and per-invocation time budget.

resume() never reads wall time directly. It asks a TimeBudget, which asks a
Clock, so tests can drive the time-boxing policy with a fake clock.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from enricher.core.config import SchedulerConfig


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def now(self) -> datetime: ...


class SystemClock:
    """Real time."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass
class TimeBudget:
    """Elapsed-time and item ceilings for one invocation.

    Checked before starting each entity; an entity already started always
    runs to the end of its stages.
    """

    clock: Clock = field(default_factory=SystemClock)
    limit_seconds: float = SchedulerConfig.TIME_BUDGET_SECONDS
    item_limit: int = SchedulerConfig.ENTITIES_PER_INVOCATION
    _started: float | None = None
    items: int = 0

    def start(self) -> None:
        self._started = self.clock.monotonic()
        self.items = 0

    @property
    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        return self.clock.monotonic() - self._started

    def count_item(self) -> None:
        self.items += 1

    def exhausted(self) -> bool:
        """True if either ceiling is reached."""
        return self.elapsed >= self.limit_seconds or self.items >= self.item_limit

    def reason(self) -> str:
        if self.items >= self.item_limit:
            return f"item ceiling reached ({self.items}/{self.item_limit})"
        return f"time budget reached ({self.elapsed:.0f}s/{self.limit_seconds:.0f}s)"
