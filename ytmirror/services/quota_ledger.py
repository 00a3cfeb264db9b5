"""Time-windowed budget for YouTube Data API quota units."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from ytmirror.core.config import Settings
from ytmirror.db.models import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class QuotaWindow:
    """Snapshot of the active accounting window."""

    window_start: datetime
    window_length: timedelta
    units_consumed: int
    units_budget: int

    @property
    def remaining(self) -> int:
        return max(self.units_budget - self.units_consumed, 0)

    @property
    def resets_at(self) -> datetime:
        return self.window_start + self.window_length


class QuotaLedger:
    """Gate for outbound API calls.

    Every reservation runs inside a single critical section, so concurrent
    callers can never jointly exceed the budget. Window rollover is lazy: it
    is evaluated on each call against the injected clock, no timer involved.
    A refused reservation leaves the ledger untouched.
    """

    def __init__(
        self,
        *,
        units_budget: int,
        window_length: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if units_budget < 0:
            raise ValueError("units_budget must be non-negative")
        if window_length <= timedelta(0):
            raise ValueError("window_length must be positive")
        self._budget = units_budget
        self._window_length = window_length
        self._clock = clock
        self._lock = threading.Lock()
        self._window_start = clock()
        self._consumed = 0

    @classmethod
    def from_settings(cls, config: Settings, *, clock: Callable[[], datetime] = utcnow) -> "QuotaLedger":
        return cls(
            units_budget=config.quota_daily_budget,
            window_length=timedelta(hours=config.quota_window_hours),
            clock=clock,
        )

    def _roll_window(self, now: datetime) -> None:
        if now >= self._window_start + self._window_length:
            logger.info(
                "Quota window rolled over",
                extra={"previous_start": self._window_start.isoformat(), "consumed": self._consumed},
            )
            self._window_start = now
            self._consumed = 0

    def try_reserve(self, cost: int) -> bool:
        """Reserve ``cost`` units in the current window; False when the budget would be exceeded."""

        if cost < 0:
            raise ValueError("cost must be non-negative")

        with self._lock:
            self._roll_window(self._clock())
            if self._consumed + cost > self._budget:
                logger.info(
                    "Quota reservation refused",
                    extra={"cost": cost, "consumed": self._consumed, "budget": self._budget},
                )
                return False
            self._consumed += cost
            return True

    def current_window(self) -> QuotaWindow:
        with self._lock:
            self._roll_window(self._clock())
            return QuotaWindow(
                window_start=self._window_start,
                window_length=self._window_length,
                units_consumed=self._consumed,
                units_budget=self._budget,
            )

    @property
    def remaining(self) -> int:
        return self.current_window().remaining
