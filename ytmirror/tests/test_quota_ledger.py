"""Tests for the quota ledger."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from conftest import FakeClock
from ytmirror.services.quota_ledger import QuotaLedger


def test_reserve_within_budget(clock: FakeClock) -> None:
    ledger = QuotaLedger(units_budget=100, clock=clock)

    assert ledger.try_reserve(60) is True
    assert ledger.try_reserve(40) is True
    assert ledger.remaining == 0


def test_refused_reservation_leaves_ledger_unchanged(clock: FakeClock) -> None:
    ledger = QuotaLedger(units_budget=100, clock=clock)
    assert ledger.try_reserve(70) is True

    assert ledger.try_reserve(31) is False
    window = ledger.current_window()
    assert window.units_consumed == 70
    assert window.remaining == 30


def test_zero_cost_always_succeeds(clock: FakeClock) -> None:
    ledger = QuotaLedger(units_budget=0, clock=clock)
    assert ledger.try_reserve(0) is True
    assert ledger.try_reserve(1) is False


def test_negative_cost_rejected(clock: FakeClock) -> None:
    ledger = QuotaLedger(units_budget=10, clock=clock)
    with pytest.raises(ValueError):
        ledger.try_reserve(-1)


def test_window_rolls_over_on_injected_clock(clock: FakeClock) -> None:
    ledger = QuotaLedger(units_budget=100, window_length=timedelta(hours=24), clock=clock)
    assert ledger.try_reserve(100) is True
    assert ledger.try_reserve(1) is False

    clock.advance(hours=23, minutes=59)
    assert ledger.try_reserve(1) is False

    clock.advance(minutes=1)
    assert ledger.try_reserve(1) is True
    window = ledger.current_window()
    assert window.units_consumed == 1
    assert window.window_start == clock.now
    assert window.resets_at == clock.now + timedelta(hours=24)


def test_concurrent_reservations_never_exceed_budget(clock: FakeClock) -> None:
    ledger = QuotaLedger(units_budget=1000, clock=clock)
    granted: list[bool] = []
    lock = threading.Lock()

    def reserve_many() -> None:
        for _ in range(100):
            ok = ledger.try_reserve(7)
            with lock:
                granted.append(ok)

    threads = [threading.Thread(target=reserve_many) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(granted) == 1000 // 7
    assert ledger.current_window().units_consumed == (1000 // 7) * 7
