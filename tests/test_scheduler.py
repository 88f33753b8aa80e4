from __future__ import annotations

import pytest

from scheduler import Scheduler


def test_one_shot_runs_once_when_due(scheduler: Scheduler) -> None:
    calls: list[float] = []
    handle = scheduler.schedule(1.5, lambda: calls.append(scheduler.now))

    scheduler.advance(1.0)
    assert calls == []
    assert handle.active

    scheduler.advance(0.5)
    assert calls == [1.5]
    assert not handle.active

    scheduler.advance(10.0)
    assert calls == [1.5]


def test_cancelled_action_never_runs(scheduler: Scheduler) -> None:
    calls: list[str] = []
    handle = scheduler.schedule(1.0, lambda: calls.append("late"))
    handle.cancel()

    scheduler.advance(5.0)
    assert calls == []
    assert scheduler.pending == 0


def test_interval_keeps_cadence_across_long_frames(scheduler: Scheduler) -> None:
    calls: list[int] = []
    scheduler.schedule_interval(0.5, lambda: calls.append(1))

    scheduler.advance(0.4)
    assert len(calls) == 0
    scheduler.advance(1.2)  # now = 1.6: due at 0.5, 1.0, 1.5
    assert len(calls) == 3


def test_interval_can_cancel_itself(scheduler: Scheduler) -> None:
    calls: list[int] = []

    def tick() -> None:
        calls.append(1)
        if len(calls) == 2:
            handle.cancel()

    handle = scheduler.schedule_interval(1.0, tick)
    scheduler.advance(10.0)
    assert len(calls) == 2


def test_same_due_time_runs_in_registration_order(scheduler: Scheduler) -> None:
    order: list[str] = []
    scheduler.schedule(1.0, lambda: order.append("a"))
    scheduler.schedule(1.0, lambda: order.append("b"))
    scheduler.schedule(0.5, lambda: order.append("first"))

    scheduler.advance(1.0)
    assert order == ["first", "a", "b"]


def test_cancel_all_revokes_everything(scheduler: Scheduler) -> None:
    calls: list[str] = []
    scheduler.schedule(1.0, lambda: calls.append("once"))
    scheduler.schedule_interval(0.25, lambda: calls.append("repeat"))
    assert scheduler.pending == 2

    scheduler.cancel_all()
    scheduler.advance(5.0)
    assert calls == []
    assert scheduler.pending == 0


def test_action_scheduled_from_action_runs_when_due(scheduler: Scheduler) -> None:
    calls: list[str] = []
    scheduler.schedule(1.0, lambda: scheduler.schedule(1.0, lambda: calls.append("chained")))

    scheduler.advance(1.0)
    assert calls == []
    scheduler.advance(1.0)
    assert calls == ["chained"]


def test_non_positive_interval_is_rejected(scheduler: Scheduler) -> None:
    with pytest.raises(ValueError):
        scheduler.schedule_interval(0.0, lambda: None)
