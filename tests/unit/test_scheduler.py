"""Unit tests for the Scheduler facade over SimPy."""

from typing import List
from unittest.mock import MagicMock

import pytest
import simpy

from pacing_sim.core.scheduler import EventStatus, Scheduler


class TestScheduler:
    """Tests for schedule, schedule_at and cancel."""

    def test_callback_fires_at_delay_with_args(
        self, env: simpy.Environment, scheduler: Scheduler
    ) -> None:
        fired: List[tuple] = []
        scheduler.schedule(1.5, lambda *args: fired.append((scheduler.now(), args)), "x", 2)
        env.run()
        assert fired == [(1.5, ("x", 2))]

    def test_handle_records_due_time_and_status(
        self, env: simpy.Environment, scheduler: Scheduler
    ) -> None:
        handle = scheduler.schedule(2.0, MagicMock())
        assert handle.time == 2.0
        assert handle.is_pending
        env.run()
        assert handle.status is EventStatus.FIRED
        assert not handle.is_pending

    def test_callbacks_fire_in_time_order(
        self, env: simpy.Environment, scheduler: Scheduler
    ) -> None:
        order: List[str] = []
        scheduler.schedule(3.0, order.append, "c")
        scheduler.schedule(1.0, order.append, "a")
        scheduler.schedule(2.0, order.append, "b")
        env.run()
        assert order == ["a", "b", "c"]

    def test_schedule_at_uses_absolute_time(
        self, env: simpy.Environment, scheduler: Scheduler
    ) -> None:
        env.run(until=1.0)
        callback = MagicMock()
        handle = scheduler.schedule_at(4.0, callback)
        assert handle.time == 4.0
        env.run(until=3.9)
        callback.assert_not_called()
        env.run(until=5.0)
        callback.assert_called_once()

    def test_negative_delay_raises(self, scheduler: Scheduler) -> None:
        with pytest.raises(ValueError):
            scheduler.schedule(-0.1, MagicMock())

    def test_cancelled_callback_never_fires(
        self, env: simpy.Environment, scheduler: Scheduler
    ) -> None:
        callback = MagicMock()
        handle = scheduler.schedule(1.0, callback)
        scheduler.cancel(handle)
        env.run(until=2.0)
        callback.assert_not_called()
        assert handle.status is EventStatus.CANCELLED

    def test_cancel_from_another_callback(
        self, env: simpy.Environment, scheduler: Scheduler
    ) -> None:
        callback = MagicMock()
        handle = scheduler.schedule(2.0, callback)
        scheduler.schedule(1.0, scheduler.cancel, handle)
        env.run()
        callback.assert_not_called()

    def test_cancel_after_fire_is_a_no_op(
        self, env: simpy.Environment, scheduler: Scheduler
    ) -> None:
        handle = scheduler.schedule(1.0, MagicMock())
        env.run()
        scheduler.cancel(handle)
        assert handle.status is EventStatus.FIRED

    def test_cancel_none_is_a_no_op(self, scheduler: Scheduler) -> None:
        scheduler.cancel(None)

    def test_callback_may_schedule_more_callbacks(
        self, env: simpy.Environment, scheduler: Scheduler
    ) -> None:
        times: List[float] = []

        def tick() -> None:
            times.append(scheduler.now())
            if len(times) < 3:
                scheduler.schedule(0.5, tick)

        scheduler.schedule(0.0, tick)
        env.run()
        assert times == pytest.approx([0.0, 0.5, 1.0])
