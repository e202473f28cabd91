"""Tests for liveness staleness and stuck detection."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from afkguard.core.liveness import LivenessMonitor
from afkguard.session.base import Vec3
from afkguard.settings import LivenessConfig


def make_monitor(clock, session=None, **config):
    on_stale = Mock()
    on_stuck = Mock()
    monitor = LivenessMonitor(
        LivenessConfig(check_interval_s=100, **config),
        lambda gen: session if gen == 1 else None,
        on_stale=on_stale,
        on_stuck=on_stuck,
        clock=clock,
    )
    return monitor, on_stale, on_stuck


def test_staleness_without_generation_reports_but_does_not_call_back(clock) -> None:
    monitor, on_stale, _ = make_monitor(clock, timeout_s=60)

    clock.advance(30)
    assert monitor.check_staleness() is False
    clock.advance(31)
    assert monitor.check_staleness() is True

    on_stale.assert_not_called()


@pytest.mark.asyncio
async def test_staleness_triggers_callback(clock) -> None:
    monitor, on_stale, _ = make_monitor(clock, Mock(), timeout_s=60)
    monitor.start(1)

    clock.advance(45)
    monitor.observe()
    clock.advance(45)
    assert monitor.check_staleness() is False

    clock.advance(16)
    assert monitor.check_staleness() is True
    monitor.stop()

    on_stale.assert_called_once_with(1, 61)


@pytest.mark.asyncio
async def test_stuck_threshold_fires_exactly_once_then_resets(clock) -> None:
    session = Mock()
    monitor, _, on_stuck = make_monitor(clock, session, stuck_threshold=3)
    monitor.start(1)
    here = Vec3(10.0, 70.0, 10.0)

    results = [monitor.check_stuck(here) for _ in range(4)]

    assert results == [False, False, False, True]
    on_stuck.assert_called_once_with(1, session)
    assert monitor.record.stuck_counter == 0
    assert monitor.record.corrections == 1

    assert monitor.check_stuck(here) is False
    assert monitor.check_stuck(here) is False
    assert on_stuck.call_count == 1
    monitor.stop()


@pytest.mark.asyncio
async def test_movement_resets_stuck_counter(clock) -> None:
    monitor, _, on_stuck = make_monitor(clock, Mock(), stuck_threshold=3, stuck_epsilon=0.1)
    monitor.start(1)

    monitor.check_stuck(Vec3(0, 70, 0))
    monitor.check_stuck(Vec3(0, 70, 0.05))
    monitor.check_stuck(Vec3(0, 70, 0.05))
    assert monitor.record.stuck_counter == 2

    monitor.check_stuck(Vec3(0, 70, 1.0))
    assert monitor.record.stuck_counter == 0
    assert monitor.record.distance_moved == pytest.approx(0.95)
    monitor.stop()

    on_stuck.assert_not_called()


def test_forget_position_drops_baseline(clock) -> None:
    monitor, _, _ = make_monitor(clock)
    monitor.check_stuck(Vec3(0, 70, 0))
    monitor.check_stuck(Vec3(0, 70, 0))

    monitor.forget_position()

    assert monitor.record.last_position is None
    assert monitor.record.stuck_counter == 0
    assert monitor.check_stuck(None) is False
