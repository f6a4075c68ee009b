"""Tests for the liveness guardian"""

from datetime import timedelta

import pytest

from liveness.guardian import FALLBACK_IDENTITY, IndicatorStatus, LivenessGuardian
from os_interfaces.wake_registry import WakeRegistry


@pytest.fixture
def guardian(registrar, scheduler, clock):
  return LivenessGuardian(registrar, WakeRegistry(scheduler), indicator_id=1, clock=clock)


class TestLivenessGuardian:
  def test_establish_shows_indicator(self, guardian, registrar):
    assert guardian.establish()
    assert 1 in registrar.shown
    assert guardian.status is IndicatorStatus.UNCONFIRMED

  def test_check_confirms_visible(self, guardian, scheduler):
    guardian.establish()
    assert guardian.check() is IndicatorStatus.VISIBLE
    assert guardian.state.last_confirmed_visible
    assert scheduler.pending_for(FALLBACK_IDENTITY) == []

  def test_first_check_clears_stale_fallback(self, guardian, scheduler, clock):
    scheduler.pending.append((FALLBACK_IDENTITY, clock.now, True, True, None))
    guardian.establish()
    guardian.check()
    assert scheduler.pending_for(FALLBACK_IDENTITY) == []

  def test_missing_indicator_recreated_with_fallback(self, guardian, registrar, scheduler, clock):
    guardian.establish()
    guardian.check()
    registrar.dismiss(1)

    assert guardian.check() is IndicatorStatus.FALLBACK_ARMED
    assert registrar.foreground_calls == 2
    assert 1 in registrar.shown
    pending = scheduler.pending_for(FALLBACK_IDENTITY)
    assert len(pending) == 1
    assert pending[0][1] == clock.now + timedelta(seconds=5)
    assert pending[0][4].target == "liveness_check"

  def test_converges_to_visible(self, guardian, registrar, scheduler):
    """From MISSING, recreate plus one fallback check reaches VISIBLE"""
    guardian.establish()
    guardian.check()
    registrar.dismiss(1)
    guardian.check()

    # Fallback delivery
    assert guardian.check() is IndicatorStatus.VISIBLE
    assert not guardian.state.fallback_armed
    assert scheduler.pending_for(FALLBACK_IDENTITY) == []

  def test_repeated_misses_keep_one_fallback(self, guardian, registrar, scheduler):
    registrar.fail_foreground = True
    guardian.establish()
    for _ in range(3):
      guardian.check()
    assert len(scheduler.pending_for(FALLBACK_IDENTITY)) == 1
    assert guardian.status is IndicatorStatus.FALLBACK_ARMED

  def test_presence_query_error_treated_as_missing(self, guardian, registrar):
    guardian.establish()
    registrar.fail_presence = True
    assert guardian.check() is IndicatorStatus.FALLBACK_ARMED
    assert registrar.foreground_calls == 2

  def test_recreate_failure_is_absorbed(self, guardian, registrar):
    registrar.fail_foreground = True
    assert not guardian.establish()

  def test_fallback_not_marked_when_scheduling_fails(self, guardian, registrar, scheduler):
    scheduler.fail_all = True
    guardian.establish()
    registrar.dismiss(1)
    assert guardian.check() is IndicatorStatus.MISSING
    assert not guardian.state.fallback_armed

  def test_dismissal_recovers_immediately(self, guardian, registrar, scheduler):
    guardian.establish()
    guardian.check()
    registrar.dismiss(1)

    assert guardian.on_dismissed() is IndicatorStatus.FALLBACK_ARMED
    assert 1 in registrar.shown
    assert len(scheduler.pending_for(FALLBACK_IDENTITY)) == 1

  def test_teardown_cancels_fallback(self, guardian, registrar, scheduler):
    guardian.establish()
    registrar.dismiss(1)
    guardian.check()
    guardian.teardown()
    assert scheduler.pending_for(FALLBACK_IDENTITY) == []
    assert not guardian.state.fallback_armed

  def test_fallback_survives_cancel_error(self, guardian, registrar, scheduler):
    def broken_cancel(identity):
      raise RuntimeError("binder died")

    scheduler.cancel = broken_cancel
    guardian.establish()
    registrar.dismiss(1)
    assert guardian.check() is IndicatorStatus.FALLBACK_ARMED
    assert len(scheduler.pending_for(FALLBACK_IDENTITY)) == 1
