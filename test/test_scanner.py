"""Tests for the event scanner tick"""

from datetime import timedelta

import pytest

from os_interfaces.wake_registry import WakeRegistry
from reminders.dedup import DedupStore
from reminders.dispatch import AlertDispatcher
from reminders.models import FiredKey
from reminders.scanner import EventScanner, ScannerState


@pytest.fixture
def store():
  return DedupStore()


@pytest.fixture
def scanner(source, store, scheduler, clock):
  dispatcher = AlertDispatcher(WakeRegistry(scheduler), clock=clock)
  return EventScanner(source, store, dispatcher, clock=clock)


class TestEventScanner:
  @pytest.mark.asyncio
  async def test_due_reminder_dispatched_once(self, scanner, source, scheduler, clock):
    """Start T+300s, lead 5: tick at T+1s dispatches, tick at T+2s does not"""
    t = clock.now
    source.add("1", t + timedelta(seconds=300), 5)

    clock.now = t + timedelta(seconds=1)
    report = await scanner.tick()
    assert len(report.dispatched) == 1
    assert len(scheduler.pending_for("reminder-1-5")) == 1

    clock.now = t + timedelta(seconds=2)
    report = await scanner.tick()
    assert report.dispatched == []
    assert len(scheduler.pending_for("reminder-1-5")) == 1

  @pytest.mark.asyncio
  async def test_each_rule_dispatched_exactly_once(self, scanner, source, clock):
    t = clock.now
    source.add("1", t + timedelta(minutes=5), 5, 3, 1)

    dispatched = []
    for seconds in range(0, 300, 10):
      clock.now = t + timedelta(seconds=seconds)
      dispatched.extend((await scanner.tick()).dispatched)

    assert sorted(k.lead_minutes for k in dispatched) == [1, 3, 5]

  @pytest.mark.asyncio
  async def test_dispatch_wake_carries_reminder(self, scanner, source, scheduler, clock):
    source.add("7", clock.now + timedelta(minutes=5), 5, title="Dentist")
    await scanner.tick()

    identity, when, exact, allow_while_idle, payload = scheduler.pending[0]
    assert identity == "reminder-7-5"
    assert when == clock.now + timedelta(seconds=1)
    assert exact and allow_while_idle
    assert payload.target == "reminder"
    assert payload.title == "Dentist"
    assert payload.event_start == clock.now + timedelta(minutes=5)

  @pytest.mark.asyncio
  async def test_queries_lookahead_window(self, scanner, source, clock):
    await scanner.tick()
    assert source.queries == [(clock.now, clock.now + timedelta(minutes=5))]

  @pytest.mark.asyncio
  async def test_source_failure_skips_tick(self, scanner, source, store, scheduler, clock):
    source.add("1", clock.now + timedelta(minutes=5), 5)
    source.fail_query = True

    report = await scanner.tick()
    assert report.skipped == "DATA_SOURCE_UNAVAILABLE"
    assert store.size() == 0
    assert scheduler.pending == []
    assert scanner.state is ScannerState.IDLE

    # Next tick retries normally
    source.fail_query = False
    report = await scanner.tick()
    assert len(report.dispatched) == 1

  @pytest.mark.asyncio
  async def test_unexpected_query_error_is_wrapped(self, scanner, source):
    def broken(start, end):
      raise RuntimeError("cursor closed")

    source.query = broken
    report = await scanner.tick()
    assert report.skipped == "DATA_SOURCE_UNAVAILABLE"

  @pytest.mark.asyncio
  async def test_unreadable_event_does_not_hide_others(self, scanner, source, clock):
    source.add("1", clock.now + timedelta(minutes=5), 5)
    source.add("2", clock.now + timedelta(minutes=5), 5)
    source.fail_rules_for.add("1")

    report = await scanner.tick()
    assert [k.event_id for k in report.dispatched] == ["2"]

  @pytest.mark.asyncio
  async def test_dispatch_failure_still_records_key(self, scanner, source, store, scheduler, clock):
    source.add("1", clock.now + timedelta(minutes=5), 5)
    scheduler.fail_all = True

    report = await scanner.tick()
    assert len(report.dispatched) == 1
    assert store.size() == 1

  @pytest.mark.asyncio
  async def test_store_overflow_allows_refire(self, scanner, source, store, clock):
    source.add("1", clock.now + timedelta(minutes=5), 5)
    await scanner.tick()
    assert store.size() == 1

    # Fill and overflow with unrelated keys; the first key is forgotten
    for n in range(100):
      store.add(FiredKey(f"other-{n}", 5, n))
    assert store.size() == 1

    report = await scanner.tick()
    assert len(report.dispatched) == 1
