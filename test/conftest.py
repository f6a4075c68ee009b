"""Shared fakes for the OS interfaces"""

from datetime import datetime, timedelta, timezone

import pytest

from monitor.exceptions import (
  AppError,
  DataSourceUnavailable,
  PermissionDenied,
  PresentationFailure,
  ProcessRegistryError,
)
from os_interfaces.base import (
  AlertPresenter,
  EventSource,
  OSImplementations,
  ProcessRegistrar,
  WakeScheduler,
)
from reminders.models import CalendarEvent, ReminderRule

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
  def __init__(self, now: datetime = T0):
    self.now = now

  def __call__(self) -> datetime:
    return self.now

  def advance(self, **kwargs) -> datetime:
    self.now += timedelta(**kwargs)
    return self.now


class FakeEventSource(EventSource):
  def __init__(self, events=None, rules=None):
    self.events: list[CalendarEvent] = list(events or [])
    self.rules: dict[str, list[ReminderRule]] = dict(rules or {})
    self.fail_query = False
    self.fail_rules_for: set[str] = set()
    self.queries: list[tuple[datetime, datetime]] = []

  def add(self, event_id: str, start: datetime, *leads: int, title: str = "Standup"):
    self.events.append(CalendarEvent(id=event_id, title=title, start=start))
    self.rules[event_id] = [ReminderRule(event_id=event_id, lead_minutes=m) for m in leads]

  def query(self, start, end):
    self.queries.append((start, end))
    if self.fail_query:
      raise DataSourceUnavailable("calendar permission revoked")
    return sorted((e for e in self.events if start <= e.start <= end), key=lambda e: e.start)

  def rules_for(self, event_id):
    if event_id in self.fail_rules_for:
      raise DataSourceUnavailable(f"reminders of {event_id} unreadable")
    return self.rules.get(event_id, [])


class FakeWakeScheduler(WakeScheduler):
  """Keeps pending requests like the OS would; scheduling does not replace."""

  def __init__(self):
    self.pending: list[tuple[str, datetime, bool, bool, object]] = []
    self.deny_exact = False
    self.fail_all = False
    self.cancelled: list[str] = []

  def schedule_once(self, identity, when, exact, allow_while_idle, payload):
    if self.fail_all:
      raise AppError("alarm service gone", "WAKE_SCHEDULE_FAILED", "wake_scheduler")
    if exact and self.deny_exact:
      raise PermissionDenied("exact alarms not allowed")
    self.pending.append((identity, when, exact, allow_while_idle, payload))

  def cancel(self, identity):
    self.cancelled.append(identity)
    self.pending = [p for p in self.pending if p[0] != identity]

  def pending_for(self, identity):
    return [p for p in self.pending if p[0] == identity]


class FakeRegistrar(ProcessRegistrar):
  def __init__(self):
    self.shown: dict[int, object] = {}
    self.foreground_calls = 0
    self.fail_foreground = False
    self.fail_presence = False
    self.registered = True
    self.fail_registry = False
    self.starts = 0
    self.liveness_requests = 0
    self.callbacks = None
    self.wake_lock_held = False
    self.wake_lock_acquires = 0
    self.fail_wake_lock = False

  def start_foreground(self, indicator_id, content):
    self.foreground_calls += 1
    if self.fail_foreground:
      raise PresentationFailure("notification channel disabled")
    self.shown[indicator_id] = content

  def is_indicator_present(self, indicator_id):
    if self.fail_presence:
      raise RuntimeError("notification service unavailable")
    return indicator_id in self.shown

  def dismiss(self, indicator_id):
    self.shown.pop(indicator_id, None)

  def is_process_registered(self, name):
    if self.fail_registry:
      raise RuntimeError("activity manager unavailable")
    return self.registered

  def start_process(self):
    self.starts += 1
    self.registered = True

  def acquire_wake_lock(self):
    self.wake_lock_acquires += 1
    if self.fail_wake_lock:
      raise ProcessRegistryError("wake lock permission missing")
    self.wake_lock_held = True

  def release_wake_lock(self):
    self.wake_lock_held = False

  def request_liveness_check(self):
    self.liveness_requests += 1

  def listen(self, on_liveness_check, on_indicator_dismissed):
    self.callbacks = (on_liveness_check, on_indicator_dismissed)


class FakePresenter(AlertPresenter):
  def __init__(self):
    self.alerts: list[tuple[int, object]] = []
    self.fail = False

  def show(self, indicator_id, content):
    if self.fail:
      raise PresentationFailure("full-screen intent rejected")
    self.alerts.append((indicator_id, content))


@pytest.fixture
def clock():
  return FakeClock()


@pytest.fixture
def source():
  return FakeEventSource()


@pytest.fixture
def scheduler():
  return FakeWakeScheduler()


@pytest.fixture
def registrar():
  return FakeRegistrar()


@pytest.fixture
def presenter():
  return FakePresenter()


@pytest.fixture
def os_impl(source, scheduler, registrar, presenter):
  """Bundle handing out the shared fake instances"""
  return OSImplementations(
    event_source_cls=lambda: source,
    wake_scheduler_cls=lambda: scheduler,
    process_registrar_cls=lambda: registrar,
    alert_presenter_cls=lambda: presenter,
  )
