"""Event Scanner: the periodic tick that turns calendar events into alerts"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from monitor.config import MonitorConfig
from monitor.exceptions import DataSourceUnavailable
from os_interfaces.base import EventSource
from .dedup import DedupStore
from .dispatch import AlertDispatcher
from .evaluator import DUE_WINDOW, due_reminders
from .models import CalendarEvent, FiredKey, ReminderRule

logger = logging.getLogger(__name__)


class ScannerState(Enum):
  IDLE = "idle"
  SCANNING = "scanning"


@dataclass
class ScanReport:
  """Outcome of one scanner tick"""

  started_at: datetime
  events: int = 0
  rules_evaluated: int = 0
  dispatched: list[FiredKey] = field(default_factory=list)
  skipped: Optional[str] = None


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


class EventScanner:
  """Queries upcoming events, evaluates their rules and dispatches new alerts.

  Source reads happen in a worker thread so a hung query only stalls this
  tick. Everything touching the dedup store runs on the loop thread without
  awaiting, so it never interleaves with other ticks.
  """

  def __init__(
    self,
    source: EventSource,
    store: DedupStore,
    dispatcher: AlertDispatcher,
    clock: Callable[[], datetime] = _utcnow,
    lookahead: timedelta = timedelta(minutes=MonitorConfig.LOOKAHEAD_MINUTES),
    window: timedelta = DUE_WINDOW,
  ):
    self.source = source
    self.store = store
    self.dispatcher = dispatcher
    self.clock = clock
    self.lookahead = lookahead
    self.window = window
    self.state = ScannerState.IDLE

  def _fetch(self, now: datetime) -> list[tuple[CalendarEvent, list[ReminderRule]]]:
    """Read events in the lookahead window together with their rules."""
    try:
      events = self.source.query(now, now + self.lookahead)
    except DataSourceUnavailable:
      raise
    except Exception as e:
      raise DataSourceUnavailable.from_exception(e, context="Event query failed")

    fetched = []
    for event in events:
      try:
        rules = self.source.rules_for(event.id)
      except Exception as e:
        # One unreadable event must not hide the others
        logger.error(f"Error checking reminders for event {event.id}: {e}")
        continue
      fetched.append((event, rules))
    return fetched

  def _evaluate(
    self,
    fetched: list[tuple[CalendarEvent, list[ReminderRule]]],
    now: datetime,
    report: ScanReport,
  ) -> None:
    for event, rules in fetched:
      report.events += 1
      report.rules_evaluated += len(rules)
      for reminder in due_reminders(event, rules, now, self.window):
        key = reminder.key
        if self.store.contains(key):
          continue
        self.store.add(key)
        self.dispatcher.dispatch(reminder)
        report.dispatched.append(key)
        logger.info(
          f"Reminder triggered for event {reminder.event_id} "
          f"at {reminder.lead_minutes} minutes before"
        )

  async def tick(self) -> ScanReport:
    """Run one scan. Source failures end the tick early; the next one retries."""
    self.state = ScannerState.SCANNING
    report = ScanReport(started_at=self.clock())
    try:
      try:
        fetched = await asyncio.to_thread(self._fetch, report.started_at)
      except DataSourceUnavailable as e:
        logger.error(f"Error checking calendar, skipping scan: {e}")
        report.skipped = e.name
        return report

      self._evaluate(fetched, self.clock(), report)
    finally:
      self.state = ScannerState.IDLE

    logger.debug(
      f"Scan done: {report.events} events, {report.rules_evaluated} rules, "
      f"{len(report.dispatched)} dispatched"
    )
    return report
