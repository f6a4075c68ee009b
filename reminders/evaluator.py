"""Reminder evaluation: which rules of an event are due right now"""

from datetime import datetime, timedelta
from typing import Iterable

from monitor.config import MonitorConfig
from .models import CalendarEvent, DueReminder, ReminderRule

DUE_WINDOW = timedelta(seconds=MonitorConfig.DUE_WINDOW_SECONDS)


def is_due(fire_at: datetime, now: datetime, window: timedelta = DUE_WINDOW) -> bool:
  """A fire instant is due when it lies within `window` of `now`, either side.

  The forward half matches the scanner period so a rule is seen at least once
  before its moment. The trailing half lets a tick that lands just after the
  moment still deliver it: with an event at T+5min and a 5 minute lead, a tick
  at T+1s dispatches the reminder due at T. Anything older is outside the
  window.
  """
  return now - window <= fire_at <= now + window


def due_reminders(
  event: CalendarEvent,
  rules: Iterable[ReminderRule],
  now: datetime,
  window: timedelta = DUE_WINDOW,
) -> list[DueReminder]:
  """Compute the reminders of `event` that are due at `now`.

  Every rule is evaluated independently; a due rule never hides another one.

  Args:
    event: Event whose rules are evaluated
    rules: Alert-type reminder rules of the event
    now: Current instant (timezone-aware)
    window: Half-width of the due window

  Returns:
    Due reminders, in rule order
  """
  due = []
  for rule in rules:
    reminder = DueReminder.for_rule(event, rule)
    if is_due(reminder.fire_at, now, window):
      due.append(reminder)
  return due
