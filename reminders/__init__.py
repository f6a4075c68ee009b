"""Reminder evaluation and deduplication.

The scanner and dispatcher live in `reminders.scanner` / `reminders.dispatch`
and are imported from there, since they depend on `os_interfaces`.
"""

from .dedup import DedupStore
from .evaluator import due_reminders, is_due
from .models import CalendarEvent, DueReminder, FiredKey, ReminderRule

__all__ = [
  "CalendarEvent",
  "DedupStore",
  "DueReminder",
  "FiredKey",
  "ReminderRule",
  "due_reminders",
  "is_due",
]
