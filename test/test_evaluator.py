"""Tests for reminder evaluation"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from reminders.evaluator import due_reminders, is_due
from reminders.models import CalendarEvent, DueReminder, ReminderRule

T = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def rules(event_id, *leads):
  return [ReminderRule(event_id=event_id, lead_minutes=m) for m in leads]


class TestIsDue:
  @pytest.mark.parametrize("offset", [-30, -29, 0, 1, 29, 30])
  def test_inside_window(self, offset):
    assert is_due(T + timedelta(seconds=offset), T)

  @pytest.mark.parametrize("offset", [-31, 31, 600])
  def test_outside_window(self, offset):
    assert not is_due(T + timedelta(seconds=offset), T)

  def test_custom_window(self):
    assert is_due(T + timedelta(seconds=50), T, window=timedelta(seconds=60))


class TestDueReminders:
  def test_fire_at_is_start_minus_lead(self):
    event = CalendarEvent(id="1", title="Standup", start=T + timedelta(minutes=5))
    reminder = DueReminder.for_rule(event, rules("1", 5)[0])
    assert reminder.fire_at == T
    assert reminder.event_start == T + timedelta(minutes=5)

  def test_only_due_rules_returned(self):
    event = CalendarEvent(id="1", title="Standup", start=T + timedelta(minutes=10))
    due = due_reminders(event, rules("1", 10, 5, 0), now=T)
    assert [r.lead_minutes for r in due] == [10]

  def test_rules_evaluated_independently(self):
    event = CalendarEvent(id="1", title="Standup", start=T + timedelta(minutes=10))
    due = due_reminders(event, rules("1", 10, 10), now=T + timedelta(seconds=20))
    assert len(due) == 2

  def test_zero_lead_fires_at_start(self):
    event = CalendarEvent(id="1", title="Standup", start=T)
    due = due_reminders(event, rules("1", 0), now=T)
    assert due and due[0].fire_at == T

  def test_no_rules(self):
    event = CalendarEvent(id="1", title="Standup", start=T)
    assert due_reminders(event, [], now=T) == []

  def test_past_reminder_not_due(self):
    event = CalendarEvent(id="1", title="Standup", start=T)
    assert due_reminders(event, rules("1", 5), now=T) == []

  def test_key_truncates_to_seconds(self):
    start = T + timedelta(minutes=5, microseconds=750_000)
    event = CalendarEvent(id="1", title="Standup", start=start)
    reminder = DueReminder.for_rule(event, rules("1", 5)[0])
    assert reminder.key.fire_second == int(T.timestamp())
    assert reminder.wake_identity == "reminder-1-5"


class TestModels:
  def test_numeric_ids_coerced(self):
    event = CalendarEvent(id=42, title="Standup", start=T)
    assert event.id == "42"
    assert ReminderRule(event_id=42, lead_minutes=5).event_id == "42"

  def test_naive_start_rejected(self):
    with pytest.raises(ValidationError):
      CalendarEvent(id="1", title="Standup", start=datetime(2025, 3, 10, 9, 0))
