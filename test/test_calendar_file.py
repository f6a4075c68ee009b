"""
Test calendar file parser
Run with: uv run pytest test/test_calendar_file.py
"""

from datetime import datetime, timezone

import pytest

from monitor.exceptions import DataSourceUnavailable
from os_interfaces.calendar_file import (
  CalendarEntry,
  CalendarFileEventSource,
  parse_calendar_file,
)


@pytest.fixture
def valid_calendar_yaml():
  """Fixture providing valid YAML calendar content"""
  return """
standup:
  title: Daily standup
  start: 2025-03-10T09:30:00+00:00
  reminders: [10, 5]

dentist:
  title: Dentist
  start: 2025-03-10T14:00:00+01:00
  reminders: [60]

lunch:
  title: Lunch
  start: 2025-03-10T12:00:00+00:00
"""


@pytest.fixture
def calendar_file(tmp_path, valid_calendar_yaml):
  path = tmp_path / "calendar.yaml"
  path.write_text(valid_calendar_yaml)
  return path


class TestParseCalendarFile:
  def test_parse_valid_file(self, calendar_file):
    calendar = parse_calendar_file(calendar_file)
    assert set(calendar.events) == {"standup", "dentist", "lunch"}
    assert calendar.events["standup"].reminders == [10, 5]
    assert calendar.events["lunch"].reminders == []

  def test_calendar_events(self, calendar_file):
    events = {e.id: e for e in parse_calendar_file(calendar_file).calendar_events()}
    assert events["standup"].title == "Daily standup"
    assert events["standup"].start == datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)
    assert events["dentist"].start == datetime(2025, 3, 10, 13, 0, tzinfo=timezone.utc)

  def test_rules_for(self, calendar_file):
    calendar = parse_calendar_file(calendar_file)
    assert [r.lead_minutes for r in calendar.rules_for("standup")] == [10, 5]
    assert calendar.rules_for("unknown") == []

  def test_empty_file(self, tmp_path):
    path = tmp_path / "calendar.yaml"
    path.write_text("")
    assert parse_calendar_file(path).events == {}

  def test_missing_file(self, tmp_path):
    with pytest.raises(DataSourceUnavailable) as exc:
      parse_calendar_file(tmp_path / "nope.yaml")
    assert exc.value.name == "CALENDAR_FILE_NOT_FOUND"
    assert exc.value.source == "event_source"

  def test_malformed_yaml(self, tmp_path):
    path = tmp_path / "calendar.yaml"
    path.write_text("standup: [unclosed")
    with pytest.raises(DataSourceUnavailable) as exc:
      parse_calendar_file(path)
    assert exc.value.name == "CALENDAR_FILE_INVALID"

  def test_negative_reminder_rejected(self, tmp_path):
    path = tmp_path / "calendar.yaml"
    path.write_text(
      "standup:\n  title: Standup\n  start: 2025-03-10T09:30:00+00:00\n  reminders: [-5]\n"
    )
    with pytest.raises(DataSourceUnavailable) as exc:
      parse_calendar_file(path)
    assert exc.value.caused_by.startswith("ValidationError")


class TestCalendarEntry:
  def test_naive_start_is_local_time(self):
    entry = CalendarEntry(title="Standup", start=datetime(2025, 3, 10, 9, 30))
    assert entry.start.tzinfo is not None
    assert entry.start.replace(tzinfo=None) == datetime(2025, 3, 10, 9, 30)


class TestCalendarFileEventSource:
  def test_query_filters_and_sorts(self, tmp_path):
    path = tmp_path / "calendar.yaml"
    path.write_text(
      "late:\n  title: Late\n  start: 2025-01-02T14:34:00+00:00\n  reminders: [1]\n"
      "early:\n  title: Early\n  start: 2025-01-02T14:31:00+00:00\n  reminders: [0]\n"
      "tomorrow:\n  title: Tomorrow\n  start: 2025-01-03T14:31:00+00:00\n"
    )
    source = CalendarFileEventSource(path)
    events = source.query(
      datetime(2025, 1, 2, 14, 30, tzinfo=timezone.utc),
      datetime(2025, 1, 2, 14, 35, tzinfo=timezone.utc),
    )

    assert [e.id for e in events] == ["early", "late"]
    assert [r.lead_minutes for r in source.rules_for("late")] == [1]

  def test_file_reread_on_every_query(self, tmp_path, calendar_file):
    source = CalendarFileEventSource(calendar_file)
    window = (
      datetime(2025, 3, 10, 0, 0, tzinfo=timezone.utc),
      datetime(2025, 3, 11, 0, 0, tzinfo=timezone.utc),
    )
    assert len(source.query(*window)) == 3

    calendar_file.write_text(
      "standup:\n  title: Standup\n  start: 2025-03-10T09:30:00+00:00\n"
    )
    assert [e.id for e in source.query(*window)] == ["standup"]

  def test_rules_before_query(self, tmp_path):
    with pytest.raises(DataSourceUnavailable):
      CalendarFileEventSource(tmp_path / "calendar.yaml").rules_for("x")

  def test_missing_file(self, tmp_path):
    moment = datetime(2025, 1, 2, 14, 30, tzinfo=timezone.utc)
    with pytest.raises(DataSourceUnavailable):
      CalendarFileEventSource(tmp_path / "calendar.yaml").query(moment, moment)
