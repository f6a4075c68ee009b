"""
Calendar file parser
Parses the YAML calendar and serves it as the event source of the Linux build
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from monitor.config import MonitorConfig
from monitor.exceptions import DataSourceUnavailable
from reminders.models import CalendarEvent, ReminderRule
from .base import EventSource


class CalendarEntry(BaseModel):
  """A single event of the calendar file"""

  title: str
  start: datetime
  reminders: List[int] = Field(default_factory=list)

  @field_validator("start")
  @classmethod
  def localize_start(cls, v: datetime) -> datetime:
    """Naive times are local wall-clock times"""
    if v.tzinfo is None:
      return v.astimezone()
    return v

  @field_validator("reminders")
  @classmethod
  def validate_reminders(cls, v: List[int]) -> List[int]:
    for minutes in v:
      if minutes < 0:
        raise ValueError(f"Reminder minutes must be non-negative, got: {minutes}")
    return v


class CalendarFile(BaseModel):
  """Complete calendar file"""

  events: Dict[str, CalendarEntry]

  def calendar_events(self) -> list[CalendarEvent]:
    return [
      CalendarEvent(id=event_id, title=entry.title, start=entry.start)
      for event_id, entry in self.events.items()
    ]

  def rules_for(self, event_id: str) -> list[ReminderRule]:
    entry = self.events.get(event_id)
    if entry is None:
      return []
    return [ReminderRule(event_id=event_id, lead_minutes=m) for m in entry.reminders]


def parse_calendar_file(path: Path | str) -> CalendarFile:
  """
  Parse the calendar file

  Args:
      path: Path to the YAML calendar file

  Returns:
      CalendarFile with all events

  Raises:
      DataSourceUnavailable: If the file is missing, malformed or invalid
  """
  path = Path(path)

  if not path.exists():
    raise DataSourceUnavailable(
      f"Calendar file not found: {path}", name="CALENDAR_FILE_NOT_FOUND"
    )

  try:
    with open(path, "r") as f:
      raw = yaml.safe_load(f) or {}
    return CalendarFile(events=raw)
  except (OSError, yaml.YAMLError, ValidationError) as e:
    raise DataSourceUnavailable.from_exception(
      e, name="CALENDAR_FILE_INVALID", context=f"Cannot read {path}"
    )


class CalendarFileEventSource(EventSource):
  """Event source backed by the YAML calendar file.

  The file is re-read on every query; rule lookups use the snapshot of the
  latest query so one scan sees one consistent calendar.
  """

  def __init__(self, path: Path | str | None = None):
    self.path = Path(path) if path else MonitorConfig.CALENDAR_FILE
    self._snapshot: Optional[CalendarFile] = None

  def query(self, start: datetime, end: datetime) -> list[CalendarEvent]:
    self._snapshot = parse_calendar_file(self.path)
    events = [e for e in self._snapshot.calendar_events() if start <= e.start <= end]
    return sorted(events, key=lambda e: e.start)

  def rules_for(self, event_id: str) -> list[ReminderRule]:
    if self._snapshot is None:
      raise DataSourceUnavailable("Calendar has not been queried yet")
    return self._snapshot.rules_for(event_id)
