"""Records flowing between the event source, the scanner and alert dispatch"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, field_validator


class CalendarEvent(BaseModel):
  """An event instance as returned by the event source.

  Read fresh on every scan; never cached across scans.
  """

  model_config = ConfigDict(frozen=True)

  id: str
  title: str
  start: datetime

  @field_validator("id", mode="before")
  @classmethod
  def coerce_id(cls, v):
    """Android hands out numeric event ids, the YAML source uses names"""
    return str(v) if isinstance(v, int) else v

  @field_validator("start")
  @classmethod
  def require_timezone(cls, v: datetime) -> datetime:
    if v.tzinfo is None:
      raise ValueError(f"Event start must be timezone-aware, got: {v}")
    return v


class ReminderRule(BaseModel):
  """An alert-type reminder configured on an event"""

  model_config = ConfigDict(frozen=True)

  event_id: str
  lead_minutes: int

  @field_validator("event_id", mode="before")
  @classmethod
  def coerce_event_id(cls, v):
    return str(v) if isinstance(v, int) else v


@dataclass(frozen=True)
class FiredKey:
  """Identity of a reminder that has been dispatched.

  The fire instant is truncated to whole seconds so the same rule observed
  on two ticks maps to the same key.
  """

  event_id: str
  lead_minutes: int
  fire_second: int

  def __str__(self) -> str:
    return f"{self.event_id}_{self.lead_minutes}_{self.fire_second}"


@dataclass(frozen=True)
class DueReminder:
  event_id: str
  title: str
  lead_minutes: int
  fire_at: datetime
  event_start: datetime

  @classmethod
  def for_rule(cls, event: CalendarEvent, rule: ReminderRule) -> "DueReminder":
    return cls(
      event_id=event.id,
      title=event.title,
      lead_minutes=rule.lead_minutes,
      fire_at=event.start - timedelta(minutes=rule.lead_minutes),
      event_start=event.start,
    )

  @property
  def key(self) -> FiredKey:
    return FiredKey(
      event_id=self.event_id,
      lead_minutes=self.lead_minutes,
      fire_second=int(self.fire_at.timestamp()),
    )

  @property
  def wake_identity(self) -> str:
    """Identity of the dispatch wake; one per (event, rule)."""
    return f"reminder-{self.event_id}-{self.lead_minutes}"
