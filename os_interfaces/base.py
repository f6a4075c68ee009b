"""Abstract base classes for OS-specific interfaces"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Literal, Optional

from pydantic import BaseModel, model_validator

from reminders.models import CalendarEvent, ReminderRule

WakeTarget = Literal["reminder", "liveness_check", "watchdog"]


class WakePayload(BaseModel):
  """Data carried by a wake request to the OS-dispatched handler"""

  target: WakeTarget
  event_id: Optional[str] = None
  title: Optional[str] = None
  lead_minutes: Optional[int] = None
  fire_at: Optional[datetime] = None
  event_start: Optional[datetime] = None

  @model_validator(mode="after")
  def validate_reminder_fields(self):
    """Reminder wakes must say which event and rule they belong to"""
    if self.target == "reminder" and (
      self.event_id is None or self.lead_minutes is None
    ):
      raise ValueError("Reminder wake payload requires event_id and lead_minutes")
    return self

  def encode(self) -> str:
    """Shell- and unit-file-safe form (url-safe base64 of the JSON)"""
    return base64.urlsafe_b64encode(self.model_dump_json().encode()).decode()

  @classmethod
  def decode(cls, raw: str) -> "WakePayload":
    """Parse either the encoded form or plain JSON"""
    raw = raw.strip()
    if not raw.startswith("{"):
      raw = base64.urlsafe_b64decode(raw.encode()).decode()
    return cls.model_validate_json(raw)


@dataclass(frozen=True)
class AlertContent:
  """Inert description of an indicator or alert; no logic lives here."""

  title: str
  body: str
  icon: str = "ic_clock"
  tap_target: Optional[str] = None
  full_screen: bool = False
  ongoing: bool = False
  vibration_pattern: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class WakeHandle:
  """Last scheduled request for a wake identity"""

  identity: str
  when: datetime
  exact: bool
  allow_while_idle: bool
  payload: WakePayload


class EventSource(ABC):
  """Abstract base class for the calendar the monitor watches"""

  @abstractmethod
  def query(self, start: datetime, end: datetime) -> list[CalendarEvent]:
    """Events starting within [start, end], ordered by start.

    Raises:
      DataSourceUnavailable: The source cannot be read right now
    """
    raise NotImplementedError

  @abstractmethod
  def rules_for(self, event_id: str) -> list[ReminderRule]:
    """Alert-type reminder rules configured on an event.

    Raises:
      DataSourceUnavailable: The source cannot be read right now
    """
    raise NotImplementedError


class WakeScheduler(ABC):
  """Abstract base class for one-shot OS wake callbacks"""

  @abstractmethod
  def schedule_once(
    self,
    identity: str,
    when: datetime,
    exact: bool,
    allow_while_idle: bool,
    payload: WakePayload,
  ) -> None:
    """Schedule a one-shot wake that hands `payload` to the wake handler.

    A request with the same identity replaces the previous one as far as the
    OS allows; callers still cancel first.

    Args:
      identity: Stable identity of the request
      when: Instant to fire at
      exact: Ask for exact delivery instead of a batched one
      allow_while_idle: Fire even when the device is in a low-power state
      payload: Data for the wake handler

    Raises:
      PermissionDenied: Exact scheduling is not permitted
    """
    raise NotImplementedError

  @abstractmethod
  def cancel(self, identity: str) -> None:
    """Cancel the pending request with this identity, if any"""
    raise NotImplementedError


class ProcessRegistrar(ABC):
  """Abstract base class for the long-running process and its indicator"""

  @abstractmethod
  def start_foreground(self, indicator_id: int, content: AlertContent) -> None:
    """Register the process as foreground, showing the persistent indicator.

    Raises:
      PresentationFailure: The indicator could not be shown
    """
    raise NotImplementedError

  @abstractmethod
  def is_indicator_present(self, indicator_id: int) -> bool:
    """Whether the indicator is among the currently shown system indicators"""
    raise NotImplementedError

  @abstractmethod
  def is_process_registered(self, name: str) -> bool:
    """Whether the long-running process is currently registered with the OS"""
    raise NotImplementedError

  @abstractmethod
  def start_process(self) -> None:
    """Request a start of the long-running process.

    Raises:
      ProcessRegistryError: The OS refused the request
    """
    raise NotImplementedError

  @abstractmethod
  def acquire_wake_lock(self) -> None:
    """Keep the CPU running while the monitor is up. Idempotent.

    Raises:
      ProcessRegistryError: The lock could not be taken
    """
    raise NotImplementedError

  @abstractmethod
  def release_wake_lock(self) -> None:
    """Release the lock taken by `acquire_wake_lock`, if held"""
    raise NotImplementedError

  @abstractmethod
  def request_liveness_check(self) -> None:
    """Ask the running process for an immediate liveness check"""
    raise NotImplementedError

  @abstractmethod
  def listen(
    self,
    on_liveness_check: Callable[[], None],
    on_indicator_dismissed: Callable[[], None],
  ) -> None:
    """Route OS signals for this process to the given callbacks.

    Callbacks may be invoked from any thread.
    """
    raise NotImplementedError


class AlertPresenter(ABC):
  """Abstract base class for alert display"""

  @abstractmethod
  def show(self, indicator_id: int, content: AlertContent) -> None:
    """Show an alert.

    Raises:
      PresentationFailure: The alert could not be shown
    """
    raise NotImplementedError


@dataclass
class OSImplementations:
  """Platform bundle injected by the entrypoints"""

  event_source_cls: Callable[..., EventSource]
  wake_scheduler_cls: Callable[..., WakeScheduler]
  process_registrar_cls: Callable[..., ProcessRegistrar]
  alert_presenter_cls: Callable[..., AlertPresenter]

  def event_source(self, *args, **kwargs) -> EventSource:
    return self.event_source_cls(*args, **kwargs)

  def wake_scheduler(self, *args, **kwargs) -> WakeScheduler:
    return self.wake_scheduler_cls(*args, **kwargs)

  def process_registrar(self, *args, **kwargs) -> ProcessRegistrar:
    return self.process_registrar_cls(*args, **kwargs)

  def alert_presenter(self, *args, **kwargs) -> AlertPresenter:
    return self.alert_presenter_cls(*args, **kwargs)
