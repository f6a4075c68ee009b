"""Handler for OS-dispatched wake callbacks.

Runs in an invocation of its own (a systemd oneshot unit on Linux, the wake
service on Android), outside the monitor's timer loop and outside its
background UI-launch restrictions.
"""

import logging
import zlib
from datetime import datetime, timezone
from typing import Callable

from liveness.watchdog import ProcessWatchdog
from os_interfaces.base import AlertContent, AlertPresenter, OSImplementations, WakePayload
from os_interfaces.wake_registry import WakeRegistry
from .config import MonitorConfig
from .exceptions import AppError

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TITLE = "Event"


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


def alert_indicator_id(event_id: str) -> int:
  """Per-event alert id so alerts for different events can stack."""
  return MonitorConfig.ALERT_INDICATOR_BASE + zlib.crc32(event_id.encode()) % 1000


def reminder_alert(payload: WakePayload) -> AlertContent:
  title = payload.title or DEFAULT_EVENT_TITLE
  if payload.event_start is not None:
    starts = payload.event_start.astimezone().strftime("%H:%M")
    body = f"Starts at {starts}"
  else:
    body = title
  return AlertContent(
    title=title,
    body=body,
    tap_target="reminder",
    full_screen=True,
    vibration_pattern=list(MonitorConfig.VIBRATION_PATTERN),
  )


def present_reminder(payload: WakePayload, presenter: AlertPresenter) -> bool:
  assert payload.event_id is not None
  try:
    presenter.show(alert_indicator_id(payload.event_id), reminder_alert(payload))
  except AppError as e:
    logger.error(f"Failed to present reminder for event {payload.event_id}: {e}")
    return False
  logger.info(f"Reminder presented for event: {payload.title} (ID: {payload.event_id})")
  return True


def forward_liveness_check(os_impl: OSImplementations) -> None:
  """Deliver a fallback check to the monitor, starting it if it is gone."""
  registrar = os_impl.process_registrar()
  try:
    if registrar.is_process_registered(MonitorConfig.MONITOR_UNIT):
      registrar.request_liveness_check()
      logger.debug("Forced notification check requested")
    else:
      logger.warning("Monitor not running on fallback check, starting it")
      registrar.start_process()
  except AppError as e:
    logger.error(f"Fallback liveness check failed: {e}")


def handle_wake(
  payload: WakePayload,
  os_impl: OSImplementations,
  clock: Callable[[], datetime] = _utcnow,
) -> None:
  logger.debug(f"Wake received: {payload.target}")
  match payload.target:
    case "reminder":
      present_reminder(payload, os_impl.alert_presenter())
    case "liveness_check":
      forward_liveness_check(os_impl)
    case "watchdog":
      wakes = WakeRegistry(os_impl.wake_scheduler())
      ProcessWatchdog(os_impl.process_registrar(), wakes, clock=clock).fire()
