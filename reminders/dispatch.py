"""Alert dispatch through a near-immediate OS wake.

Some platforms forbid a background process from putting a full-screen alert
in front of the user. The alert is therefore handed to an OS-dispatched wake
handler a second from now, whose presentation counts as externally initiated.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from monitor.config import MonitorConfig
from os_interfaces.base import WakeHandle, WakePayload
from os_interfaces.wake_registry import WakeRegistry
from .models import DueReminder

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


class AlertDispatcher:
  def __init__(
    self,
    wakes: WakeRegistry,
    clock: Callable[[], datetime] = _utcnow,
    delay: timedelta = timedelta(seconds=MonitorConfig.DISPATCH_DELAY_SECONDS),
  ):
    self.wakes = wakes
    self.clock = clock
    self.delay = delay

  def dispatch(self, reminder: DueReminder) -> Optional[WakeHandle]:
    """Arm the wake that presents `reminder`. Never raises."""
    payload = WakePayload(
      target="reminder",
      event_id=reminder.event_id,
      title=reminder.title,
      lead_minutes=reminder.lead_minutes,
      fire_at=reminder.fire_at,
      event_start=reminder.event_start,
    )
    try:
      handle = self.wakes.rearm(
        reminder.wake_identity, self.clock() + self.delay, payload
      )
    except Exception:
      logger.exception(f"Unexpected failure dispatching {reminder.wake_identity}")
      return None

    if handle is None:
      logger.error(f"Reminder for '{reminder.title}' could not be scheduled")
    else:
      logger.info(
        f"Reminder scheduled for event '{reminder.title}' "
        f"(id={reminder.event_id}, {reminder.lead_minutes} min before)"
      )
    return handle
