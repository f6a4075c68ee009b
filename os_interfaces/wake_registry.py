"""Identity table for re-armable wake callbacks.

Every re-arm cancels the identity at the OS before scheduling it again, so
duplicate deliveries of the same callback can never leave two pending
requests behind.
"""

import logging
from datetime import datetime
from typing import Optional

from monitor.exceptions import AppError, PermissionDenied
from .base import WakeHandle, WakePayload, WakeScheduler

logger = logging.getLogger(__name__)


class WakeRegistry:
  def __init__(self, scheduler: WakeScheduler):
    self.scheduler = scheduler
    self._armed: dict[str, WakeHandle] = {}

  def get(self, identity: str) -> Optional[WakeHandle]:
    return self._armed.get(identity)

  def rearm(
    self,
    identity: str,
    when: datetime,
    payload: WakePayload,
    allow_while_idle: bool = True,
  ) -> Optional[WakeHandle]:
    """Cancel then schedule `identity`, preferring exact delivery.

    Falls back to inexact scheduling when exact wakes are not permitted. Never raises.

    Returns:
      The scheduled handle, or None when even inexact scheduling failed
    """
    # The OS may still hold a request from a previous process, so cancel
    # even when the table has no entry.
    self.cancel(identity)

    try:
      self.scheduler.schedule_once(identity, when, True, allow_while_idle, payload)
      handle = WakeHandle(identity, when, True, allow_while_idle, payload)
    except PermissionDenied as e:
      logger.warning(f"Exact wake denied for {identity}, using inexact: {e}")
      try:
        self.scheduler.schedule_once(identity, when, False, allow_while_idle, payload)
      except Exception as e2:
        logger.error(f"Failed to schedule inexact wake {identity}: {e2}")
        return None
      handle = WakeHandle(identity, when, False, allow_while_idle, payload)
    except AppError as e:
      logger.error(f"Failed to schedule wake {identity}: {e}")
      return None
    except Exception:
      logger.exception(f"Unexpected failure scheduling wake {identity}")
      return None

    self._armed[identity] = handle
    logger.debug(f"Armed wake {identity} at {when.isoformat()} (exact={handle.exact})")
    return handle

  def cancel(self, identity: str) -> None:
    self._armed.pop(identity, None)
    try:
      self.scheduler.cancel(identity)
    except Exception as e:
      # A failed cancel must not stop the following schedule
      logger.warning(f"Could not cancel wake {identity}: {e}")

  def cancel_all(self) -> None:
    for identity in list(self._armed):
      self.cancel(identity)
