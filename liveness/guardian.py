"""Liveness Guardian: keeps the persistent indicator on screen.

The indicator is what keeps the host process at foreground priority. When it
goes missing (dismissed, or dropped by the OS) it is recreated through the
foreground registration call and a fallback wake is armed that forces one
more check even if the periodic ticks themselves get suspended.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from monitor.config import MonitorConfig
from monitor.exceptions import PresentationFailure
from os_interfaces.base import AlertContent, ProcessRegistrar, WakePayload
from os_interfaces.wake_registry import WakeRegistry

logger = logging.getLogger(__name__)

FALLBACK_IDENTITY = "indicator-fallback"


class IndicatorStatus(Enum):
  UNCONFIRMED = "unconfirmed"
  VISIBLE = "visible"
  MISSING = "missing"
  FALLBACK_ARMED = "fallback_armed"


@dataclass
class IndicatorState:
  indicator_id: int
  status: IndicatorStatus = IndicatorStatus.UNCONFIRMED
  last_confirmed_visible: bool = False
  fallback_armed: bool = False


def monitoring_indicator() -> AlertContent:
  return AlertContent(
    title="Wake Up",
    body="Calendar monitoring active",
    tap_target="main",
    ongoing=True,
  )


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


class LivenessGuardian:
  def __init__(
    self,
    registrar: ProcessRegistrar,
    wakes: WakeRegistry,
    indicator_id: int = MonitorConfig.INDICATOR_ID,
    content: Optional[AlertContent] = None,
    clock: Callable[[], datetime] = _utcnow,
    fallback_delay: timedelta = timedelta(seconds=MonitorConfig.FALLBACK_DELAY_SECONDS),
  ):
    self.registrar = registrar
    self.wakes = wakes
    self.content = content or monitoring_indicator()
    self.clock = clock
    self.fallback_delay = fallback_delay
    self.state = IndicatorState(indicator_id=indicator_id)

  @property
  def status(self) -> IndicatorStatus:
    return self.state.status

  def establish(self) -> bool:
    """Register as foreground with the indicator. Used on process start."""
    return self._recreate()

  def check(self) -> IndicatorStatus:
    """Confirm the indicator is shown; recover it if it is not."""
    try:
      present = self.registrar.is_indicator_present(self.state.indicator_id)
    except Exception as e:
      logger.error(f"Error checking notification: {e}")
      present = False

    if present:
      if self.state.status is not IndicatorStatus.VISIBLE:
        logger.info("Persistent notification confirmed visible")
      else:
        logger.debug("Notification still present")
      # A fallback may be left over from before this process started
      if self.state.fallback_armed or self.state.status is IndicatorStatus.UNCONFIRMED:
        self.wakes.cancel(FALLBACK_IDENTITY)
      self.state.status = IndicatorStatus.VISIBLE
      self.state.last_confirmed_visible = True
      self.state.fallback_armed = False
    else:
      logger.warning("Missing notification detected, recreating...")
      self._recover()
    return self.state.status

  def on_dismissed(self) -> IndicatorStatus:
    """The OS reported the indicator as dismissed; recover without waiting."""
    logger.info("Service notification dismissed, recreating...")
    self._recover()
    return self.state.status

  def teardown(self) -> None:
    self.wakes.cancel(FALLBACK_IDENTITY)
    self.state.fallback_armed = False

  def _recover(self) -> None:
    self.state.status = IndicatorStatus.MISSING
    self.state.last_confirmed_visible = False
    self._recreate()
    self._arm_fallback()

  def _recreate(self) -> bool:
    try:
      self.registrar.start_foreground(self.state.indicator_id, self.content)
    except PresentationFailure as e:
      logger.error(f"Error recreating notification: {e}")
      return False
    except Exception as e:
      logger.error(
        f"Error recreating notification: {PresentationFailure.from_exception(e)}"
      )
      return False
    logger.debug("Notification registered with foreground priority")
    return True

  def _arm_fallback(self) -> None:
    handle = self.wakes.rearm(
      FALLBACK_IDENTITY,
      self.clock() + self.fallback_delay,
      WakePayload(target="liveness_check"),
    )
    if handle is None:
      return
    self.state.fallback_armed = True
    self.state.status = IndicatorStatus.FALLBACK_ARMED
