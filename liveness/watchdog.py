"""Process Watchdog: restarts the monitor process if the OS has killed it.

Runs in its own OS-dispatched invocation every few minutes, independent of
the monitor's timer loop. The OS wake primitive is one-shot, so every fire
re-arms the next one; cancelling first keeps a single pending link even
when the same fire is delivered twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from monitor.config import MonitorConfig
from os_interfaces.base import ProcessRegistrar, WakePayload
from os_interfaces.wake_registry import WakeRegistry

logger = logging.getLogger(__name__)

WATCHDOG_IDENTITY = "keep-alive-check"


@dataclass(frozen=True)
class WatchdogChain:
  identity: str
  next_fire_at: datetime
  exact: bool


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


class ProcessWatchdog:
  def __init__(
    self,
    registrar: ProcessRegistrar,
    wakes: WakeRegistry,
    process_name: str = MonitorConfig.MONITOR_UNIT,
    clock: Callable[[], datetime] = _utcnow,
    interval: timedelta = timedelta(seconds=MonitorConfig.WATCHDOG_INTERVAL_SECONDS),
  ):
    self.registrar = registrar
    self.wakes = wakes
    self.process_name = process_name
    self.clock = clock
    self.interval = interval

  def fire(self) -> Optional[WatchdogChain]:
    """Handle one watchdog delivery and re-arm the chain."""
    logger.debug("Checking monitor process state...")
    try:
      if not self._is_running():
        logger.warning("Monitor process not running, restarting...")
        self._restart()
      else:
        logger.debug("Monitor process running, no restart needed")
    finally:
      chain = self.start_chain()
    return chain

  def start_chain(self) -> Optional[WatchdogChain]:
    """Replace any pending watchdog wake with one `interval` from now."""
    handle = self.wakes.rearm(
      WATCHDOG_IDENTITY,
      self.clock() + self.interval,
      WakePayload(target="watchdog"),
    )
    if handle is None:
      logger.error("Watchdog chain could not be re-armed")
      return None
    logger.debug(f"Next watchdog check at {handle.when.isoformat()}")
    return WatchdogChain(handle.identity, handle.when, handle.exact)

  def stop_chain(self) -> None:
    self.wakes.cancel(WATCHDOG_IDENTITY)
    logger.info("Watchdog chain cancelled")

  def _is_running(self) -> bool:
    try:
      return self.registrar.is_process_registered(self.process_name)
    except Exception as e:
      logger.error(f"Error checking process state: {e}")
      return False

  def _restart(self) -> None:
    try:
      self.registrar.start_process()
      logger.info("Monitor process start requested")
    except Exception as e:
      logger.error(f"Error restarting monitor process: {e}")
