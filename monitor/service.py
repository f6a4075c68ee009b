"""Host process of the monitor.

Startup happens in two ordered phases:

- Phase 1 registers the process as foreground with its persistent indicator.
  The OS may kill a freshly started service that does not do this within a
  few seconds, so nothing else runs before it.
- Phase 2 runs as a separate task: it takes the wake lock, builds the event
  source, the dedup store and the scanner, starts the timer loop and
  (re)starts the watchdog chain, then resolves the `ready` barrier.

After the barrier the timer loop owns the dedup store and indicator state.
OS callbacks arriving from other threads are moved onto the loop and wait
for the barrier before they touch either.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from liveness.guardian import LivenessGuardian
from liveness.watchdog import ProcessWatchdog
from os_interfaces.base import OSImplementations
from os_interfaces.wake_registry import WakeRegistry
from reminders.dedup import DedupStore
from reminders.dispatch import AlertDispatcher
from reminders.scanner import EventScanner
from .config import MonitorConfig
from .timer_loop import TimerLoop

logger = logging.getLogger(__name__)

SCANNER_TASK = "event-scanner"
GUARDIAN_TASK = "liveness-guardian"


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


class MonitorService:
  def __init__(
    self,
    os_impl: OSImplementations,
    clock: Callable[[], datetime] = _utcnow,
  ):
    self.os_impl = os_impl
    self.clock = clock
    self.registrar = os_impl.process_registrar()
    self.wakes = WakeRegistry(os_impl.wake_scheduler())
    self.guardian = LivenessGuardian(self.registrar, self.wakes, clock=clock)
    self.watchdog = ProcessWatchdog(self.registrar, self.wakes, clock=clock)
    self.timer_loop = TimerLoop()

    # Phase 2 state; only valid once `ready` has resolved
    self.store: Optional[DedupStore] = None
    self.scanner: Optional[EventScanner] = None

    self._ready: Optional[asyncio.Future[None]] = None
    self._phase_two: Optional[asyncio.Task[None]] = None
    self._callbacks: set[asyncio.Task[None]] = set()
    self._stopped = asyncio.Event()

  async def start(self) -> None:
    loop = asyncio.get_running_loop()

    started = time.monotonic()
    self.guardian.establish()
    elapsed_ms = (time.monotonic() - started) * 1000
    if elapsed_ms > MonitorConfig.STARTUP_DEADLINE_SECONDS * 1000:
      logger.warning(f"Foreground registration took {elapsed_ms:.0f} ms, past deadline")
    else:
      logger.info(f"Started in foreground in {elapsed_ms:.0f} ms")

    self._ready = loop.create_future()
    self.registrar.listen(
      on_liveness_check=self._from_os(loop, self.guardian.check),
      on_indicator_dismissed=self._from_os(loop, self.guardian.on_dismissed),
    )
    self._phase_two = asyncio.create_task(self._initialize(), name="monitor-init")

  async def ready(self) -> None:
    """Wait for phase 2 to complete."""
    if self._ready is None:
      raise RuntimeError("Monitor has not been started")
    await asyncio.shield(self._ready)

  async def run(self) -> None:
    """Start and block until `stop()` is called."""
    await self.start()
    await self._stopped.wait()

  async def stop(self) -> None:
    if self._phase_two is not None and not self._phase_two.done():
      self._phase_two.cancel()
    for task in list(self._callbacks):
      task.cancel()
    await self.timer_loop.stop()
    self.guardian.teardown()
    try:
      self.registrar.release_wake_lock()
    except Exception as e:
      logger.error(f"Error releasing wake lock: {e}")
    self._stopped.set()
    logger.info("Monitor stopped")

  async def _initialize(self) -> None:
    assert self._ready is not None
    self._hold_wake_lock()
    try:
      source = self.os_impl.event_source()
      self.store = DedupStore()
      dispatcher = AlertDispatcher(self.wakes, clock=self.clock)
      self.scanner = EventScanner(source, self.store, dispatcher, clock=self.clock)

      self.timer_loop.start_periodic(
        SCANNER_TASK, MonitorConfig.SCAN_INTERVAL_SECONDS, self.scanner.tick
      )
      self.timer_loop.start_periodic(
        GUARDIAN_TASK,
        MonitorConfig.INDICATOR_CHECK_INTERVAL_SECONDS,
        self._guardian_tick,
      )
      self.watchdog.start_chain()
    except Exception as e:
      logger.exception("Background initialization failed")
      self._ready.set_exception(e)
      return

    self._ready.set_result(None)
    logger.info("Background initialization completed")

  def _hold_wake_lock(self) -> None:
    try:
      self.registrar.acquire_wake_lock()
    except Exception as e:
      logger.warning(f"Running without wake lock: {e}")

  async def _guardian_tick(self) -> None:
    self.guardian.check()

  def _from_os(
    self, loop: asyncio.AbstractEventLoop, action: Callable[[], Any]
  ) -> Callable[[], None]:
    """Wrap `action` so it can be called from any thread."""

    def callback() -> None:
      loop.call_soon_threadsafe(self._spawn, action)

    return callback

  def _spawn(self, action: Callable[[], Any]) -> None:
    task = asyncio.create_task(self._after_ready(action))
    self._callbacks.add(task)
    task.add_done_callback(self._callbacks.discard)

  async def _after_ready(self, action: Callable[[], Any]) -> None:
    try:
      await self.ready()
    except Exception:
      logger.error("Dropping OS callback, monitor failed to initialize")
      return
    action()
