"""
Command line entry of the wakeup monitor.

Usage:
    wakeup run                 # host process, blocks until SIGTERM/SIGINT
    wakeup wake <payload>      # handle one OS-dispatched wake
    wakeup watchdog            # fire the watchdog once, (re)starting its chain
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Callable, Sequence

from liveness.watchdog import ProcessWatchdog
from os_interfaces.base import OSImplementations, WakePayload
from os_interfaces.wake_registry import WakeRegistry
from .config import MonitorConfig
from .service import MonitorService
from .wake import handle_wake

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
  logging.basicConfig(
    level=MonitorConfig.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
  )


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog=MonitorConfig.APP_NAME,
    description="Calendar reminder monitor that survives OS power management.",
  )
  commands = parser.add_subparsers(dest="command", required=True)
  commands.add_parser("run", help="Run the monitor host process")
  wake = commands.add_parser("wake", help="Handle one scheduled wake")
  wake.add_argument("payload", help="Wake payload (base64 or raw JSON)")
  commands.add_parser("watchdog", help="Check the monitor and restart the watchdog chain")
  return parser


def stop_handler(service: MonitorService, stopping: set) -> Callable[[], None]:
  """Signal handler that stops `service`, holding the stop task in `stopping`."""

  def request_stop() -> None:
    logger.info("Stop requested")
    task = asyncio.get_running_loop().create_task(service.stop())
    stopping.add(task)
    task.add_done_callback(stopping.discard)

  return request_stop


async def run_monitor(os_impl: OSImplementations) -> None:
  service = MonitorService(os_impl)
  loop = asyncio.get_running_loop()
  stopping: set[asyncio.Task[None]] = set()
  request_stop = stop_handler(service, stopping)

  for signum in (signal.SIGTERM, signal.SIGINT):
    try:
      loop.add_signal_handler(signum, request_stop)
    except (NotImplementedError, RuntimeError):
      # Not on the main thread (Android services run us from a worker)
      logger.debug(f"Cannot install handler for {signum!r}")

  await service.run()


def main(os_impl: OSImplementations, argv: Sequence[str] | None = None) -> None:
  args = build_parser().parse_args(argv)
  _configure_logging()

  match args.command:
    case "run":
      asyncio.run(run_monitor(os_impl))
    case "wake":
      try:
        payload = WakePayload.decode(args.payload)
      except ValueError as e:
        logger.error(f"Invalid wake payload: {e}")
        sys.exit(1)
      handle_wake(payload, os_impl)
    case "watchdog":
      wakes = WakeRegistry(os_impl.wake_scheduler())
      ProcessWatchdog(os_impl.process_registrar(), wakes).fire()
