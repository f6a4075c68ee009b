"""Android entrypoints for the packaged wakeup app.

python-for-android runs each of these in its own process:
- `main` from the app activity: makes sure the monitor service is up and the
  watchdog chain is armed
- `run_monitor_service` from the foreground `Monitor` service
- `run_wake_service` from the `Wake` service started by an alarm
"""

from __future__ import annotations

import logging
import os

from monitor.main import main as run_cli
from os_interfaces.base import OSImplementations
from os_interfaces.android import (
  AndroidAlertPresenter,
  AndroidEventSource,
  AndroidProcessRegistrar,
  AndroidWakeScheduler,
)

logger = logging.getLogger(__name__)


def os_implementations() -> OSImplementations:
  return OSImplementations(
    event_source_cls=AndroidEventSource,
    wake_scheduler_cls=AndroidWakeScheduler,
    process_registrar_cls=AndroidProcessRegistrar,
    alert_presenter_cls=AndroidAlertPresenter,
  )


def run_monitor_service() -> None:
  run_cli(os_implementations(), ["run"])


def run_wake_service() -> None:
  argument = os.environ.get("PYTHON_SERVICE_ARGUMENT", "")
  if not argument:
    logging.basicConfig(level=logging.INFO)
    logger.error("Wake service started without a payload")
    return
  run_cli(os_implementations(), ["wake", argument])


def main() -> None:
  run_cli(os_implementations(), ["watchdog"])


if __name__ == "__main__":
  main()
