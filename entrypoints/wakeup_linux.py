"""Linux entrypoint for the wakeup monitor.

This entrypoint injects Linux OS interface implementations; the installed
`wakeup` command is this module's `main`.
"""

from __future__ import annotations

from monitor.main import main as run_cli
from os_interfaces.base import OSImplementations
from os_interfaces.calendar_file import CalendarFileEventSource
from os_interfaces.linux import (
  LinuxAlertPresenter,
  LinuxProcessRegistrar,
  LinuxWakeScheduler,
)


def os_implementations() -> OSImplementations:
  return OSImplementations(
    event_source_cls=CalendarFileEventSource,
    wake_scheduler_cls=LinuxWakeScheduler,
    process_registrar_cls=LinuxProcessRegistrar,
    alert_presenter_cls=LinuxAlertPresenter,
  )


def main() -> None:
  run_cli(os_implementations())


if __name__ == "__main__":
  main()
