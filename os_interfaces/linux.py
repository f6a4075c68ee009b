"""Linux-specific implementations of OS interfaces.

The monitor runs as a systemd user service of Type=notify. Its persistent
indicator is the service status text it publishes with sd_notify, wakes are
one-shot systemd user timers, and alerts are desktop notifications. Events
come from the YAML calendar in `os_interfaces.calendar_file`.
"""

import asyncio
import logging
import re
import shlex
import signal
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from desktop_notifier import DesktopNotifier, Urgency
from pystemd import daemon
from pystemd.dbuslib import DBus
from pystemd.systemd1 import Manager, Unit

from monitor.config import MonitorConfig
from monitor.exceptions import (
  AppError,
  PresentationFailure,
  ProcessRegistryError,
)
from .base import (
  AlertContent,
  AlertPresenter,
  ProcessRegistrar,
  WakePayload,
  WakeScheduler,
)

logger = logging.getLogger(__name__)

ACTIVE_STATES = (b"active", b"activating", b"reloading")


@contextmanager
def _connect_systemd():
  with DBus(user_mode=True) as bus:
    manager = Manager(bus=bus)
    manager.load()
    yield bus, manager


def _user_unit_dir() -> Path:
  return Path.home() / ".config/systemd/user"


def _write_unit(name: str, content: str) -> Path:
  d = _user_unit_dir()
  d.mkdir(parents=True, exist_ok=True)
  p = d / name
  p.write_text(content)
  return p


class LinuxWakeScheduler(WakeScheduler):
  """One-shot wakes as systemd user timer + oneshot service unit pairs.

  Every request gets its own pair named `{app}-wake-{identity}-{stamp}`. The
  service removes its pair once it has run, so one-shot reminder wakes do
  not pile up in the unit directory.
  """

  def __init__(self, app_name: str = MonitorConfig.APP_NAME, command: str = "wakeup"):
    self.app_name = app_name
    self.command = command

  def _unit_prefix(self, identity: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9_.-]", "_", identity)
    return f"{self.app_name}-wake-{safe}"

  def _unit_name(self, identity: str) -> str:
    return f"{self._unit_prefix(identity)}-{time.time_ns()}"

  def _unit_bases(self, identity: str) -> list[str]:
    """Unit pairs scheduled for `identity`, oldest first"""
    prefix = self._unit_prefix(identity)
    bases = []
    for timer in _user_unit_dir().glob(f"{prefix}-*.timer"):
      # The stamp tells our pairs apart from identities sharing the prefix
      if timer.stem[len(prefix) + 1 :].isdigit():
        bases.append(timer.stem)
    return sorted(bases)

  def _service_content(self, base: str, payload: WakePayload) -> str:
    exec_line = " ".join([self.command, "wake", payload.encode()])
    unit_dir = _user_unit_dir()
    cleanup = "; ".join(
      [
        f"systemctl --user disable {base}.timer",
        "rm -f "
        + " ".join(shlex.quote(str(unit_dir / f"{base}.{s}")) for s in ("timer", "service")),
        "systemctl --user daemon-reload",
      ]
    )
    return (
      "[Unit]\n"
      f"Description={self.app_name} wake {base}\n"
      "\n[Service]\n"
      "Type=oneshot\n"
      f"ExecStart={exec_line}\n"
      f"ExecStopPost=/bin/sh -c {shlex.quote(cleanup)}\n"
    )

  def _timer_content(
    self, base: str, when: datetime, exact: bool, allow_while_idle: bool
  ) -> str:
    on_cal = when.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    # systemd coalesces timers within AccuracySec (1min by default)
    accuracy = "AccuracySec=1s\n" if exact else ""
    wake = "WakeSystem=true\n" if allow_while_idle else ""
    return (
      "[Unit]\n"
      f"Description={self.app_name} wake timer {base}\n"
      "\n[Timer]\n"
      f"OnCalendar={on_cal}\n"
      "Persistent=true\n"
      f"{accuracy}"
      f"{wake}"
      f"Unit={base}.service\n"
      "\n[Install]\n"
      "WantedBy=timers.target\n"
    )

  def schedule_once(
    self,
    identity: str,
    when: datetime,
    exact: bool,
    allow_while_idle: bool,
    payload: WakePayload,
  ) -> None:
    base = self._unit_name(identity)
    service_txt = self._service_content(base, payload)
    timer_txt = self._timer_content(base, when, exact, allow_while_idle)

    try:
      with _connect_systemd() as (_bus, m):
        _write_unit(f"{base}.service", service_txt)
        _write_unit(f"{base}.timer", timer_txt)
        m.Manager.Reload()
        m.Manager.EnableUnitFiles([f"{base}.timer".encode()], False, True)
        m.Manager.StartUnit(f"{base}.timer".encode(), b"replace")
    except Exception as e:
      raise AppError.from_exception(
        e, name="WAKE_SCHEDULE_FAILED", source="wake_scheduler", context=base
      )

    logger.info(f"Scheduled wake {base} at {when.isoformat()} (exact={exact})")

  def cancel(self, identity: str) -> None:
    """Stop, disable and remove every pair of `identity`. Missing units are not an error."""
    bases = self._unit_bases(identity)
    if not bases:
      return
    try:
      with _connect_systemd() as (_bus, m):
        for base in bases:
          try:
            m.Manager.StopUnit(f"{base}.timer".encode(), b"replace")
            m.Manager.DisableUnitFiles([f"{base}.timer".encode()], False)
          except Exception as e:
            logger.debug(f"Timer {base} was not active: {e}")
          for suffix in ("timer", "service"):
            (_user_unit_dir() / f"{base}.{suffix}").unlink(missing_ok=True)
        m.Manager.Reload()
      logger.debug(f"Cancelled wake {identity} ({len(bases)} unit pairs)")
    except Exception as e:
      logger.error(f"Failed to cancel wake {identity}: {e}")


class LinuxProcessRegistrar(ProcessRegistrar):
  """Monitor process as a systemd user service with sd_notify status"""

  def __init__(self, unit: str = MonitorConfig.MONITOR_UNIT, command: str = "wakeup"):
    self.unit = unit
    self.command = command
    self._status_text: Optional[str] = None

  @property
  def service_name(self) -> str:
    return f"{self.unit}.service"

  def _service_content(self) -> str:
    return (
      "[Unit]\n"
      "Description=Calendar reminder monitor\n"
      "\n[Service]\n"
      "Type=notify\n"
      "NotifyAccess=main\n"
      f"ExecStart={self.command} run\n"
      "Restart=always\n"
      "RestartSec=5\n"
      "\n[Install]\n"
      "WantedBy=default.target\n"
    )

  def start_foreground(self, indicator_id: int, content: AlertContent) -> None:
    status = f"{content.title}: {content.body}"
    sent = daemon.notify(False, ready=1, status=status)
    if sent <= 0:
      raise PresentationFailure(
        f"sd_notify status not delivered (result {sent}), not running under systemd?"
      )
    self._status_text = status

  def is_indicator_present(self, indicator_id: int) -> bool:
    if self._status_text is None:
      return False
    with _connect_systemd() as (bus, _m):
      unit = Unit(self.service_name.encode(), bus=bus)
      unit.load()
      current = unit.Service.StatusText
    if isinstance(current, bytes):
      current = current.decode()
    return current == self._status_text

  def is_process_registered(self, name: str) -> bool:
    with _connect_systemd() as (bus, _m):
      unit = Unit(f"{name}.service".encode(), bus=bus)
      unit.load()
      return unit.Unit.ActiveState in ACTIVE_STATES

  def start_process(self) -> None:
    try:
      with _connect_systemd() as (_bus, m):
        if not (_user_unit_dir() / self.service_name).exists():
          _write_unit(self.service_name, self._service_content())
          m.Manager.Reload()
        m.Manager.StartUnit(self.service_name.encode(), b"replace")
    except Exception as e:
      raise ProcessRegistryError.from_exception(e, context="Cannot start monitor")
    logger.info(f"Start requested for {self.service_name}")

  def acquire_wake_lock(self) -> None:
    # Wake timers carry WakeSystem=true, so suspend is left to logind
    logger.debug("No wake lock on Linux, relying on WakeSystem timers")

  def release_wake_lock(self) -> None:
    pass

  def request_liveness_check(self) -> None:
    try:
      with _connect_systemd() as (_bus, m):
        m.Manager.KillUnit(self.service_name.encode(), b"main", int(signal.SIGUSR1))
    except Exception as e:
      raise ProcessRegistryError.from_exception(e, context="Cannot signal monitor")

  def listen(
    self,
    on_liveness_check: Callable[[], None],
    on_indicator_dismissed: Callable[[], None],
  ) -> None:
    # Service status text cannot be dismissed, so only checks are routed.
    signal.signal(signal.SIGUSR1, lambda _signum, _frame: on_liveness_check())


class LinuxAlertPresenter(AlertPresenter):
  """Alert presenter using desktop-notifier"""

  def __init__(self, app_name: str = MonitorConfig.APP_NAME):
    self.notifier = DesktopNotifier(app_name=app_name)

  async def _send(self, content: AlertContent) -> None:
    await self.notifier.send(
      title=content.title,
      message=content.body,
      urgency=Urgency.Critical if content.full_screen else Urgency.Normal,
    )

  def show(self, indicator_id: int, content: AlertContent) -> None:
    """Send the notification; must not be called from a running event loop."""
    try:
      asyncio.run(self._send(content))
      logger.info(f"Notification sent: {content.title}")
    except Exception as e:
      raise PresentationFailure.from_exception(e, context="Failed to send notification")
