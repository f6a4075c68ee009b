"""Android-specific implementations of OS interfaces.

Packaged with python-for-android as two services: `Monitor` (foreground,
runs `wakeup run`) and `Wake` (runs one wake callback from the argument it is
started with). Wakes are AlarmManager alarms whose PendingIntent starts the
Wake service, which the platform treats as externally initiated.
"""

from __future__ import annotations

import logging
import zlib
from datetime import datetime, timezone
from typing import Callable

from android.broadcast import BroadcastReceiver  # type: ignore
from jnius import JavaException, autoclass  # type: ignore

from monitor.exceptions import (
  AppError,
  DataSourceUnavailable,
  PermissionDenied,
  PresentationFailure,
  ProcessRegistryError,
)
from reminders.models import CalendarEvent, ReminderRule
from .base import (
  AlertContent,
  AlertPresenter,
  EventSource,
  ProcessRegistrar,
  WakePayload,
  WakeScheduler,
)

logger = logging.getLogger(__name__)


# --- PyJNIus handles ---
PythonActivity = autoclass("org.kivy.android.PythonActivity")
PythonService = autoclass("org.kivy.android.PythonService")
Intent = autoclass("android.content.Intent")
Uri = autoclass("android.net.Uri")
PendingIntent = autoclass("android.app.PendingIntent")
NotificationManagerJava = autoclass("android.app.NotificationManager")
NotificationChannel = autoclass("android.app.NotificationChannel")
BuildVersion = autoclass("android.os.Build$VERSION")
NotificationCompatBuilder = autoclass("androidx.core.app.NotificationCompat$Builder")
NotificationCompat = autoclass("androidx.core.app.NotificationCompat")
AlarmManagerJava = autoclass("android.app.AlarmManager")
Context = autoclass("android.content.Context")
ContentUris = autoclass("android.content.ContentUris")
Instances = autoclass("android.provider.CalendarContract$Instances")
Reminders = autoclass("android.provider.CalendarContract$Reminders")
Integer = autoclass("java.lang.Integer")
PowerManager = autoclass("android.os.PowerManager")

PACKAGE = "org.wakeup"
MonitorServiceJava = autoclass(f"{PACKAGE}.ServiceMonitor")
WakeServiceJava = autoclass(f"{PACKAGE}.ServiceWake")

ACTION_INDICATOR_DISMISSED = f"{PACKAGE}.SERVICE_NOTIFICATION_DISMISSED"
ACTION_FORCE_CHECK = f"{PACKAGE}.FORCE_NOTIFICATION_CHECK"
SERVICE_CHANNEL_ID = "WakeUpChannel"
REMINDER_CHANNEL_ID = "ReminderNotificationChannel"
WAKE_LOCK_TAG = "WakeUp::ServiceWakeLock"

# Fixed request codes so alarms from a previous process can be cancelled
REQUEST_CODES = {
  "indicator-fallback": 9001,
  "keep-alive-check": 9002,
}


def _context():
  service = PythonService.mService
  if service is not None:
    return service.getApplicationContext()
  return PythonActivity.mActivity.getApplicationContext()


def _flags(base: int | None = None) -> int:
  flag_immutable = PendingIntent.FLAG_IMMUTABLE
  flag_update = PendingIntent.FLAG_UPDATE_CURRENT
  return (base or 0) | flag_immutable | flag_update


def _millis(dt: datetime) -> int:
  return int(dt.timestamp() * 1000)


def _from_millis(ms: int) -> datetime:
  return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _request_code(identity: str) -> int:
  return REQUEST_CODES.get(identity, zlib.crc32(identity.encode()) & 0x7FFFFFFF)


def _is_security_exception(e: JavaException) -> bool:
  return "SecurityException" in (getattr(e, "classname", None) or str(e))


def _ensure_channel(manager, channel_id: str, name: str, importance: int, vibration=None):
  if BuildVersion.SDK_INT < 26:
    return
  existing = manager.getNotificationChannel(channel_id)
  if existing is not None and existing.getImportance() == importance:
    return
  if existing is not None:
    manager.deleteNotificationChannel(channel_id)
  channel = NotificationChannel(channel_id, name, importance)
  channel.setShowBadge(vibration is not None)
  channel.enableLights(vibration is not None)
  channel.enableVibration(vibration is not None)
  if vibration:
    channel.setVibrationPattern(vibration)
  manager.createNotificationChannel(channel)


class AndroidEventSource(EventSource):
  """Event source reading CalendarContract instances and alert reminders"""

  def __init__(self):
    self.resolver = _context().getContentResolver()

  def query(self, start: datetime, end: datetime) -> list[CalendarEvent]:
    builder = Instances.CONTENT_URI.buildUpon()
    ContentUris.appendId(builder, _millis(start))
    ContentUris.appendId(builder, _millis(end))
    projection = [Instances.EVENT_ID, Instances.TITLE, Instances.BEGIN]
    selection = f"{Instances.BEGIN} >= ? AND {Instances.BEGIN} <= ?"
    args = [str(_millis(start)), str(_millis(end))]

    try:
      cursor = self.resolver.query(
        builder.build(), projection, selection, args, f"{Instances.BEGIN} ASC"
      )
    except JavaException as e:
      raise DataSourceUnavailable.from_exception(e, context="Calendar query failed")
    if cursor is None:
      raise DataSourceUnavailable("Calendar provider returned no cursor")

    events = []
    try:
      while cursor.moveToNext():
        events.append(
          CalendarEvent(
            id=cursor.getLong(cursor.getColumnIndexOrThrow(Instances.EVENT_ID)),
            title=cursor.getString(cursor.getColumnIndexOrThrow(Instances.TITLE)) or "",
            start=_from_millis(cursor.getLong(cursor.getColumnIndexOrThrow(Instances.BEGIN))),
          )
        )
    finally:
      cursor.close()
    return events

  def rules_for(self, event_id: str) -> list[ReminderRule]:
    projection = [Reminders.MINUTES, Reminders.METHOD]
    selection = f"{Reminders.EVENT_ID} = ? AND {Reminders.METHOD} = ?"
    args = [event_id, str(Reminders.METHOD_ALERT)]

    try:
      cursor = self.resolver.query(Reminders.CONTENT_URI, projection, selection, args, None)
    except JavaException as e:
      raise DataSourceUnavailable.from_exception(e, context="Reminder query failed")
    if cursor is None:
      return []

    rules = []
    try:
      while cursor.moveToNext():
        minutes = cursor.getInt(cursor.getColumnIndexOrThrow(Reminders.MINUTES))
        rules.append(ReminderRule(event_id=event_id, lead_minutes=minutes))
    finally:
      cursor.close()
    return rules


class AndroidWakeScheduler(WakeScheduler):
  """Wake scheduler using AlarmManager; every alarm starts the Wake service."""

  def __init__(self):
    self.ctx = _context()
    self.alarm_manager = self.ctx.getSystemService(Context.ALARM_SERVICE)

  def _intent(self, identity: str, payload: WakePayload | None):
    argument = payload.model_dump_json() if payload else ""
    intent = WakeServiceJava.getDefaultIntent(
      self.ctx, "", "Wake Up", "Delivering reminder", argument
    )
    # Data makes intents of different identities distinct for filterEquals
    intent.setData(Uri.parse(f"wakeup://wake/{identity}"))
    return intent

  def _pending(self, identity: str, payload: WakePayload | None, extra_flags: int = 0):
    intent = self._intent(identity, payload)
    code = _request_code(identity)
    if BuildVersion.SDK_INT >= 26:
      return PendingIntent.getForegroundService(self.ctx, code, intent, _flags(extra_flags))
    return PendingIntent.getService(self.ctx, code, intent, _flags(extra_flags))

  def schedule_once(
    self,
    identity: str,
    when: datetime,
    exact: bool,
    allow_while_idle: bool,
    payload: WakePayload,
  ) -> None:
    if exact and BuildVersion.SDK_INT >= 31 and not self.alarm_manager.canScheduleExactAlarms():
      raise PermissionDenied("SCHEDULE_EXACT_ALARM permission not granted")

    trigger_at = _millis(when)
    rtc = AlarmManagerJava.RTC_WAKEUP

    try:
      pending_intent = self._pending(identity, payload)
      match (exact, allow_while_idle):
        case (True, True):
          self.alarm_manager.setExactAndAllowWhileIdle(rtc, trigger_at, pending_intent)
        case (True, False):
          self.alarm_manager.setExact(rtc, trigger_at, pending_intent)
        case (False, True):
          self.alarm_manager.setAndAllowWhileIdle(rtc, trigger_at, pending_intent)
        case _:
          self.alarm_manager.set(rtc, trigger_at, pending_intent)
    except JavaException as e:
      if exact and _is_security_exception(e):
        raise PermissionDenied.from_exception(e)
      raise AppError.from_exception(
        e, name="WAKE_SCHEDULE_FAILED", source="wake_scheduler", context=identity
      )
    logger.info("Scheduled alarm %s at %s (exact=%s)", identity, when.isoformat(), exact)

  def cancel(self, identity: str) -> None:
    try:
      pending_intent = self._pending(identity, None, PendingIntent.FLAG_NO_CREATE)
      if pending_intent is None:
        return
      self.alarm_manager.cancel(pending_intent)
      pending_intent.cancel()
    except JavaException as e:
      raise AppError.from_exception(
        e, name="WAKE_CANCEL_FAILED", source="wake_scheduler", context=identity
      )
    logger.debug("Cancelled alarm %s", identity)


class AndroidProcessRegistrar(ProcessRegistrar):
  """Foreground service registration and service bookkeeping"""

  def __init__(self):
    self.ctx = _context()
    self.manager = self.ctx.getSystemService(Context.NOTIFICATION_SERVICE)
    self._receiver: BroadcastReceiver | None = None
    self._wake_lock = None

  def _service_class_name(self, name: str) -> str:
    return f"{PACKAGE}.Service{name.split('-')[-1].capitalize()}"

  def _indicator(self, content: AlertContent):
    tap_intent = Intent(self.ctx, PythonActivity)
    tap_pi = PendingIntent.getActivity(self.ctx, 0, tap_intent, _flags())

    dismiss_intent = Intent(ACTION_INDICATOR_DISMISSED)
    dismiss_intent.setPackage(self.ctx.getPackageName())
    dismiss_pi = PendingIntent.getBroadcast(self.ctx, 0, dismiss_intent, _flags())

    builder = (
      NotificationCompatBuilder(self.ctx, SERVICE_CHANNEL_ID)
      .setContentTitle(content.title)
      .setContentText(content.body)
      .setSmallIcon(self.ctx.getApplicationInfo().icon)
      .setContentIntent(tap_pi)
      .setDeleteIntent(dismiss_pi)
      .setOngoing(content.ongoing)
      .setAutoCancel(False)
      .setShowWhen(False)
      .setPriority(NotificationCompat.PRIORITY_DEFAULT)
      .setCategory(NotificationCompat.CATEGORY_SERVICE)
      .setVisibility(NotificationCompat.VISIBILITY_PUBLIC)
      .setBadgeIconType(NotificationCompat.BADGE_ICON_NONE)
    )
    if BuildVersion.SDK_INT >= 31:
      builder.setForegroundServiceBehavior(NotificationCompat.FOREGROUND_SERVICE_IMMEDIATE)
    return builder.build()

  def start_foreground(self, indicator_id: int, content: AlertContent) -> None:
    service = PythonService.mService
    if service is None:
      raise PresentationFailure("Not running inside the monitor service")
    try:
      _ensure_channel(
        self.manager,
        SERVICE_CHANNEL_ID,
        "Wake Up Service",
        NotificationManagerJava.IMPORTANCE_DEFAULT,
      )
      service.startForeground(indicator_id, self._indicator(content))
    except JavaException as e:
      raise PresentationFailure.from_exception(e, context="startForeground failed")

  def is_indicator_present(self, indicator_id: int) -> bool:
    return any(
      sbn.getId() == indicator_id for sbn in self.manager.getActiveNotifications()
    )

  def is_process_registered(self, name: str) -> bool:
    class_name = self._service_class_name(name)
    activity_manager = self.ctx.getSystemService(Context.ACTIVITY_SERVICE)
    running = activity_manager.getRunningServices(Integer.MAX_VALUE)
    for i in range(running.size()):
      if running.get(i).service.getClassName() == class_name:
        return True
    return False

  def start_process(self) -> None:
    try:
      MonitorServiceJava.start(self.ctx, "")
    except JavaException as e:
      raise ProcessRegistryError.from_exception(e, context="Cannot start monitor service")
    logger.info("Monitor service start requested")

  def acquire_wake_lock(self) -> None:
    if self._wake_lock is not None and self._wake_lock.isHeld():
      return
    try:
      power_manager = self.ctx.getSystemService(Context.POWER_SERVICE)
      self._wake_lock = power_manager.newWakeLock(
        PowerManager.PARTIAL_WAKE_LOCK, WAKE_LOCK_TAG
      )
      self._wake_lock.acquire()
    except JavaException as e:
      raise ProcessRegistryError.from_exception(e, context="Cannot acquire wake lock")
    logger.debug("Wake lock acquired")

  def release_wake_lock(self) -> None:
    if self._wake_lock is not None and self._wake_lock.isHeld():
      self._wake_lock.release()
      logger.debug("Wake lock released")
    self._wake_lock = None

  def request_liveness_check(self) -> None:
    intent = Intent(ACTION_FORCE_CHECK)
    intent.setPackage(self.ctx.getPackageName())
    self.ctx.sendBroadcast(intent)

  def listen(
    self,
    on_liveness_check: Callable[[], None],
    on_indicator_dismissed: Callable[[], None],
  ) -> None:
    def on_broadcast(_context, intent):
      action = intent.getAction()
      if action == ACTION_FORCE_CHECK:
        on_liveness_check()
      elif action == ACTION_INDICATOR_DISMISSED:
        on_indicator_dismissed()

    if self._receiver is not None:
      self._receiver.stop()
    self._receiver = BroadcastReceiver(
      on_broadcast, actions=[ACTION_FORCE_CHECK, ACTION_INDICATOR_DISMISSED]
    )
    self._receiver.start()


class AndroidAlertPresenter(AlertPresenter):
  """Reminder alerts as high-importance notifications with a full-screen intent"""

  def __init__(self):
    self.ctx = _context()
    self.manager = self.ctx.getSystemService(Context.NOTIFICATION_SERVICE)

  def show(self, indicator_id: int, content: AlertContent) -> None:
    try:
      _ensure_channel(
        self.manager,
        REMINDER_CHANNEL_ID,
        "Event reminders",
        NotificationManagerJava.IMPORTANCE_HIGH,
        vibration=content.vibration_pattern or None,
      )

      open_intent = Intent(self.ctx, PythonActivity)
      open_intent.putExtra("event_title", content.title)
      open_intent.putExtra("tap_target", content.tap_target or "")
      open_intent.addFlags(
        Intent.FLAG_ACTIVITY_NEW_TASK | Intent.FLAG_ACTIVITY_CLEAR_TOP
      )
      open_pi = PendingIntent.getActivity(self.ctx, indicator_id, open_intent, _flags())

      builder = (
        NotificationCompatBuilder(self.ctx, REMINDER_CHANNEL_ID)
        .setSmallIcon(self.ctx.getApplicationInfo().icon)
        .setContentTitle(content.title)
        .setContentText(content.body)
        .setPriority(NotificationCompat.PRIORITY_HIGH)
        .setCategory(NotificationCompat.CATEGORY_REMINDER)
        .setContentIntent(open_pi)
        .setAutoCancel(True)
        .setVisibility(NotificationCompat.VISIBILITY_PUBLIC)
        .setDefaults(NotificationCompat.DEFAULT_LIGHTS)
      )
      if content.vibration_pattern:
        builder.setVibrate(content.vibration_pattern)
      if content.full_screen:
        builder.setFullScreenIntent(open_pi, True)

      self.manager.notify(indicator_id, builder.build())
    except JavaException as e:
      raise PresentationFailure.from_exception(e, context="Reminder notification failed")
    logger.info("Reminder notification %s shown", indicator_id)
