"""OS interface module - platform-specific implementations

Since we build separate executables for each platform,
import the appropriate implementation directly in the entry points:
- entrypoints/wakeup_linux.py imports from os_interfaces.linux
- entrypoints/wakeup_android.py imports from os_interfaces.android
"""

from .base import (
  AlertContent,
  AlertPresenter,
  EventSource,
  OSImplementations,
  ProcessRegistrar,
  WakeHandle,
  WakePayload,
  WakeScheduler,
)

__all__ = [
  "AlertContent",
  "AlertPresenter",
  "EventSource",
  "OSImplementations",
  "ProcessRegistrar",
  "WakeHandle",
  "WakePayload",
  "WakeScheduler",
]
