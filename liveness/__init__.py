"""Keeping the monitor process and its persistent indicator alive"""

from .guardian import (
  FALLBACK_IDENTITY,
  IndicatorState,
  IndicatorStatus,
  LivenessGuardian,
)
from .watchdog import WATCHDOG_IDENTITY, ProcessWatchdog, WatchdogChain

__all__ = [
  "FALLBACK_IDENTITY",
  "IndicatorState",
  "IndicatorStatus",
  "LivenessGuardian",
  "ProcessWatchdog",
  "WATCHDOG_IDENTITY",
  "WatchdogChain",
]
