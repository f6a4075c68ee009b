"""
Configuration module for the wakeup monitor
Timing constants, identities and paths, overridable from the environment
"""

import os
import logging
from pathlib import Path

from dotenv import load_dotenv
from platformdirs import user_config_dir

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

APP_NAME = os.getenv("WAKEUP_APP_NAME", "wakeup")

# Vibration waveform handed untouched to the alert presenter:
# {delay, vibrate, pause, vibrate, ...} in milliseconds
DEFAULT_VIBRATION_PATTERN = "0,500,150,500,150,500,150,500,150,500,500"


def _parse_pattern(raw: str) -> list[int]:
  try:
    return [int(part) for part in raw.split(",") if part.strip()]
  except ValueError:
    logger.warning(f"Invalid VIBRATION_PATTERN '{raw}', using default")
    return [int(part) for part in DEFAULT_VIBRATION_PATTERN.split(",")]


class MonitorConfig:
  """Monitor configuration settings"""

  APP_NAME = APP_NAME

  # Event Scanner
  SCAN_INTERVAL_SECONDS = float(os.getenv("SCAN_INTERVAL_SECONDS", "30"))
  LOOKAHEAD_MINUTES = int(os.getenv("LOOKAHEAD_MINUTES", "5"))
  DUE_WINDOW_SECONDS = int(os.getenv("DUE_WINDOW_SECONDS", "30"))
  DEDUP_CAPACITY = int(os.getenv("DEDUP_CAPACITY", "100"))

  # Alert Dispatch
  DISPATCH_DELAY_SECONDS = float(os.getenv("DISPATCH_DELAY_SECONDS", "1"))
  ALERT_INDICATOR_BASE = 1000
  VIBRATION_PATTERN = _parse_pattern(
    os.getenv("VIBRATION_PATTERN", DEFAULT_VIBRATION_PATTERN)
  )

  # Liveness Guardian
  INDICATOR_ID = int(os.getenv("INDICATOR_ID", "1"))
  INDICATOR_CHECK_INTERVAL_SECONDS = float(
    os.getenv("INDICATOR_CHECK_INTERVAL_SECONDS", "5")
  )
  FALLBACK_DELAY_SECONDS = float(os.getenv("FALLBACK_DELAY_SECONDS", "5"))
  STARTUP_DEADLINE_SECONDS = float(os.getenv("STARTUP_DEADLINE_SECONDS", "5"))

  # Process Watchdog
  WATCHDOG_INTERVAL_SECONDS = float(os.getenv("WATCHDOG_INTERVAL_SECONDS", "300"))
  MONITOR_UNIT = os.getenv("MONITOR_UNIT", f"{APP_NAME}-monitor")

  # Linux calendar file
  CALENDAR_FILE = Path(
    os.getenv(
      "CALENDAR_FILE",
      str(Path(user_config_dir(APP_NAME)) / "calendar.yaml"),
    )
  )

  # Logging
  LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
