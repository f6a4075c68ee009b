"""Foreground `Monitor` service declared in buildozer.spec.

p4a services are started from a file path, so we keep this tiny shim.
"""

from entrypoints.wakeup_android import run_monitor_service

if __name__ == "__main__":
  run_monitor_service()
