"""`Wake` service declared in buildozer.spec, started by AlarmManager alarms."""

from entrypoints.wakeup_android import run_wake_service

if __name__ == "__main__":
  run_wake_service()
