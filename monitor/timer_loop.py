"""Cooperative timer loop for the monitor's periodic ticks.

Each tick schedules its next run only after it has completed, so a tick can
never overlap itself. A failing tick is logged and the loop carries on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class TimerLoop:
  def __init__(self) -> None:
    self._tasks: dict[str, asyncio.Task[None]] = {}

  @property
  def names(self) -> list[str]:
    return list(self._tasks)

  def is_running(self, name: str) -> bool:
    task = self._tasks.get(name)
    return task is not None and not task.done()

  def start_periodic(
    self,
    name: str,
    interval_seconds: float,
    func: Callable[[], Awaitable[Any]],
    wait_first: bool = False,
  ) -> asyncio.Task[None]:
    """Run `func` now (or after one interval) and then every `interval_seconds`
    measured from the end of the previous run.
    """
    if self.is_running(name):
      raise RuntimeError(f"Periodic task '{name}' is already running")

    async def _runner() -> None:
      if wait_first:
        await asyncio.sleep(interval_seconds)

      while True:
        try:
          await func()
        except asyncio.CancelledError:
          raise
        except Exception:
          logger.exception(f"Periodic task '{name}' failed")

        await asyncio.sleep(interval_seconds)

    task = asyncio.create_task(_runner(), name=name)
    self._tasks[name] = task
    logger.debug(f"Started periodic task '{name}' every {interval_seconds}s")
    return task

  async def stop(self) -> None:
    """Cancel every periodic task and wait for them to finish."""
    tasks = list(self._tasks.values())
    self._tasks.clear()
    for task in tasks:
      task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for task, result in zip(tasks, results):
      if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
        logger.error(f"Periodic task '{task.get_name()}' ended with error: {result}")
