"""In-memory record of reminders that have already been dispatched"""

import logging

from monitor.config import MonitorConfig
from .models import FiredKey

logger = logging.getLogger(__name__)


class DedupStore:
  """Bounded set of FiredKey.

  When an add would push the store past its capacity the whole store is
  cleared first and the new key starts a fresh store of size one. A key lost
  this way may fire again while its due window is still open.
  """

  def __init__(self, capacity: int = MonitorConfig.DEDUP_CAPACITY):
    if capacity < 1:
      raise ValueError(f"Capacity must be positive, got: {capacity}")
    self.capacity = capacity
    self._keys: set[FiredKey] = set()

  def contains(self, key: FiredKey) -> bool:
    return key in self._keys

  def add(self, key: FiredKey) -> None:
    if key in self._keys:
      return
    if len(self._keys) >= self.capacity:
      logger.info(f"Dedup store reached {self.capacity} keys, clearing")
      self._keys.clear()
    self._keys.add(key)

  def size(self) -> int:
    return len(self._keys)

  def clear(self) -> None:
    self._keys.clear()

  def __contains__(self, key: object) -> bool:
    return key in self._keys

  def __len__(self) -> int:
    return len(self._keys)
