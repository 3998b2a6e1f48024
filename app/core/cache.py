"""In-process read cache with tag-based invalidation.

Reads are stored under a key together with the tags describing the data they
depend on. Writes call :meth:`TaggedCache.invalidate` with the tags of the
scope they touched, which drops every dependent entry before the write returns.

Tags with a load in flight also carry a generation counter. A load snapshots the
generations of its tags before it starts; if any of them moved by the time the
load finishes, a write raced the read and the value is handed back to the
caller without being stored. That keeps a read issued after a write from ever
seeing pre-write data. Counters exist only while a load holds the tag, so the
bookkeeping stays bounded by the number of concurrent loads.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, TypeVar

from app.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _CacheEntry:
  value: Any
  tags: frozenset[str]
  expires_at: float


class TaggedCache:
  """Keyed async get-or-load cache invalidated by tags."""

  def __init__(self, *, ttl_seconds: float, max_entries: int, enabled: bool = True, clock: Callable[[], float] = time.monotonic) -> None:
    if max_entries <= 0:
      raise ValueError("max_entries must be positive.")
    self._ttl_seconds = ttl_seconds
    self._max_entries = max_entries
    self._enabled = enabled
    self._clock = clock
    self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
    self._keys_by_tag: dict[str, set[str]] = {}
    self._generations: dict[str, int] = {}
    self._inflight: dict[str, int] = {}

  @property
  def enabled(self) -> bool:
    return self._enabled

  def __len__(self) -> int:
    return len(self._entries)

  async def get_or_load(self, key: str, *, tags: Iterable[str], loader: Callable[[], Awaitable[T]]) -> T:
    """Return the cached value for ``key`` or run ``loader`` and cache its result under ``tags``."""
    tag_set = frozenset(tags)
    if not self._enabled:
      return await loader()

    entry = self._entries.get(key)
    if entry is not None:
      if entry.expires_at > self._clock():
        self._entries.move_to_end(key)
        return entry.value
      self._drop(key)

    self._acquire(tag_set)
    try:
      started = {tag: self._generations.get(tag, 0) for tag in tag_set}
      value = await loader()
      stale = any(self._generations.get(tag, 0) != generation for tag, generation in started.items())
    finally:
      self._release(tag_set)

    if stale:
      logger.debug("Skipping cache store for key=%s; a tag was invalidated mid-load", key)
      return value

    self._store(key, value, tag_set)
    return value

  def invalidate(self, *tags: str) -> int:
    """Drop every entry carrying any of ``tags``; return how many entries were removed."""
    removed = 0
    for tag in tags:
      if tag in self._inflight:
        self._generations[tag] = self._generations.get(tag, 0) + 1
      for key in list(self._keys_by_tag.get(tag, ())):
        if self._drop(key):
          removed += 1
    if removed:
      logger.debug("Invalidated %d cache entries for tags=%s", removed, list(tags))
    return removed

  def clear(self) -> None:
    self._entries.clear()
    self._keys_by_tag.clear()
    for tag in self._inflight:
      self._generations[tag] = self._generations.get(tag, 0) + 1

  def _acquire(self, tags: frozenset[str]) -> None:
    for tag in tags:
      self._inflight[tag] = self._inflight.get(tag, 0) + 1

  def _release(self, tags: frozenset[str]) -> None:
    for tag in tags:
      remaining = self._inflight.get(tag, 0) - 1
      if remaining > 0:
        self._inflight[tag] = remaining
        continue
      self._inflight.pop(tag, None)
      self._generations.pop(tag, None)

  def _store(self, key: str, value: Any, tags: frozenset[str]) -> None:
    self._drop(key)
    self._entries[key] = _CacheEntry(value=value, tags=tags, expires_at=self._clock() + self._ttl_seconds)
    for tag in tags:
      self._keys_by_tag.setdefault(tag, set()).add(key)
    while len(self._entries) > self._max_entries:
      oldest_key = next(iter(self._entries))
      self._drop(oldest_key)

  def _drop(self, key: str) -> bool:
    entry = self._entries.pop(key, None)
    if entry is None:
      return False
    for tag in entry.tags:
      keys = self._keys_by_tag.get(tag)
      if keys is None:
        continue
      keys.discard(key)
      if not keys:
        del self._keys_by_tag[tag]
    return True


@lru_cache(maxsize=1)
def get_cache() -> TaggedCache:
  """Return the process-wide read cache."""
  settings = get_settings()
  return TaggedCache(ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries, enabled=settings.cache_enabled)
