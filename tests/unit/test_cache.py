from __future__ import annotations

import asyncio
import uuid

import pytest

from app.core.cache import TaggedCache
from app.services.cache_tags import global_tag, id_tag, job_info_tag, question_tag, revalidate_feedback_cache, revalidate_question_cache, user_tag


class _Clock:
  def __init__(self) -> None:
    self.now = 1000.0

  def __call__(self) -> float:
    return self.now


def _counting_loader(values: list[str]):
  calls = {"count": 0}

  async def _load() -> str:
    calls["count"] += 1
    return values[min(calls["count"], len(values)) - 1]

  return _load, calls


def test_tag_formats() -> None:
  record_id = uuid.UUID("00000000-0000-0000-0000-000000000001")
  assert global_tag("questions") == "global:questions"
  assert user_tag("jobInfos", record_id) == f"user:{record_id}:jobInfos"
  assert job_info_tag("questions", record_id) == f"jobInfo:{record_id}:questions"
  assert question_tag("feedback", record_id) == f"question:{record_id}:feedback"
  assert id_tag("feedback", record_id) == f"id:{record_id}:feedback"


@pytest.mark.anyio
async def test_get_or_load_caches_until_invalidated() -> None:
  cache = TaggedCache(ttl_seconds=60, max_entries=10)
  loader, calls = _counting_loader(["v1", "v2"])

  assert await cache.get_or_load("k", tags=["t"], loader=loader) == "v1"
  assert await cache.get_or_load("k", tags=["t"], loader=loader) == "v1"
  assert calls["count"] == 1

  assert cache.invalidate("t") == 1
  assert await cache.get_or_load("k", tags=["t"], loader=loader) == "v2"
  assert calls["count"] == 2


@pytest.mark.anyio
async def test_read_after_write_sees_new_question() -> None:
  cache = TaggedCache(ttl_seconds=60, max_entries=10)
  job_info_id, question_id = uuid.uuid4(), uuid.uuid4()
  loader, _ = _counting_loader(["before", "after"])
  tags = [job_info_tag("questions", job_info_id)]

  await cache.get_or_load("questions", tags=tags, loader=loader)
  revalidate_question_cache(cache, question_id=question_id, job_info_id=job_info_id)
  assert await cache.get_or_load("questions", tags=tags, loader=loader) == "after"


@pytest.mark.anyio
async def test_feedback_write_drops_question_scoped_entries() -> None:
  cache = TaggedCache(ttl_seconds=60, max_entries=10)
  question_id, job_info_id = uuid.uuid4(), uuid.uuid4()
  loader, calls = _counting_loader(["a", "b"])
  await cache.get_or_load("feedback", tags=[question_tag("feedback", question_id)], loader=loader)

  revalidate_feedback_cache(cache, feedback_id=uuid.uuid4(), question_id=question_id, job_info_id=job_info_id)
  await cache.get_or_load("feedback", tags=[question_tag("feedback", question_id)], loader=loader)
  assert calls["count"] == 2


@pytest.mark.anyio
async def test_load_racing_an_invalidation_is_not_stored() -> None:
  cache = TaggedCache(ttl_seconds=60, max_entries=10)
  started = asyncio.Event()
  release = asyncio.Event()

  async def _slow_stale_load() -> str:
    started.set()
    await release.wait()
    return "stale"

  pending = asyncio.create_task(cache.get_or_load("k", tags=["t"], loader=_slow_stale_load))
  await started.wait()
  cache.invalidate("t")
  release.set()

  # The in-flight caller still gets its value, but it never lands in the cache.
  assert await pending == "stale"
  assert len(cache) == 0

  async def _fresh() -> str:
    return "fresh"

  assert await cache.get_or_load("k", tags=["t"], loader=_fresh) == "fresh"


@pytest.mark.anyio
async def test_entries_expire_after_ttl() -> None:
  clock = _Clock()
  cache = TaggedCache(ttl_seconds=30, max_entries=10, clock=clock)
  loader, calls = _counting_loader(["v1", "v2"])

  await cache.get_or_load("k", tags=[], loader=loader)
  clock.now += 29
  assert await cache.get_or_load("k", tags=[], loader=loader) == "v1"
  clock.now += 2
  assert await cache.get_or_load("k", tags=[], loader=loader) == "v2"
  assert calls["count"] == 2


@pytest.mark.anyio
async def test_oldest_entry_is_evicted_when_full() -> None:
  cache = TaggedCache(ttl_seconds=60, max_entries=2)

  async def _value() -> int:
    return 1

  for key in ("a", "b", "c"):
    await cache.get_or_load(key, tags=[f"tag:{key}"], loader=_value)

  assert len(cache) == 2
  assert cache.invalidate("tag:a") == 0
  assert cache.invalidate("tag:c") == 1


@pytest.mark.anyio
async def test_disabled_cache_always_loads() -> None:
  cache = TaggedCache(ttl_seconds=60, max_entries=10, enabled=False)
  loader, calls = _counting_loader(["v1", "v2"])
  await cache.get_or_load("k", tags=["t"], loader=loader)
  assert await cache.get_or_load("k", tags=["t"], loader=loader) == "v2"
  assert calls["count"] == 2


@pytest.mark.anyio
async def test_invalidation_bookkeeping_stays_bounded() -> None:
  cache = TaggedCache(ttl_seconds=60, max_entries=8)
  job_info_id = uuid.uuid4()
  for _ in range(10_000):
    revalidate_question_cache(cache, question_id=uuid.uuid4(), job_info_id=job_info_id)

  assert len(cache) == 0
  assert cache._generations == {}
  assert cache._inflight == {}


@pytest.mark.anyio
async def test_generation_counters_are_dropped_once_loads_finish() -> None:
  cache = TaggedCache(ttl_seconds=60, max_entries=10)
  started = asyncio.Event()
  release = asyncio.Event()

  async def _slow() -> str:
    started.set()
    await release.wait()
    return "stale"

  pending = asyncio.create_task(cache.get_or_load("k", tags=["t"], loader=_slow))
  await started.wait()
  cache.invalidate("t", "unrelated")
  assert cache._generations == {"t": 1}

  release.set()
  assert await pending == "stale"
  assert len(cache) == 0
  assert cache._generations == {}
  assert cache._inflight == {}
