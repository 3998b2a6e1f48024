"""Job description CRUD scoped to the owning user."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import TaggedCache
from app.schema.records import JobInfoRecord
from app.schema.sql import ExperienceLevel, JobInfo
from app.services.cache_tags import id_tag, revalidate_job_info_cache, revalidate_job_info_contents, user_tag


@dataclass(frozen=True)
class JobInfoInput:
  name: str
  title: str | None
  experience_level: ExperienceLevel
  description: str


async def list_job_infos(session: AsyncSession, cache: TaggedCache, *, user_id: uuid.UUID) -> list[JobInfoRecord]:
  """Return the user's job infos, most recently updated first."""

  async def _load() -> list[JobInfoRecord]:
    stmt = select(JobInfo).where(JobInfo.user_id == user_id).order_by(JobInfo.updated_at.desc())
    result = await session.execute(stmt)
    return [JobInfoRecord.from_row(row) for row in result.scalars().all()]

  return await cache.get_or_load(f"jobInfos:user:{user_id}", tags=[user_tag("jobInfos", user_id)], loader=_load)


async def get_job_info(session: AsyncSession, cache: TaggedCache, *, job_info_id: uuid.UUID, user_id: uuid.UUID) -> JobInfoRecord | None:
  """Fetch a job info by id, only when it belongs to ``user_id``."""

  async def _load() -> JobInfoRecord | None:
    stmt = select(JobInfo).where(JobInfo.id == job_info_id, JobInfo.user_id == user_id)
    result = await session.execute(stmt)
    row = result.scalar_one_or_none()
    return JobInfoRecord.from_row(row) if row is not None else None

  return await cache.get_or_load(f"jobInfos:{job_info_id}:owner:{user_id}", tags=[id_tag("jobInfos", job_info_id)], loader=_load)


async def insert_job_info(session: AsyncSession, cache: TaggedCache, *, user_id: uuid.UUID, data: JobInfoInput) -> JobInfoRecord:
  row = JobInfo(id=uuid.uuid4(), user_id=user_id, name=data.name, title=data.title, experience_level=data.experience_level, description=data.description)
  session.add(row)
  await session.commit()
  await session.refresh(row)
  revalidate_job_info_cache(cache, job_info_id=row.id, user_id=user_id)
  return JobInfoRecord.from_row(row)


async def update_job_info(session: AsyncSession, cache: TaggedCache, *, job_info_id: uuid.UUID, user_id: uuid.UUID, changes: dict[str, object]) -> JobInfoRecord | None:
  """Apply partial changes to an owned job info; returns None when it is not found."""
  stmt = select(JobInfo).where(JobInfo.id == job_info_id, JobInfo.user_id == user_id)
  row = (await session.execute(stmt)).scalar_one_or_none()
  if row is None:
    return None

  for attr in ("name", "title", "experience_level", "description"):
    if attr in changes:
      setattr(row, attr, changes[attr])
  await session.commit()
  await session.refresh(row)
  revalidate_job_info_cache(cache, job_info_id=row.id, user_id=user_id)
  return JobInfoRecord.from_row(row)


async def delete_job_info(session: AsyncSession, cache: TaggedCache, *, job_info_id: uuid.UUID, user_id: uuid.UUID) -> bool:
  stmt = select(JobInfo).where(JobInfo.id == job_info_id, JobInfo.user_id == user_id)
  row = (await session.execute(stmt)).scalar_one_or_none()
  if row is None:
    return False

  await session.delete(row)
  await session.commit()
  revalidate_job_info_cache(cache, job_info_id=job_info_id, user_id=user_id)
  revalidate_job_info_contents(cache, job_info_id=job_info_id, user_id=user_id)
  return True
