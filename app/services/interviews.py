"""Mock interview sessions attached to a job info."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import TaggedCache
from app.schema.records import InterviewRecord
from app.schema.sql import Interview, JobInfo
from app.services.cache_tags import id_tag, job_info_tag, revalidate_interview_cache, user_tag

logger = logging.getLogger(__name__)


async def list_completed_interviews(session: AsyncSession, cache: TaggedCache, *, job_info_id: uuid.UUID) -> list[InterviewRecord]:
  """Return interviews that finished their voice session, newest first."""

  async def _load() -> list[InterviewRecord]:
    stmt = select(Interview).where(Interview.job_info_id == job_info_id, Interview.external_session_id.is_not(None)).order_by(Interview.updated_at.desc())
    result = await session.execute(stmt)
    return [InterviewRecord.from_row(row) for row in result.scalars().all()]

  return await cache.get_or_load(f"interviews:jobInfo:{job_info_id}", tags=[job_info_tag("interviews", job_info_id)], loader=_load)


async def get_owned_interview(session: AsyncSession, cache: TaggedCache, *, interview_id: uuid.UUID, user_id: uuid.UUID) -> InterviewRecord | None:
  async def _load() -> InterviewRecord | None:
    stmt = select(Interview).join(JobInfo, Interview.job_info_id == JobInfo.id).where(Interview.id == interview_id, JobInfo.user_id == user_id)
    row = (await session.execute(stmt)).scalar_one_or_none()
    return InterviewRecord.from_row(row) if row is not None else None

  return await cache.get_or_load(f"interviews:{interview_id}:owner:{user_id}", tags=[id_tag("interviews", interview_id), user_tag("interviews", user_id)], loader=_load)


async def insert_interview(session: AsyncSession, cache: TaggedCache, *, job_info_id: uuid.UUID, duration: str = "00:00:00") -> InterviewRecord:
  """Open a new interview; it only counts against quotas once a session id is recorded."""
  row = Interview(id=uuid.uuid4(), job_info_id=job_info_id, duration=duration)
  session.add(row)
  await session.commit()
  await session.refresh(row)
  revalidate_interview_cache(cache, interview_id=row.id, job_info_id=job_info_id)
  return InterviewRecord.from_row(row)


async def update_interview(session: AsyncSession, cache: TaggedCache, *, interview_id: uuid.UUID, user_id: uuid.UUID, changes: dict[str, object]) -> InterviewRecord | None:
  """Record the voice session outcome on an owned interview; None when not found."""
  stmt = select(Interview).join(JobInfo, Interview.job_info_id == JobInfo.id).where(Interview.id == interview_id, JobInfo.user_id == user_id)
  row = (await session.execute(stmt)).scalar_one_or_none()
  if row is None:
    return None

  for attr in ("external_session_id", "duration", "feedback"):
    if attr in changes:
      setattr(row, attr, changes[attr])
  await session.commit()
  await session.refresh(row)
  logger.info("Interview updated interview_id=%s completed=%s", row.id, row.external_session_id is not None)
  revalidate_interview_cache(cache, interview_id=row.id, job_info_id=row.job_info_id)
  return InterviewRecord.from_row(row)
