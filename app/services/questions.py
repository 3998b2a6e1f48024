"""Question persistence: placeholder insert, finalize-by-id and cached listings."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import TaggedCache
from app.schema.records import QuestionRecord
from app.schema.sql import JobInfo, Question, QuestionDifficulty
from app.services.cache_tags import id_tag, job_info_tag, revalidate_question_cache, user_tag

logger = logging.getLogger(__name__)


async def list_questions(session: AsyncSession, cache: TaggedCache, *, job_info_id: uuid.UUID) -> list[QuestionRecord]:
  """Return a job info's questions in the order they were asked."""

  async def _load() -> list[QuestionRecord]:
    stmt = select(Question).where(Question.job_info_id == job_info_id).order_by(Question.created_at.asc(), Question.id.asc())
    result = await session.execute(stmt)
    return [QuestionRecord.from_row(row) for row in result.scalars().all()]

  return await cache.get_or_load(f"questions:jobInfo:{job_info_id}", tags=[job_info_tag("questions", job_info_id)], loader=_load)


async def get_owned_question(session: AsyncSession, cache: TaggedCache, *, question_id: uuid.UUID, user_id: uuid.UUID) -> QuestionRecord | None:
  """Fetch a question only when its job info belongs to ``user_id``."""

  async def _load() -> QuestionRecord | None:
    stmt = select(Question).join(JobInfo, Question.job_info_id == JobInfo.id).where(Question.id == question_id, JobInfo.user_id == user_id)
    row = (await session.execute(stmt)).scalar_one_or_none()
    return QuestionRecord.from_row(row) if row is not None else None

  return await cache.get_or_load(f"questions:{question_id}:owner:{user_id}", tags=[id_tag("questions", question_id), user_tag("questions", user_id)], loader=_load)


async def insert_question(session: AsyncSession, cache: TaggedCache, *, job_info_id: uuid.UUID, difficulty: QuestionDifficulty, text: str = "") -> QuestionRecord:
  """Insert and commit a question; an empty text marks it as a placeholder."""
  row = Question(id=uuid.uuid4(), job_info_id=job_info_id, difficulty=difficulty, text=text)
  session.add(row)
  await session.commit()
  await session.refresh(row)
  revalidate_question_cache(cache, question_id=row.id, job_info_id=job_info_id)
  return QuestionRecord.from_row(row)


async def finalize_question(session: AsyncSession, cache: TaggedCache, *, question_id: uuid.UUID, text: str) -> bool:
  """Overwrite a placeholder's text by id. Returns False when the row no longer exists."""
  stmt = update(Question).where(Question.id == question_id).values(text=text).returning(Question.job_info_id)
  result = await session.execute(stmt)
  job_info_id = result.scalar_one_or_none()
  await session.commit()
  if job_info_id is None:
    logger.warning("Finalize skipped; question %s no longer exists", question_id)
    return False

  revalidate_question_cache(cache, question_id=question_id, job_info_id=job_info_id)
  return True
