"""Answer feedback persistence: placeholder insert, finalize-by-id and cached listings."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import TaggedCache
from app.schema.records import FeedbackRecord
from app.schema.sql import JobInfo, Question, QuestionFeedback
from app.services.cache_tags import question_tag, revalidate_feedback_cache, user_tag

logger = logging.getLogger(__name__)


async def list_feedback(session: AsyncSession, cache: TaggedCache, *, question_id: uuid.UUID, user_id: uuid.UUID) -> list[FeedbackRecord]:
  """Return feedback given on one of ``user_id``'s questions, oldest first."""

  async def _load() -> list[FeedbackRecord]:
    stmt = (
      select(QuestionFeedback)
      .join(Question, QuestionFeedback.question_id == Question.id)
      .join(JobInfo, Question.job_info_id == JobInfo.id)
      .where(QuestionFeedback.question_id == question_id, JobInfo.user_id == user_id)
      .order_by(QuestionFeedback.created_at.asc(), QuestionFeedback.id.asc())
    )
    result = await session.execute(stmt)
    return [FeedbackRecord.from_row(row) for row in result.scalars().all()]

  return await cache.get_or_load(f"feedback:question:{question_id}:owner:{user_id}", tags=[question_tag("feedback", question_id), user_tag("feedback", user_id)], loader=_load)


async def insert_feedback(session: AsyncSession, cache: TaggedCache, *, question_id: uuid.UUID, job_info_id: uuid.UUID, answer: str, text: str = "") -> FeedbackRecord:
  """Insert and commit a feedback row; an empty text marks it as a placeholder."""
  row = QuestionFeedback(id=uuid.uuid4(), question_id=question_id, answer=answer, text=text)
  session.add(row)
  await session.commit()
  await session.refresh(row)
  revalidate_feedback_cache(cache, feedback_id=row.id, question_id=question_id, job_info_id=job_info_id)
  return FeedbackRecord.from_row(row)


async def finalize_feedback(session: AsyncSession, cache: TaggedCache, *, feedback_id: uuid.UUID, text: str) -> bool:
  """Overwrite a placeholder's text by id. Returns False when the row no longer exists."""
  stmt = (
    update(QuestionFeedback)
    .where(QuestionFeedback.id == feedback_id)
    .values(text=text)
    .returning(QuestionFeedback.question_id, select(Question.job_info_id).where(Question.id == QuestionFeedback.question_id).scalar_subquery())
  )
  row = (await session.execute(stmt)).one_or_none()
  await session.commit()
  if row is None:
    logger.warning("Finalize skipped; feedback %s no longer exists", feedback_id)
    return False

  question_id, job_info_id = row
  revalidate_feedback_cache(cache, feedback_id=feedback_id, question_id=question_id, job_info_id=job_info_id)
  return True
