"""Cache tag naming and per-entity revalidation.

Tags are derived from the entity kind and the id of the scope owning the data:
``global:{kind}``, ``user:{user_id}:{kind}``, ``jobInfo:{job_info_id}:{kind}``,
``question:{question_id}:{kind}`` and ``id:{id}:{kind}``.
"""

from __future__ import annotations

import uuid
from typing import Literal

from app.core.cache import TaggedCache

CacheKind = Literal["users", "jobInfos", "interviews", "questions", "feedback"]


def global_tag(kind: CacheKind) -> str:
  return f"global:{kind}"


def user_tag(kind: CacheKind, user_id: uuid.UUID | str) -> str:
  return f"user:{user_id}:{kind}"


def job_info_tag(kind: CacheKind, job_info_id: uuid.UUID | str) -> str:
  return f"jobInfo:{job_info_id}:{kind}"


def question_tag(kind: CacheKind, question_id: uuid.UUID | str) -> str:
  return f"question:{question_id}:{kind}"


def id_tag(kind: CacheKind, record_id: uuid.UUID | str) -> str:
  return f"id:{record_id}:{kind}"


def revalidate_user_cache(cache: TaggedCache, *, user_id: uuid.UUID) -> None:
  cache.invalidate(global_tag("users"), id_tag("users", user_id))


def revalidate_job_info_cache(cache: TaggedCache, *, job_info_id: uuid.UUID, user_id: uuid.UUID) -> None:
  cache.invalidate(global_tag("jobInfos"), user_tag("jobInfos", user_id), id_tag("jobInfos", job_info_id))


def revalidate_interview_cache(cache: TaggedCache, *, interview_id: uuid.UUID, job_info_id: uuid.UUID) -> None:
  cache.invalidate(global_tag("interviews"), job_info_tag("interviews", job_info_id), id_tag("interviews", interview_id))


def revalidate_question_cache(cache: TaggedCache, *, question_id: uuid.UUID, job_info_id: uuid.UUID) -> None:
  cache.invalidate(global_tag("questions"), job_info_tag("questions", job_info_id), id_tag("questions", question_id))


def revalidate_feedback_cache(cache: TaggedCache, *, feedback_id: uuid.UUID, question_id: uuid.UUID, job_info_id: uuid.UUID) -> None:
  cache.invalidate(global_tag("feedback"), question_tag("feedback", question_id), job_info_tag("feedback", job_info_id), id_tag("feedback", feedback_id))


def revalidate_job_info_contents(cache: TaggedCache, *, job_info_id: uuid.UUID, user_id: uuid.UUID) -> None:
  """Drop everything cached under a job info, used when the job info itself is removed.

  Per-record reads of interviews, questions and feedback also carry their owner's
  user tag, so the cascaded children go too without knowing their ids.
  """
  cache.invalidate(
    job_info_tag("interviews", job_info_id),
    job_info_tag("questions", job_info_id),
    job_info_tag("feedback", job_info_id),
    user_tag("interviews", user_id),
    user_tag("questions", user_id),
    user_tag("feedback", user_id),
  )
