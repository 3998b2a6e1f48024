"""Snapshot builders shared by the unit tests."""

from __future__ import annotations

import datetime
import uuid

from app.schema.records import JobInfoRecord, QuestionRecord
from app.schema.sql import ExperienceLevel, QuestionDifficulty

NOW = datetime.datetime(2026, 10, 1, 12, 0, tzinfo=datetime.UTC)


def make_job_info(user_id: uuid.UUID, **overrides) -> JobInfoRecord:
  values = {
    "id": uuid.uuid4(),
    "user_id": user_id,
    "name": "Backend role",
    "title": "Senior Python Engineer",
    "experience_level": ExperienceLevel.SENIOR,
    "description": "FastAPI, PostgreSQL and asyncio services.",
    "created_at": NOW,
    "updated_at": NOW,
  }
  values.update(overrides)
  return JobInfoRecord(**values)


def make_question(job_info_id: uuid.UUID, text: str = "", **overrides) -> QuestionRecord:
  values = {"id": uuid.uuid4(), "job_info_id": job_info_id, "text": text, "difficulty": QuestionDifficulty.MEDIUM, "created_at": NOW, "updated_at": NOW}
  values.update(overrides)
  return QuestionRecord(**values)


class FakeModel:
  """Streams canned chunks, optionally failing after a number of them."""

  name = "fake-model"

  def __init__(self, chunks: list[str], *, fail_after: int | None = None) -> None:
    self.chunks = chunks
    self.fail_after = fail_after
    self.calls: list[tuple[str, str | None]] = []

  async def stream(self, prompt: str, *, system_instruction: str | None = None):
    self.calls.append((prompt, system_instruction))
    for index, chunk in enumerate(self.chunks):
      if self.fail_after is not None and index >= self.fail_after:
        raise RuntimeError("model unavailable")
      yield chunk
    if self.fail_after is not None and self.fail_after >= len(self.chunks):
      raise RuntimeError("model unavailable")
