from __future__ import annotations

import datetime
import uuid
from unittest.mock import AsyncMock

import pytest

from app.ai.generation import FeedbackContext, QuestionContext, stream_feedback, stream_question
from app.ai.prompts import build_question_prompt
from app.schema.sql import QuestionDifficulty
from tests.factories import NOW, FakeModel, make_job_info, make_question


def test_question_prompt_lists_previous_questions_in_order_and_skips_placeholders() -> None:
  job_info = make_job_info(uuid.uuid4())
  previous = [
    make_question(job_info.id, "Explain the GIL.", created_at=NOW),
    make_question(job_info.id, "", created_at=NOW + datetime.timedelta(minutes=1)),
    make_question(job_info.id, "How does asyncio schedule tasks?", difficulty=QuestionDifficulty.HARD, created_at=NOW + datetime.timedelta(minutes=2)),
  ]

  prompt = build_question_prompt(job_info=job_info, previous_questions=previous, difficulty=QuestionDifficulty.EASY)

  assert "1. (medium) Explain the GIL." in prompt
  assert "2. (hard) How does asyncio schedule tasks?" in prompt
  assert prompt.index("Explain the GIL.") < prompt.index("How does asyncio")
  assert "Requested difficulty: easy" in prompt
  assert "Experience level: senior" in prompt


def test_question_prompt_without_history() -> None:
  prompt = build_question_prompt(job_info=make_job_info(uuid.uuid4()), previous_questions=[], difficulty=QuestionDifficulty.MEDIUM)
  assert "Previous questions:\nNone" in prompt


@pytest.mark.anyio
async def test_stream_question_calls_on_finish_once_with_full_text() -> None:
  model = FakeModel(["Design ", "a rate ", "limiter."])
  on_finish = AsyncMock()
  job_info = make_job_info(uuid.uuid4())

  chunks = [chunk async for chunk in stream_question(model, QuestionContext(job_info=job_info, difficulty=QuestionDifficulty.HARD), on_finish)]

  assert chunks == ["Design ", "a rate ", "limiter."]
  on_finish.assert_awaited_once_with("Design a rate limiter.")
  assert model.calls[0][1] is not None


@pytest.mark.anyio
async def test_stream_feedback_skips_on_finish_when_model_fails() -> None:
  model = FakeModel(["## Feedback"], fail_after=1)
  on_finish = AsyncMock()
  job_info = make_job_info(uuid.uuid4())
  question = make_question(job_info.id, "What is a closure?")
  received: list[str] = []

  with pytest.raises(RuntimeError):
    async for chunk in stream_feedback(model, FeedbackContext(job_info=job_info, question=question, answer="A function with state."), on_finish):
      received.append(chunk)

  assert received == ["## Feedback"]
  on_finish.assert_not_awaited()
  assert "A function with state." in model.calls[0][0]
