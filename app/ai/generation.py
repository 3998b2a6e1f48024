"""Streaming question and feedback generation on top of an :class:`AIModel`.

How/Why:
  - Each generator yields text chunks as the model emits them and collects the
    full text on the side.
  - ``on_finish`` receives the full text exactly once, after the model stream
    ended without error. A failing or abandoned stream never calls it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from app.ai.prompts import FEEDBACK_SYSTEM_INSTRUCTION, QUESTION_SYSTEM_INSTRUCTION, build_feedback_prompt, build_question_prompt
from app.ai.providers.base import AIModel
from app.schema.records import JobInfoRecord, QuestionRecord
from app.schema.sql import QuestionDifficulty

logger = logging.getLogger(__name__)

OnFinish = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class QuestionContext:
  job_info: JobInfoRecord
  difficulty: QuestionDifficulty
  previous_questions: Sequence[QuestionRecord] = field(default_factory=tuple)


@dataclass(frozen=True)
class FeedbackContext:
  job_info: JobInfoRecord
  question: QuestionRecord
  answer: str


async def _stream_with_finish(model: AIModel, prompt: str, system_instruction: str, on_finish: OnFinish) -> AsyncIterator[str]:
  parts: list[str] = []
  async for chunk in model.stream(prompt, system_instruction=system_instruction):
    parts.append(chunk)
    yield chunk

  await on_finish("".join(parts))


def stream_question(model: AIModel, context: QuestionContext, on_finish: OnFinish) -> AsyncIterator[str]:
  """Stream a new interview question for the job info at the requested difficulty."""
  prompt = build_question_prompt(job_info=context.job_info, previous_questions=context.previous_questions, difficulty=context.difficulty)
  logger.info("Generating question job_info_id=%s difficulty=%s previous=%s model=%s", context.job_info.id, context.difficulty.value, len(context.previous_questions), model.name)
  return _stream_with_finish(model, prompt, QUESTION_SYSTEM_INSTRUCTION, on_finish)


def stream_feedback(model: AIModel, context: FeedbackContext, on_finish: OnFinish) -> AsyncIterator[str]:
  """Stream feedback on the candidate's answer to a question."""
  prompt = build_feedback_prompt(job_info=context.job_info, question=context.question, answer=context.answer)
  logger.info("Generating feedback question_id=%s model=%s", context.question.id, model.name)
  return _stream_with_finish(model, prompt, FEEDBACK_SYSTEM_INSTRUCTION, on_finish)
