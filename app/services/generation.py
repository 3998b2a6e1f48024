"""Placeholder -> stream -> finalize orchestration for generated content.

How/Why:
  - Every check (login, quota, ownership) runs before anything is written, so a
    rejected request leaves no trace.
  - The empty placeholder row is committed before the model is called; its id
    travels back to the client in a response header. Headers go out with the
    first chunk, so the id reaches the client after the model's time to first
    token, and a failure before any output can still become a 502.
  - The model stream is driven by a detached task that relays chunks through an
    unbounded queue. The task is kept in a module registry, so a client that
    disconnects does not cancel generation and the row is still finalized.
  - Finalization updates the row by id through a fresh session (the request
    session is gone by then) and invalidates the row's cache tags afterwards.
  - A failed stream leaves the placeholder untouched. The caller gets a 502 when
    nothing was sent yet; otherwise the stream is cut short.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Coroutine
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.ai.generation import FeedbackContext, QuestionContext, stream_feedback, stream_question
from app.ai.providers.base import AIModel
from app.core.cache import TaggedCache
from app.core.errors import AuthenticationRequiredError, GenerationFailedError, PermissionDeniedError, QuotaExceededError
from app.core.security import Principal
from app.schema.sql import QuestionDifficulty
from app.services.entitlements import GrantChecker, resolve_entitlements
from app.services.feedback import finalize_feedback, insert_feedback
from app.services.job_infos import get_job_info
from app.services.questions import finalize_question, get_owned_question, insert_question, list_questions
from app.services.quotas import QuotaAction, evaluate_quota

logger = logging.getLogger(__name__)

# Strong references keep detached generations alive after the request returns.
_BACKGROUND_TASKS: set[asyncio.Task[None]] = set()

_END = object()


@dataclass(frozen=True)
class _StreamFailure:
  error: BaseException


@dataclass(frozen=True)
class GenerationHandle:
  """Id of the placeholder row and the chunks streaming into it."""

  record_id: uuid.UUID
  chunks: AsyncIterator[str]


def _on_task_done(task: asyncio.Task[None]) -> None:
  _BACKGROUND_TASKS.discard(task)
  if task.cancelled():
    logger.warning("Background generation cancelled task=%s", task.get_name())
    return
  exc = task.exception()
  if exc is not None:
    logger.error("Background generation crashed task=%s error=%s", task.get_name(), exc, exc_info=exc)


def _spawn(coro: Coroutine[Any, Any, None], *, name: str) -> asyncio.Task[None]:
  task = asyncio.create_task(coro, name=name)
  _BACKGROUND_TASKS.add(task)
  task.add_done_callback(_on_task_done)
  return task


def pending_generations() -> int:
  return len(_BACKGROUND_TASKS)


async def drain_background_generations(timeout: float) -> int:
  """Wait up to ``timeout`` seconds for in-flight generations; cancel the rest and return how many were cut."""
  tasks = set(_BACKGROUND_TASKS)
  if not tasks:
    return 0

  logger.info("Waiting for %d in-flight generations", len(tasks))
  _, pending = await asyncio.wait(tasks, timeout=timeout) if timeout > 0 else (set(), tasks)
  for task in pending:
    task.cancel()
  if pending:
    logger.warning("Cancelled %d generations still running at shutdown; their placeholders stay empty", len(pending))
  return len(pending)


async def _relay(stream: AsyncIterator[str], queue: asyncio.Queue[object], *, kind: str, record_id: uuid.UUID) -> None:
  try:
    async for chunk in stream:
      queue.put_nowait(chunk)
  except Exception as exc:  # noqa: BLE001
    logger.error("Generation failed; leaving placeholder kind=%s id=%s error=%s", kind, record_id, exc, exc_info=True)
    queue.put_nowait(_StreamFailure(exc))
    return
  queue.put_nowait(_END)


async def _iter_queue(queue: asyncio.Queue[object], first: object) -> AsyncIterator[str]:
  item = first
  while True:
    if item is _END:
      return
    if isinstance(item, _StreamFailure):
      raise GenerationFailedError() from item.error
    yield str(item)
    item = await queue.get()


async def _start_stream(stream: AsyncIterator[str], *, kind: str, record_id: uuid.UUID) -> GenerationHandle:
  queue: asyncio.Queue[object] = asyncio.Queue()
  _spawn(_relay(stream, queue, kind=kind, record_id=record_id), name=f"generate-{kind}-{record_id}")

  # Nothing has reached the client yet, so an early failure can still become a 502.
  first = await queue.get()
  if isinstance(first, _StreamFailure):
    raise GenerationFailedError() from first.error
  return GenerationHandle(record_id=record_id, chunks=_iter_queue(queue, first))


async def _require_quota(session: AsyncSession, principal: Principal, action: QuotaAction, checker: GrantChecker, *, job_info_id: uuid.UUID) -> None:
  facts = await resolve_entitlements(principal, checker)
  decision = await evaluate_quota(session, principal, action, facts, job_info_id=job_info_id)
  if not decision.allowed:
    logger.info("Quota denied user_id=%s action=%s basis=%s used=%s limit=%s", principal.user_id, action.value, decision.basis, decision.used, decision.limit)
    raise QuotaExceededError()


async def start_question(
  session: AsyncSession,
  cache: TaggedCache,
  *,
  principal: Principal | None,
  job_info_id: uuid.UUID,
  difficulty: QuestionDifficulty,
  checker: GrantChecker,
  model: AIModel,
  session_factory: async_sessionmaker[AsyncSession],
) -> GenerationHandle:
  """Check, write the placeholder question and start streaming its text."""
  if principal is None:
    raise AuthenticationRequiredError()
  # The count is joined to the principal, so a foreign id counts nothing and fails the ownership check below.
  await _require_quota(session, principal, QuotaAction.CREATE_QUESTION, checker, job_info_id=job_info_id)

  job_info = await get_job_info(session, cache, job_info_id=job_info_id, user_id=principal.user_id)
  if job_info is None:
    raise PermissionDeniedError()

  previous = await list_questions(session, cache, job_info_id=job_info.id)
  placeholder = await insert_question(session, cache, job_info_id=job_info.id, difficulty=difficulty)

  async def _finalize(text: str) -> None:
    async with session_factory() as finalize_session:
      await finalize_question(finalize_session, cache, question_id=placeholder.id, text=text)

  context = QuestionContext(job_info=job_info, difficulty=difficulty, previous_questions=tuple(previous))
  return await _start_stream(stream_question(model, context, _finalize), kind="question", record_id=placeholder.id)


async def start_feedback(
  session: AsyncSession,
  cache: TaggedCache,
  *,
  principal: Principal | None,
  question_id: uuid.UUID,
  answer: str,
  checker: GrantChecker,
  model: AIModel,
  session_factory: async_sessionmaker[AsyncSession],
) -> GenerationHandle:
  """Check, write the placeholder feedback and start streaming its text."""
  if principal is None:
    raise AuthenticationRequiredError()
  # The feedback allowance is counted per job info, which is only known from the owned question.
  question = await get_owned_question(session, cache, question_id=question_id, user_id=principal.user_id)
  if question is None:
    raise PermissionDeniedError()
  await _require_quota(session, principal, QuotaAction.CREATE_FEEDBACK, checker, job_info_id=question.job_info_id)
  job_info = await get_job_info(session, cache, job_info_id=question.job_info_id, user_id=principal.user_id)
  if job_info is None:
    raise PermissionDeniedError()

  placeholder = await insert_feedback(session, cache, question_id=question.id, job_info_id=job_info.id, answer=answer)

  async def _finalize(text: str) -> None:
    async with session_factory() as finalize_session:
      await finalize_feedback(finalize_session, cache, feedback_id=placeholder.id, text=text)

  context = FeedbackContext(job_info=job_info, question=question, answer=answer)
  return await _start_stream(stream_feedback(model, context, _finalize), kind="feedback", record_id=placeholder.id)
