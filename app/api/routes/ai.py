"""Streaming generation endpoints.

These endpoints answer with plain text, both while streaming and on failure,
so the body is parsed by hand and every rejection is a :class:`RehearsalError`.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.ai.providers.base import AIModel
from app.api.deps import get_db_session, get_finalize_session_factory, get_generation_model, get_read_cache
from app.api.models import GenerateFeedbackRequest, GenerateQuestionRequest
from app.core.cache import TaggedCache
from app.core.errors import RequestValidationFailed
from app.core.security import Principal, get_optional_principal
from app.services.entitlements import GrantChecker, get_grant_checker
from app.services.generation import GenerationHandle, start_feedback, start_question

logger = logging.getLogger(__name__)

router = APIRouter()

QUESTION_ERROR_MESSAGE = "Error generating your question"
FEEDBACK_ERROR_MESSAGE = "Error generating your feedback"

_STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"

ModelT = type[BaseModel]


async def _parse_body(request: Request, model: ModelT, message: str) -> Any:
  try:
    body = await request.json()
  except ValueError as exc:
    logger.warning("Rejected non-JSON generation request path=%s", request.url.path)
    raise RequestValidationFailed(message) from exc

  try:
    return model.model_validate(body)
  except ValidationError as exc:
    logger.warning("Rejected generation request path=%s errors=%s", request.url.path, exc.error_count())
    raise RequestValidationFailed(message) from exc


def _stream_response(handle: GenerationHandle, header: str) -> StreamingResponse:
  return StreamingResponse(handle.chunks, media_type=_STREAM_MEDIA_TYPE, headers={header: str(handle.record_id)})


@router.post("/generate-question")
async def generate_question(
  request: Request,
  principal: Principal | None = Depends(get_optional_principal),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  cache: TaggedCache = Depends(get_read_cache),  # noqa: B008
  checker: GrantChecker = Depends(get_grant_checker),  # noqa: B008
  model: AIModel = Depends(get_generation_model),  # noqa: B008
  session_factory: async_sessionmaker[AsyncSession] = Depends(get_finalize_session_factory),  # noqa: B008
) -> StreamingResponse:
  """
  Stream a new interview question for one of the user's job infos.

  The placeholder question id is returned in the `x-question-id` header.
  """
  payload: GenerateQuestionRequest = await _parse_body(request, GenerateQuestionRequest, QUESTION_ERROR_MESSAGE)
  handle = await start_question(db, cache, principal=principal, job_info_id=payload.job_info_id, difficulty=payload.prompt, checker=checker, model=model, session_factory=session_factory)
  return _stream_response(handle, "x-question-id")


@router.post("/generate-feedback")
async def generate_feedback(
  request: Request,
  principal: Principal | None = Depends(get_optional_principal),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  cache: TaggedCache = Depends(get_read_cache),  # noqa: B008
  checker: GrantChecker = Depends(get_grant_checker),  # noqa: B008
  model: AIModel = Depends(get_generation_model),  # noqa: B008
  session_factory: async_sessionmaker[AsyncSession] = Depends(get_finalize_session_factory),  # noqa: B008
) -> StreamingResponse:
  """
  Stream feedback on the user's answer to a question.

  The placeholder feedback id is returned in the `x-feedback-id` header.
  """
  payload: GenerateFeedbackRequest = await _parse_body(request, GenerateFeedbackRequest, FEEDBACK_ERROR_MESSAGE)
  handle = await start_feedback(db, cache, principal=principal, question_id=payload.question_id, answer=payload.prompt, checker=checker, model=model, session_factory=session_factory)
  return _stream_response(handle, "x-feedback-id")
