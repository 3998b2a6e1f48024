from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session, get_read_cache
from app.api.models import FeedbackResponse, QuestionResponse
from app.core.cache import TaggedCache
from app.core.security import Principal, get_current_principal
from app.schema.records import QuestionRecord
from app.services.feedback import list_feedback
from app.services.questions import get_owned_question

router = APIRouter()


async def _require_question(db: AsyncSession, cache: TaggedCache, *, question_id: uuid.UUID, principal: Principal) -> QuestionRecord:
  question = await get_owned_question(db, cache, question_id=question_id, user_id=principal.user_id)
  if question is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
  return question


@router.get("/{question_id}", response_model=QuestionResponse)
async def get_my_question(question_id: uuid.UUID, principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> QuestionResponse:  # noqa: B008
  return QuestionResponse.from_record(await _require_question(db, cache, question_id=question_id, principal=principal))


@router.get("/{question_id}/feedback", response_model=list[FeedbackResponse])
async def list_question_feedback(question_id: uuid.UUID, principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> list[FeedbackResponse]:  # noqa: B008
  """
  List the feedback generated for one of the user's questions, oldest first.

  Entries whose generation is still running have an empty `text`.
  """
  question = await _require_question(db, cache, question_id=question_id, principal=principal)
  records = await list_feedback(db, cache, question_id=question.id, user_id=principal.user_id)
  return [FeedbackResponse.from_record(record) for record in records]
