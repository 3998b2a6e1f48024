from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session, get_read_cache
from app.api.models import InterviewResponse, InterviewUpdateRequest
from app.core.cache import TaggedCache
from app.core.security import Principal, get_current_principal
from app.services.interviews import get_owned_interview, update_interview

router = APIRouter()


@router.get("/{interview_id}", response_model=InterviewResponse)
async def get_my_interview(interview_id: uuid.UUID, principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> InterviewResponse:  # noqa: B008
  record = await get_owned_interview(db, cache, interview_id=interview_id, user_id=principal.user_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Interview not found")
  return InterviewResponse.from_record(record)


@router.patch("/{interview_id}", response_model=InterviewResponse)
async def update_my_interview(
  interview_id: uuid.UUID,
  payload: InterviewUpdateRequest,
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  cache: TaggedCache = Depends(get_read_cache),  # noqa: B008
) -> InterviewResponse:
  """
  Record the voice session id and duration once the interview call ends.
  """
  record = await update_interview(db, cache, interview_id=interview_id, user_id=principal.user_id, changes=payload.model_dump(exclude_unset=True))
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Interview not found")
  return InterviewResponse.from_record(record)
