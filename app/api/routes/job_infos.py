from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session, get_entitlements, get_read_cache
from app.api.models import InterviewResponse, JobInfoCreateRequest, JobInfoResponse, JobInfoUpdateRequest, QuestionResponse
from app.core.cache import TaggedCache
from app.core.errors import PLAN_LIMIT_MESSAGE
from app.core.security import Principal, get_current_principal
from app.schema.records import JobInfoRecord
from app.services.entitlements import EntitlementFacts
from app.services.interviews import insert_interview, list_completed_interviews
from app.services.job_infos import JobInfoInput, delete_job_info, get_job_info, insert_job_info, list_job_infos, update_job_info
from app.services.questions import list_questions
from app.services.quotas import QuotaAction, evaluate_quota

logger = logging.getLogger(__name__)

router = APIRouter()


async def _require_job_info(db: AsyncSession, cache: TaggedCache, *, job_info_id: uuid.UUID, principal: Principal) -> JobInfoRecord:
  # Missing and foreign job infos are indistinguishable to the caller.
  job_info = await get_job_info(db, cache, job_info_id=job_info_id, user_id=principal.user_id)
  if job_info is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job info not found")
  return job_info


@router.get("", response_model=list[JobInfoResponse])
async def list_my_job_infos(principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> list[JobInfoResponse]:  # noqa: B008
  records = await list_job_infos(db, cache, user_id=principal.user_id)
  return [JobInfoResponse.from_record(record) for record in records]


@router.post("", response_model=JobInfoResponse, status_code=status.HTTP_201_CREATED)
async def create_job_info(
  payload: JobInfoCreateRequest,
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  cache: TaggedCache = Depends(get_read_cache),  # noqa: B008
) -> JobInfoResponse:
  """
  Describe a job to rehearse for.
  """
  data = JobInfoInput(name=payload.name, title=payload.title, experience_level=payload.experience_level, description=payload.description)
  record = await insert_job_info(db, cache, user_id=principal.user_id, data=data)
  return JobInfoResponse.from_record(record)


@router.get("/{job_info_id}", response_model=JobInfoResponse)
async def get_my_job_info(job_info_id: uuid.UUID, principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> JobInfoResponse:  # noqa: B008
  return JobInfoResponse.from_record(await _require_job_info(db, cache, job_info_id=job_info_id, principal=principal))


@router.patch("/{job_info_id}", response_model=JobInfoResponse)
async def update_my_job_info(
  job_info_id: uuid.UUID,
  payload: JobInfoUpdateRequest,
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  cache: TaggedCache = Depends(get_read_cache),  # noqa: B008
) -> JobInfoResponse:
  # Only the title may be cleared; the other columns are required.
  changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None or key == "title"}
  record = await update_job_info(db, cache, job_info_id=job_info_id, user_id=principal.user_id, changes=changes)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job info not found")
  return JobInfoResponse.from_record(record)


@router.delete("/{job_info_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_job_info(job_info_id: uuid.UUID, principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> Response:  # noqa: B008
  deleted = await delete_job_info(db, cache, job_info_id=job_info_id, user_id=principal.user_id)
  if not deleted:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job info not found")
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{job_info_id}/questions", response_model=list[QuestionResponse])
async def list_job_info_questions(job_info_id: uuid.UUID, principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> list[QuestionResponse]:  # noqa: B008
  """
  List the questions generated for a job info, oldest first.
  """
  job_info = await _require_job_info(db, cache, job_info_id=job_info_id, principal=principal)
  records = await list_questions(db, cache, job_info_id=job_info.id)
  return [QuestionResponse.from_record(record) for record in records]


@router.get("/{job_info_id}/interviews", response_model=list[InterviewResponse])
async def list_job_info_interviews(job_info_id: uuid.UUID, principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> list[InterviewResponse]:  # noqa: B008
  """
  List completed interviews for a job info, newest first.
  """
  job_info = await _require_job_info(db, cache, job_info_id=job_info_id, principal=principal)
  records = await list_completed_interviews(db, cache, job_info_id=job_info.id)
  return [InterviewResponse.from_record(record) for record in records]


@router.post("/{job_info_id}/interviews", response_model=InterviewResponse, status_code=status.HTTP_201_CREATED)
async def start_interview(
  job_info_id: uuid.UUID,
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  facts: EntitlementFacts = Depends(get_entitlements),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
  cache: TaggedCache = Depends(get_read_cache),  # noqa: B008
) -> InterviewResponse:
  """
  Open a mock interview session if the user's plan allows another one.
  """
  decision = await evaluate_quota(db, principal, QuotaAction.CREATE_INTERVIEW, facts)
  if not decision.allowed:
    logger.info("Interview quota denied user_id=%s basis=%s used=%s limit=%s", principal.user_id, decision.basis, decision.used, decision.limit)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=PLAN_LIMIT_MESSAGE)

  job_info = await _require_job_info(db, cache, job_info_id=job_info_id, principal=principal)
  record = await insert_interview(db, cache, job_info_id=job_info.id)
  return InterviewResponse.from_record(record)
