from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session, get_entitlements, get_read_cache
from app.api.models import PlanResponse, QuotaDecisionResponse, UserResponse
from app.core.cache import TaggedCache
from app.core.security import Principal, get_current_principal, require_verified_claims
from app.services.entitlements import EntitlementFacts
from app.services.quotas import evaluate_all
from app.services.users import MissingEmailClaimError, delete_user, get_user, provision_user_from_claims

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sync", response_model=UserResponse)
async def sync_user(claims: dict[str, Any] = Depends(require_verified_claims), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> UserResponse:  # noqa: B008
  """
  Provision or refresh the local user for the signed-in identity.
  """
  try:
    record = await provision_user_from_claims(db, cache, claims=claims)
  except MissingEmailClaimError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

  return UserResponse.from_record(record)


@router.get("/me", response_model=UserResponse)
async def get_my_profile(principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> UserResponse:  # noqa: B008
  """
  Get the current user's profile.
  """
  record = await get_user(db, cache, principal.user_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
  return UserResponse.from_record(record)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_account(principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db_session), cache: TaggedCache = Depends(get_read_cache)) -> Response:  # noqa: B008
  """
  Delete the current user together with all of their job infos and generated content.
  """
  await delete_user(db, cache, user_id=principal.user_id)
  logger.info("Deleted user user_id=%s", principal.user_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/plan", response_model=PlanResponse)
async def get_my_plan(
  job_info_id: uuid.UUID | None = Query(default=None, alias="jobInfoId"),  # noqa: B008
  principal: Principal = Depends(get_current_principal),  # noqa: B008
  facts: EntitlementFacts = Depends(get_entitlements),  # noqa: B008
  db: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> PlanResponse:
  """
  Get the current user's tier, grants and which actions are available right now.

  Question and feedback allowances are per job info; pass `jobInfoId` to count them.
  """
  decisions = await evaluate_all(db, principal, facts, job_info_id=job_info_id)
  return PlanResponse(
    tier=facts.tier,
    grants=sorted(grant.value for grant in facts.grants),
    can_perform={decision.action.value: QuotaDecisionResponse.from_decision(decision) for decision in decisions},
  )
