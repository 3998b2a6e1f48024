from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.database import get_db
from app.core.firebase import verify_id_token
from app.services.users import get_user_by_firebase_uid

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
  """Authenticated identity for one request, passed explicitly to every check."""

  user_id: uuid.UUID
  firebase_uid: str
  email: str
  claims: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


async def get_verified_claims(token: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)]) -> dict[str, Any] | None:
  """Verify the bearer token and return its claims, or None when absent or invalid."""
  if token is None or not token.credentials:
    return None

  # The Firebase Admin SDK is synchronous; keep it off the event loop.
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims or not decoded_claims.get("uid"):
    return None
  return decoded_claims


async def get_optional_principal(claims: dict[str, Any] | None = Depends(get_verified_claims), db: AsyncSession = Depends(get_db)) -> Principal | None:  # noqa: B008
  """Resolve the principal for routes that report authentication failures themselves."""
  if claims is None:
    return None

  user = await get_user_by_firebase_uid(db, str(claims["uid"]))
  if user is None:
    logger.info("Verified token has no local user uid=%s", claims["uid"])
    return None

  return Principal(user_id=user.id, firebase_uid=user.firebase_uid, email=user.email, claims=claims)


async def require_verified_claims(claims: dict[str, Any] | None = Depends(get_verified_claims)) -> dict[str, Any]:  # noqa: B008
  """Require a valid token without requiring a provisioned user row."""
  if claims is None:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})
  return claims


async def get_current_principal(principal: Principal | None = Depends(get_optional_principal)) -> Principal:  # noqa: B008
  """Require an authenticated, provisioned user."""
  if principal is None:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="You are not logged in", headers={"WWW-Authenticate": "Bearer"})
  return principal
