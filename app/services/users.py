"""User CRUD helpers implemented with SQLAlchemy ORM.

Users are mirrored from Firebase Authentication: a row is provisioned from the
verified token claims the first time a signed-in client syncs, and every later
request resolves the principal through the Firebase UID.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import TaggedCache
from app.schema.records import UserRecord
from app.schema.sql import JobInfo, User
from app.services.cache_tags import id_tag, revalidate_job_info_cache, revalidate_job_info_contents, revalidate_user_cache

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "User"


class MissingEmailClaimError(ValueError):
  """Raised when a verified token carries no email to provision a user with."""


async def get_user_by_firebase_uid(session: AsyncSession, firebase_uid: str) -> User | None:
  """Fetch a user by Firebase UID to support auth and session validation."""
  stmt = select(User).where(User.firebase_uid == firebase_uid)
  result = await session.execute(stmt)
  return result.scalar_one_or_none()


async def get_user(session: AsyncSession, cache: TaggedCache, user_id: uuid.UUID) -> UserRecord | None:
  """Return the cached user snapshot for an id."""

  async def _load() -> UserRecord | None:
    row = await session.get(User, user_id)
    return UserRecord.from_row(row) if row is not None else None

  return await cache.get_or_load(f"users:{user_id}", tags=[id_tag("users", user_id)], loader=_load)


def _display_name(claims: dict[str, Any]) -> str:
  name = str(claims.get("name") or "").strip()
  return name or DEFAULT_USER_NAME


async def provision_user_from_claims(session: AsyncSession, cache: TaggedCache, *, claims: dict[str, Any]) -> UserRecord:
  """Create the local user row for a verified identity, or refresh the existing one."""
  firebase_uid = str(claims.get("uid") or "")
  if not firebase_uid:
    raise ValueError("Token claims are missing the uid.")

  email = claims.get("email")
  if not email:
    raise MissingEmailClaimError("No primary email found")

  existing = await get_user_by_firebase_uid(session, firebase_uid)
  if existing is not None:
    # Keep profile fields in sync with the identity provider on every sync call.
    existing.email = str(email)
    existing.name = _display_name(claims)
    existing.image_url = str(claims["picture"]) if claims.get("picture") else None
    await session.commit()
    await session.refresh(existing)
    revalidate_user_cache(cache, user_id=existing.id)
    return UserRecord.from_row(existing)

  logger.info("Provisioning user from identity claims uid=%s", firebase_uid)
  user = User(id=uuid.uuid4(), firebase_uid=firebase_uid, email=str(email), name=_display_name(claims), image_url=str(claims["picture"]) if claims.get("picture") else None)
  session.add(user)
  try:
    await session.commit()
  except IntegrityError:
    # A concurrent sync for the same identity won the insert; use its row.
    await session.rollback()
    concurrent = await get_user_by_firebase_uid(session, firebase_uid)
    if concurrent is None:
      raise
    return UserRecord.from_row(concurrent)

  await session.refresh(user)
  revalidate_user_cache(cache, user_id=user.id)
  return UserRecord.from_row(user)


async def delete_user(session: AsyncSession, cache: TaggedCache, *, user_id: uuid.UUID) -> None:
  """Delete a user; job infos and everything under them cascade in the database."""
  job_info_ids = list((await session.execute(select(JobInfo.id).where(JobInfo.user_id == user_id))).scalars().all())
  await session.execute(delete(User).where(User.id == user_id))
  await session.commit()
  revalidate_user_cache(cache, user_id=user_id)
  for job_info_id in job_info_ids:
    revalidate_job_info_cache(cache, job_info_id=job_info_id, user_id=user_id)
    revalidate_job_info_contents(cache, job_info_id=job_info_id, user_id=user_id)
