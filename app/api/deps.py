"""Shared FastAPI dependencies for sessions, caching, generation and entitlements."""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.ai.providers.base import AIModel
from app.ai.providers.gemini import get_model
from app.core.cache import TaggedCache, get_cache
from app.core.database import get_db, require_session_factory
from app.core.security import Principal, get_current_principal
from app.services.entitlements import EntitlementFacts, GrantChecker, get_grant_checker, resolve_entitlements

logger = logging.getLogger(__name__)


async def get_db_session(session: AsyncSession = Depends(get_db)) -> AsyncSession:  # noqa: B008
  """Dependency to get the database session."""
  return session


def get_read_cache() -> TaggedCache:
  return get_cache()


def get_finalize_session_factory() -> async_sessionmaker[AsyncSession]:
  """Session factory for work that outlives the request, such as finalizing a generation."""
  return require_session_factory()


def get_generation_model() -> AIModel:
  return get_model()


async def get_entitlements(principal: Principal = Depends(get_current_principal), checker: GrantChecker = Depends(get_grant_checker)) -> EntitlementFacts:  # noqa: B008
  """Resolve the current principal's grants for this request."""
  facts = await resolve_entitlements(principal, checker)
  logger.debug("Resolved entitlements user_id=%s tier=%s grants=%s", principal.user_id, facts.tier, sorted(grant.value for grant in facts.grants))
  return facts
