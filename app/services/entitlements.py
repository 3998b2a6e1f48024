"""Subscription grant resolution.

Grants are named boolean entitlements issued by billing and carried on the
identity token as the ``features`` custom claim. Raw names are normalized once
through :data:`GRANT_ALIASES`; unknown names are ignored. Individual grant checks
that fail are treated as not granted so one flaky lookup never blocks the rest.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Protocol

from app.core.security import Principal

logger = logging.getLogger(__name__)

UserPlan = Literal["free", "pro", "max"]


class Grant(str, Enum):
  UNLIMITED_INTERVIEWS = "unlimited_interviews"
  UNLIMITED_QUESTIONS = "unlimited_questions"
  UNLIMITED_RESUME_ANALYSIS = "unlimited_resume_analysis"
  ONE_INTERVIEW = "1_interview"
  FIVE_QUESTIONS = "5_questions"


# Billing has issued both spellings for the same interview grant.
GRANT_ALIASES: dict[str, Grant] = {"unlimited_interview": Grant.UNLIMITED_INTERVIEWS}


def normalize_grant_name(raw: str) -> Grant | None:
  """Map a raw grant name (optionally scoped like ``u:name``) onto a known grant."""
  name = (raw or "").strip().lower()
  # Feature claims may be scoped by owner type, e.g. "u:unlimited_questions" or "o:5_questions".
  if ":" in name:
    name = name.split(":", 1)[1]
  if name in GRANT_ALIASES:
    return GRANT_ALIASES[name]
  try:
    return Grant(name)
  except ValueError:
    return None


def grants_from_claims(claims: dict[str, Any]) -> frozenset[Grant]:
  """Extract the normalized grant set from token claims."""
  raw = claims.get("features")
  if raw is None:
    return frozenset()
  if isinstance(raw, str):
    names: Iterable[Any] = raw.replace(",", " ").split()
  elif isinstance(raw, list | tuple | set | frozenset):
    names = raw
  else:
    raise TypeError(f"Unsupported features claim type: {type(raw).__name__}")

  grants = {normalize_grant_name(str(name)) for name in names}
  return frozenset(grant for grant in grants if grant is not None)


class GrantChecker(Protocol):
  async def has_grant(self, principal: Principal, grant: Grant) -> bool: ...


class ClaimsGrantChecker:
  """Answer grant checks from the verified token's ``features`` claim."""

  async def has_grant(self, principal: Principal, grant: Grant) -> bool:
    return grant in grants_from_claims(principal.claims)


@dataclass(frozen=True)
class EntitlementFacts:
  """Grants held by a principal, resolved for a single request."""

  grants: frozenset[Grant]

  def has(self, grant: Grant) -> bool:
    return grant in self.grants

  @property
  def unlimited_interviews(self) -> bool:
    return self.has(Grant.UNLIMITED_INTERVIEWS)

  @property
  def unlimited_questions(self) -> bool:
    return self.has(Grant.UNLIMITED_QUESTIONS)

  @property
  def unlimited_resume_analysis(self) -> bool:
    return self.has(Grant.UNLIMITED_RESUME_ANALYSIS)

  @property
  def tier(self) -> UserPlan:
    if self.unlimited_interviews and self.unlimited_resume_analysis:
      return "max"
    if self.unlimited_interviews or self.unlimited_resume_analysis or self.unlimited_questions:
      return "pro"
    return "free"


async def _check_grant(checker: GrantChecker, principal: Principal, grant: Grant) -> bool:
  try:
    return bool(await checker.has_grant(principal, grant))
  except Exception as exc:  # noqa: BLE001
    logger.warning("Grant check failed; treating as not granted user_id=%s grant=%s error=%s", principal.user_id, grant.value, exc)
    return False


async def resolve_entitlements(principal: Principal, checker: GrantChecker) -> EntitlementFacts:
  """Check every grant independently and collect the ones held."""
  if principal is None:
    raise ValueError("Entitlements require an authenticated principal.")

  grants = list(Grant)
  results = await asyncio.gather(*(_check_grant(checker, principal, grant) for grant in grants))
  return EntitlementFacts(grants=frozenset(grant for grant, held in zip(grants, results, strict=True) if held))


def get_grant_checker() -> GrantChecker:
  """Dependency returning the grant checker used by API routes."""
  return ClaimsGrantChecker()
