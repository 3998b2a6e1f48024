"""Per-action permission checks combining grants with usage counts.

How/Why:
  - Unlimited grants short-circuit before any counting.
  - Limited grants compare a count of the principal's own records against a
    fixed allowance; counts always join through ``job_infos.user_id``.
  - Question and feedback allowances are per job info: both count the question
    rows already generated for that job info.
  - A failed count query denies the action. Grant lookups degrade to "not
    granted" instead (see ``app.services.entitlements``).
  - Decisions are recomputed per request and never cached.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import Principal
from app.schema.sql import Interview, JobInfo, Question
from app.services.entitlements import EntitlementFacts, Grant

logger = logging.getLogger(__name__)

# Completed interviews a `1_interview` holder may run.
LIMITED_INTERVIEW_ALLOWANCE = 1
LIMITED_QUESTION_ALLOWANCE = 5

QuotaBasis = Literal["unlimited_grant", "limited_grant", "no_grant", "count_failed"]


class QuotaAction(str, Enum):
  CREATE_INTERVIEW = "create_interview"
  CREATE_QUESTION = "create_question"
  CREATE_FEEDBACK = "create_feedback"
  ANALYZE_RESUME = "analyze_resume"


@dataclass(frozen=True)
class QuotaDecision:
  """Outcome of a quota check and what it was based on."""

  action: QuotaAction
  allowed: bool
  basis: QuotaBasis
  used: int | None = None
  limit: int | None = None


@dataclass(frozen=True)
class _QuotaRule:
  unlimited: Grant
  limited: Grant | None
  allowance: int
  job_scoped: bool = False


_RULES: dict[QuotaAction, _QuotaRule] = {
  QuotaAction.CREATE_INTERVIEW: _QuotaRule(unlimited=Grant.UNLIMITED_INTERVIEWS, limited=Grant.ONE_INTERVIEW, allowance=LIMITED_INTERVIEW_ALLOWANCE),
  QuotaAction.CREATE_QUESTION: _QuotaRule(unlimited=Grant.UNLIMITED_QUESTIONS, limited=Grant.FIVE_QUESTIONS, allowance=LIMITED_QUESTION_ALLOWANCE, job_scoped=True),
  QuotaAction.CREATE_FEEDBACK: _QuotaRule(unlimited=Grant.UNLIMITED_QUESTIONS, limited=Grant.FIVE_QUESTIONS, allowance=LIMITED_QUESTION_ALLOWANCE, job_scoped=True),
  QuotaAction.ANALYZE_RESUME: _QuotaRule(unlimited=Grant.UNLIMITED_RESUME_ANALYSIS, limited=None, allowance=0),
}


def _count_statement(action: QuotaAction, principal: Principal, job_info_id: uuid.UUID | None) -> Select[tuple[int]]:
  """Build the owner-scoped count query backing a limited allowance."""
  if action == QuotaAction.CREATE_INTERVIEW:
    return select(func.count()).select_from(Interview).join(JobInfo, Interview.job_info_id == JobInfo.id).where(JobInfo.user_id == principal.user_id, Interview.external_session_id.is_not(None))
  if action in (QuotaAction.CREATE_QUESTION, QuotaAction.CREATE_FEEDBACK):
    if job_info_id is None:
      raise ValueError(f"Counting {action.value} requires a job info id")
    return select(func.count()).select_from(Question).join(JobInfo, Question.job_info_id == JobInfo.id).where(JobInfo.user_id == principal.user_id, Question.job_info_id == job_info_id)
  raise ValueError(f"No usage count for action {action.value}")


async def count_usage(session: AsyncSession, principal: Principal, action: QuotaAction, *, job_info_id: uuid.UUID | None = None) -> int:
  """Count the principal's records that consume the limited allowance for an action."""
  result = await session.execute(_count_statement(action, principal, job_info_id))
  return int(result.scalar_one() or 0)


def _decide_from_grants(action: QuotaAction, facts: EntitlementFacts) -> QuotaDecision | None:
  rule = _RULES[action]
  if facts.has(rule.unlimited):
    return QuotaDecision(action=action, allowed=True, basis="unlimited_grant")
  if rule.limited is None or not facts.has(rule.limited):
    return QuotaDecision(action=action, allowed=False, basis="no_grant")
  return None


async def evaluate_quota(session: AsyncSession, principal: Principal, action: QuotaAction, facts: EntitlementFacts, *, job_info_id: uuid.UUID | None = None) -> QuotaDecision:
  """Decide whether the principal may perform ``action`` right now.

  Question and feedback actions need ``job_info_id`` whenever the decision
  depends on a count.
  """
  decision = _decide_from_grants(action, facts)
  if decision is not None:
    return decision

  rule = _RULES[action]
  if rule.job_scoped and job_info_id is None:
    raise ValueError(f"{action.value} is counted per job info; pass job_info_id")

  try:
    used = await count_usage(session, principal, action, job_info_id=job_info_id)
  except Exception as exc:  # noqa: BLE001
    logger.error("Usage count failed; denying action=%s user_id=%s job_info_id=%s error=%s", action.value, principal.user_id, job_info_id, exc, exc_info=True)
    try:
      await session.rollback()
    except Exception:  # noqa: BLE001
      logger.warning("Rollback after failed usage count also failed user_id=%s", principal.user_id, exc_info=True)
    return QuotaDecision(action=action, allowed=False, basis="count_failed", limit=rule.allowance)

  return QuotaDecision(action=action, allowed=used < rule.allowance, basis="limited_grant", used=used, limit=rule.allowance)


async def can_perform(session: AsyncSession, principal: Principal, action: QuotaAction, facts: EntitlementFacts, *, job_info_id: uuid.UUID | None = None) -> bool:
  decision = await evaluate_quota(session, principal, action, facts, job_info_id=job_info_id)
  return decision.allowed


async def evaluate_all(session: AsyncSession, principal: Principal, facts: EntitlementFacts, *, job_info_id: uuid.UUID | None = None) -> list[QuotaDecision]:
  """Evaluate every action sequentially; the session does not allow concurrent statements.

  Without a job info, per-job actions held through a limited grant report the
  allowance with ``used`` unset: a job info with no questions yet is always
  below it.
  """
  decisions: list[QuotaDecision] = []
  for action in QuotaAction:
    rule = _RULES[action]
    if rule.job_scoped and job_info_id is None and _decide_from_grants(action, facts) is None:
      decisions.append(QuotaDecision(action=action, allowed=True, basis="limited_grant", limit=rule.allowance))
      continue
    decisions.append(await evaluate_quota(session, principal, action, facts, job_info_id=job_info_id))
  return decisions
