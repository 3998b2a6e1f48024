from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.services.entitlements import EntitlementFacts, Grant
from app.services.quotas import LIMITED_INTERVIEW_ALLOWANCE, LIMITED_QUESTION_ALLOWANCE, QuotaAction, can_perform, evaluate_all, evaluate_quota


def _facts(*grants: Grant) -> EntitlementFacts:
  return EntitlementFacts(grants=frozenset(grants))


def _session_counting(count: int) -> AsyncMock:
  session = AsyncMock()
  result = MagicMock()
  result.scalar_one.return_value = count
  session.execute.return_value = result
  return session


@pytest.mark.anyio
async def test_unlimited_grant_allows_without_counting(principal) -> None:
  session = _session_counting(999)
  decision = await evaluate_quota(session, principal, QuotaAction.CREATE_QUESTION, _facts(Grant.UNLIMITED_QUESTIONS))
  assert decision.allowed
  assert decision.basis == "unlimited_grant"
  session.execute.assert_not_awaited()


@pytest.mark.anyio
async def test_no_grant_denies(principal) -> None:
  session = _session_counting(0)
  decision = await evaluate_quota(session, principal, QuotaAction.CREATE_INTERVIEW, _facts())
  assert not decision.allowed
  assert decision.basis == "no_grant"
  session.execute.assert_not_awaited()


@pytest.mark.anyio
async def test_question_allowance_boundary(principal) -> None:
  facts = _facts(Grant.FIVE_QUESTIONS)
  below = await evaluate_quota(_session_counting(LIMITED_QUESTION_ALLOWANCE - 1), principal, QuotaAction.CREATE_QUESTION, facts, job_info_id=uuid.uuid4())
  at_limit = await evaluate_quota(_session_counting(LIMITED_QUESTION_ALLOWANCE), principal, QuotaAction.CREATE_QUESTION, facts, job_info_id=uuid.uuid4())
  assert below.allowed
  assert (below.used, below.limit) == (4, 5)
  assert not at_limit.allowed
  assert at_limit.basis == "limited_grant"


@pytest.mark.anyio
async def test_interview_allowance_is_one_completed_interview(principal) -> None:
  facts = _facts(Grant.ONE_INTERVIEW)
  assert LIMITED_INTERVIEW_ALLOWANCE == 1
  assert await can_perform(_session_counting(0), principal, QuotaAction.CREATE_INTERVIEW, facts)
  assert not await can_perform(_session_counting(1), principal, QuotaAction.CREATE_INTERVIEW, facts)


@pytest.mark.anyio
async def test_alias_spelling_of_unlimited_interviews_is_honored(principal) -> None:
  from app.services.entitlements import grants_from_claims

  facts = EntitlementFacts(grants=grants_from_claims({"features": ["unlimited_interview"]}))
  assert await can_perform(_session_counting(10), principal, QuotaAction.CREATE_INTERVIEW, facts)


@pytest.mark.anyio
async def test_count_failure_denies_and_rolls_back(principal) -> None:
  session = AsyncMock()
  session.execute.side_effect = OperationalError("SELECT count(*)", {}, Exception("connection reset"))
  decision = await evaluate_quota(session, principal, QuotaAction.CREATE_QUESTION, _facts(Grant.FIVE_QUESTIONS), job_info_id=uuid.uuid4())
  assert not decision.allowed
  assert decision.basis == "count_failed"
  session.rollback.assert_awaited_once()


@pytest.mark.anyio
async def test_count_query_is_scoped_to_the_principal(principal) -> None:
  session = _session_counting(0)
  await evaluate_quota(session, principal, QuotaAction.CREATE_INTERVIEW, _facts(Grant.ONE_INTERVIEW))
  statement = session.execute.await_args.args[0]
  compiled = statement.compile()
  assert "job_infos.user_id" in str(compiled)
  assert principal.user_id in compiled.params.values()


@pytest.mark.parametrize("action", [QuotaAction.CREATE_QUESTION, QuotaAction.CREATE_FEEDBACK])
@pytest.mark.anyio
async def test_question_and_feedback_counts_are_scoped_to_the_job_info(principal, action) -> None:
  job_info_id = uuid.uuid4()
  session = _session_counting(0)
  await evaluate_quota(session, principal, action, _facts(Grant.FIVE_QUESTIONS), job_info_id=job_info_id)
  compiled = session.execute.await_args.args[0].compile()
  sql = str(compiled)
  assert "FROM questions" in sql
  assert "questions.job_info_id" in sql
  assert "job_infos.user_id" in sql
  assert job_info_id in compiled.params.values()
  assert principal.user_id in compiled.params.values()


@pytest.mark.anyio
async def test_question_count_without_job_info_is_a_caller_error(principal) -> None:
  with pytest.raises(ValueError):
    await evaluate_quota(_session_counting(0), principal, QuotaAction.CREATE_QUESTION, _facts(Grant.FIVE_QUESTIONS))


@pytest.mark.anyio
async def test_evaluate_all_without_job_info_reports_the_allowance(principal) -> None:
  session = _session_counting(3)
  decisions = {decision.action: decision for decision in await evaluate_all(session, principal, _facts(Grant.FIVE_QUESTIONS))}
  assert decisions[QuotaAction.CREATE_QUESTION].allowed
  assert decisions[QuotaAction.CREATE_QUESTION].used is None
  assert decisions[QuotaAction.CREATE_QUESTION].limit == LIMITED_QUESTION_ALLOWANCE
  session.execute.assert_not_awaited()

  scoped = {decision.action: decision for decision in await evaluate_all(session, principal, _facts(Grant.FIVE_QUESTIONS), job_info_id=uuid.uuid4())}
  assert scoped[QuotaAction.CREATE_FEEDBACK].used == 3


@pytest.mark.anyio
async def test_resume_analysis_requires_unlimited_grant(principal) -> None:
  assert not await can_perform(_session_counting(0), principal, QuotaAction.ANALYZE_RESUME, _facts(Grant.FIVE_QUESTIONS, Grant.ONE_INTERVIEW))
  assert await can_perform(_session_counting(0), principal, QuotaAction.ANALYZE_RESUME, _facts(Grant.UNLIMITED_RESUME_ANALYSIS))


@pytest.mark.anyio
async def test_evaluate_all_covers_every_action(principal) -> None:
  decisions = await evaluate_all(_session_counting(0), principal, _facts(Grant.UNLIMITED_QUESTIONS))
  assert [decision.action for decision in decisions] == list(QuotaAction)
  by_action = {decision.action: decision for decision in decisions}
  assert by_action[QuotaAction.CREATE_FEEDBACK].allowed
  assert not by_action[QuotaAction.CREATE_INTERVIEW].allowed
