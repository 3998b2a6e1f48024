from __future__ import annotations

import dataclasses
import uuid
from unittest.mock import AsyncMock

import pytest

from app.core.errors import PLAN_LIMIT_MESSAGE
from app.core.security import get_optional_principal
from app.main import app
from app.services.generation import drain_background_generations
from tests.factories import make_job_info, make_question

QUESTION_URL = "/api/ai/questions/generate-question"
FEEDBACK_URL = "/api/ai/questions/generate-feedback"


@pytest.fixture
def limited_principal(principal):
  return dataclasses.replace(principal, claims={"uid": principal.firebase_uid, "features": ["5_questions"]})


@pytest.mark.anyio
async def test_invalid_body_is_rejected_with_plain_text(async_client) -> None:
  response = await async_client.post(QUESTION_URL, json={"prompt": "impossible", "jobInfoId": str(uuid.uuid4())})
  assert response.status_code == 400
  assert response.text == "Error generating your question"
  assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.anyio
async def test_non_json_body_is_rejected(async_client) -> None:
  response = await async_client.post(FEEDBACK_URL, content=b"not json", headers={"content-type": "application/json"})
  assert response.status_code == 400
  assert response.text == "Error generating your feedback"


@pytest.mark.anyio
async def test_anonymous_request_is_rejected(async_client) -> None:
  response = await async_client.post(QUESTION_URL, json={"prompt": "easy", "jobInfoId": str(uuid.uuid4())})
  assert response.status_code == 401
  assert response.text == "You are not logged in"


@pytest.mark.anyio
async def test_quota_exhausted_returns_plan_limit_message(async_client, mock_db_session, limited_principal, monkeypatch) -> None:
  insert_question = AsyncMock()
  monkeypatch.setattr("app.services.generation.insert_question", insert_question)
  mock_db_session.execute.return_value.scalar_one.return_value = 5
  app.dependency_overrides[get_optional_principal] = lambda: limited_principal

  response = await async_client.post(QUESTION_URL, json={"prompt": "easy", "jobInfoId": str(uuid.uuid4())})

  assert response.status_code == 403
  assert response.text == PLAN_LIMIT_MESSAGE
  insert_question.assert_not_awaited()


@pytest.mark.anyio
async def test_foreign_job_info_is_forbidden(async_client, limited_principal, monkeypatch) -> None:
  monkeypatch.setattr("app.services.generation.get_job_info", AsyncMock(return_value=None))
  app.dependency_overrides[get_optional_principal] = lambda: limited_principal

  response = await async_client.post(QUESTION_URL, json={"prompt": "easy", "jobInfoId": str(uuid.uuid4())})

  assert response.status_code == 403
  assert response.text == "You do not have permission to do this"


@pytest.mark.anyio
async def test_question_streams_with_placeholder_header(async_client, cache, limited_principal, finalize_session, monkeypatch) -> None:
  job_info = make_job_info(limited_principal.user_id)
  placeholder = make_question(job_info.id)
  finalize_question = AsyncMock(return_value=True)
  monkeypatch.setattr("app.services.generation.get_job_info", AsyncMock(return_value=job_info))
  monkeypatch.setattr("app.services.generation.list_questions", AsyncMock(return_value=[]))
  monkeypatch.setattr("app.services.generation.insert_question", AsyncMock(return_value=placeholder))
  monkeypatch.setattr("app.services.generation.finalize_question", finalize_question)
  app.dependency_overrides[get_optional_principal] = lambda: limited_principal

  response = await async_client.post(QUESTION_URL, json={"prompt": "medium", "jobInfoId": str(job_info.id)})
  await drain_background_generations(1)

  assert response.status_code == 200
  assert response.headers["x-question-id"] == str(placeholder.id)
  assert response.text == "What is a closure?"
  finalize_question.assert_awaited_once_with(finalize_session, cache, question_id=placeholder.id, text="What is a closure?")


@pytest.mark.anyio
async def test_model_failure_before_output_returns_bad_gateway(async_client, fake_model, limited_principal, monkeypatch) -> None:
  job_info = make_job_info(limited_principal.user_id)
  fake_model.fail_after = 0
  monkeypatch.setattr("app.services.generation.get_job_info", AsyncMock(return_value=job_info))
  monkeypatch.setattr("app.services.generation.list_questions", AsyncMock(return_value=[]))
  monkeypatch.setattr("app.services.generation.insert_question", AsyncMock(return_value=make_question(job_info.id)))
  app.dependency_overrides[get_optional_principal] = lambda: limited_principal

  response = await async_client.post(QUESTION_URL, json={"prompt": "hard", "jobInfoId": str(job_info.id)})

  assert response.status_code == 502
  assert "x-question-id" not in response.headers
