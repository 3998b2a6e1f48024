from __future__ import annotations

import dataclasses
import uuid
from unittest.mock import AsyncMock

import pytest

from app.core.errors import PLAN_LIMIT_MESSAGE
from app.core.security import get_current_principal, require_verified_claims
from app.main import app
from app.schema.records import UserRecord
from app.services.users import MissingEmailClaimError
from tests.factories import NOW


@pytest.mark.anyio
async def test_plan_reports_tier_grants_and_permissions(async_client, principal) -> None:
  pro = dataclasses.replace(principal, claims={"uid": principal.firebase_uid, "features": ["unlimited_questions", "1_interview"]})
  app.dependency_overrides[get_current_principal] = lambda: pro

  response = await async_client.get("/api/user/plan")

  assert response.status_code == 200
  body = response.json()
  assert body["tier"] == "pro"
  assert body["grants"] == ["1_interview", "unlimited_questions"]
  assert body["canPerform"]["create_question"] == {"allowed": True, "basis": "unlimited_grant", "used": None, "limit": None}
  assert body["canPerform"]["create_interview"]["allowed"] is True
  assert body["canPerform"]["create_interview"]["used"] == 0
  assert body["canPerform"]["analyze_resume"]["basis"] == "no_grant"


@pytest.mark.anyio
async def test_plan_requires_login(async_client) -> None:
  response = await async_client.get("/api/user/plan")
  assert response.status_code == 401
  assert response.json()["detail"] == "You are not logged in"


@pytest.mark.anyio
async def test_sync_provisions_user_from_claims(async_client, monkeypatch) -> None:
  record = UserRecord(id=uuid.uuid4(), firebase_uid="uid-9", email="new@example.com", name="User", image_url=None, created_at=NOW, updated_at=NOW)
  provision = AsyncMock(return_value=record)
  monkeypatch.setattr("app.api.routes.users.provision_user_from_claims", provision)
  app.dependency_overrides[require_verified_claims] = lambda: {"uid": "uid-9", "email": "new@example.com"}

  response = await async_client.post("/api/user/sync")

  assert response.status_code == 200
  assert response.json()["email"] == "new@example.com"
  assert response.json()["imageUrl"] is None
  assert provision.await_args.kwargs["claims"]["uid"] == "uid-9"


@pytest.mark.anyio
async def test_sync_without_email_is_a_client_error(async_client, monkeypatch) -> None:
  monkeypatch.setattr("app.api.routes.users.provision_user_from_claims", AsyncMock(side_effect=MissingEmailClaimError("No primary email found")))
  app.dependency_overrides[require_verified_claims] = lambda: {"uid": "uid-9"}

  response = await async_client.post("/api/user/sync")

  assert response.status_code == 400
  assert response.json()["detail"] == "No primary email found"


@pytest.mark.anyio
async def test_interview_creation_is_quota_gated(async_client, principal, monkeypatch) -> None:
  insert_interview = AsyncMock()
  monkeypatch.setattr("app.api.routes.job_infos.insert_interview", insert_interview)
  app.dependency_overrides[get_current_principal] = lambda: principal

  response = await async_client.post(f"/api/job-infos/{uuid.uuid4()}/interviews")

  assert response.status_code == 403
  assert response.json()["detail"] == PLAN_LIMIT_MESSAGE
  insert_interview.assert_not_awaited()


@pytest.mark.anyio
async def test_unknown_job_info_is_not_found(async_client, principal) -> None:
  app.dependency_overrides[get_current_principal] = lambda: principal

  response = await async_client.get(f"/api/job-infos/{uuid.uuid4()}")

  assert response.status_code == 404
  assert "requestId" in response.json()


@pytest.mark.anyio
async def test_job_info_create_validates_experience_level(async_client, principal) -> None:
  app.dependency_overrides[get_current_principal] = lambda: principal

  response = await async_client.post("/api/job-infos", json={"name": "Role", "experienceLevel": "principal", "description": "Build things."})

  assert response.status_code == 422
  assert all("input" not in error for error in response.json()["detail"])


@pytest.mark.anyio
async def test_plan_counts_questions_for_the_requested_job_info(async_client, mock_db_session, principal) -> None:
  limited = dataclasses.replace(principal, claims={"uid": principal.firebase_uid, "features": ["5_questions"]})
  mock_db_session.execute.return_value.scalar_one.return_value = 5
  app.dependency_overrides[get_current_principal] = lambda: limited

  unscoped = await async_client.get("/api/user/plan")
  scoped = await async_client.get("/api/user/plan", params={"jobInfoId": str(uuid.uuid4())})

  assert unscoped.json()["canPerform"]["create_question"] == {"allowed": True, "basis": "limited_grant", "used": None, "limit": 5}
  assert scoped.json()["canPerform"]["create_question"] == {"allowed": False, "basis": "limited_grant", "used": 5, "limit": 5}
