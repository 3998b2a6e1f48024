from __future__ import annotations

import datetime
import uuid

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from app.schema.records import FeedbackRecord, InterviewRecord, JobInfoRecord, QuestionRecord, UserRecord
from app.schema.sql import ExperienceLevel, QuestionDifficulty
from app.services.entitlements import UserPlan
from app.services.quotas import QuotaBasis, QuotaDecision


class GenerateQuestionRequest(BaseModel):
  """Request payload for streaming a new interview question."""

  prompt: QuestionDifficulty = Field(description="Requested difficulty.", examples=["medium"])
  job_info_id: uuid.UUID = Field(alias="jobInfoId", description="Job info the question is generated for.")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class GenerateFeedbackRequest(BaseModel):
  """Request payload for streaming feedback on an answer."""

  prompt: StrictStr = Field(min_length=1, max_length=20000, description="The candidate's answer.")
  question_id: uuid.UUID = Field(alias="questionId", description="Question being answered.")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class JobInfoCreateRequest(BaseModel):
  name: StrictStr = Field(min_length=1, max_length=255)
  title: StrictStr | None = Field(default=None, min_length=1, max_length=255)
  experience_level: ExperienceLevel = Field(alias="experienceLevel")
  description: StrictStr = Field(min_length=1, max_length=20000)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class JobInfoUpdateRequest(BaseModel):
  """Partial update; omitted fields keep their value."""

  name: StrictStr | None = Field(default=None, min_length=1, max_length=255)
  title: StrictStr | None = Field(default=None, min_length=1, max_length=255)
  experience_level: ExperienceLevel | None = Field(default=None, alias="experienceLevel")
  description: StrictStr | None = Field(default=None, min_length=1, max_length=20000)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class InterviewUpdateRequest(BaseModel):
  """Voice session outcome reported by the client."""

  external_session_id: StrictStr | None = Field(default=None, alias="externalSessionId", min_length=1, max_length=255)
  duration: StrictStr | None = Field(default=None, min_length=1, max_length=32, examples=["00:12:31"])
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class _CamelResponse(BaseModel):
  model_config = ConfigDict(populate_by_name=True)


class UserResponse(_CamelResponse):
  id: uuid.UUID
  email: str
  name: str
  image_url: str | None = Field(default=None, serialization_alias="imageUrl")
  created_at: datetime.datetime = Field(serialization_alias="createdAt")

  @classmethod
  def from_record(cls, record: UserRecord) -> UserResponse:
    return cls(id=record.id, email=record.email, name=record.name, image_url=record.image_url, created_at=record.created_at)


class JobInfoResponse(_CamelResponse):
  id: uuid.UUID
  name: str
  title: str | None
  experience_level: ExperienceLevel = Field(serialization_alias="experienceLevel")
  description: str
  created_at: datetime.datetime = Field(serialization_alias="createdAt")
  updated_at: datetime.datetime = Field(serialization_alias="updatedAt")

  @classmethod
  def from_record(cls, record: JobInfoRecord) -> JobInfoResponse:
    return cls(id=record.id, name=record.name, title=record.title, experience_level=record.experience_level, description=record.description, created_at=record.created_at, updated_at=record.updated_at)


class InterviewResponse(_CamelResponse):
  id: uuid.UUID
  job_info_id: uuid.UUID = Field(serialization_alias="jobInfoId")
  duration: str
  external_session_id: str | None = Field(serialization_alias="externalSessionId")
  feedback: str | None
  completed: bool
  created_at: datetime.datetime = Field(serialization_alias="createdAt")
  updated_at: datetime.datetime = Field(serialization_alias="updatedAt")

  @classmethod
  def from_record(cls, record: InterviewRecord) -> InterviewResponse:
    return cls(
      id=record.id,
      job_info_id=record.job_info_id,
      duration=record.duration,
      external_session_id=record.external_session_id,
      feedback=record.feedback,
      completed=record.completed,
      created_at=record.created_at,
      updated_at=record.updated_at,
    )


class QuestionResponse(_CamelResponse):
  id: uuid.UUID
  job_info_id: uuid.UUID = Field(serialization_alias="jobInfoId")
  text: str
  difficulty: QuestionDifficulty
  created_at: datetime.datetime = Field(serialization_alias="createdAt")

  @classmethod
  def from_record(cls, record: QuestionRecord) -> QuestionResponse:
    return cls(id=record.id, job_info_id=record.job_info_id, text=record.text, difficulty=record.difficulty, created_at=record.created_at)


class FeedbackResponse(_CamelResponse):
  id: uuid.UUID
  question_id: uuid.UUID = Field(serialization_alias="questionId")
  answer: str
  text: str
  created_at: datetime.datetime = Field(serialization_alias="createdAt")

  @classmethod
  def from_record(cls, record: FeedbackRecord) -> FeedbackResponse:
    return cls(id=record.id, question_id=record.question_id, answer=record.answer, text=record.text, created_at=record.created_at)


class QuotaDecisionResponse(_CamelResponse):
  allowed: bool
  basis: QuotaBasis
  used: int | None = None
  limit: int | None = None

  @classmethod
  def from_decision(cls, decision: QuotaDecision) -> QuotaDecisionResponse:
    return cls(allowed=decision.allowed, basis=decision.basis, used=decision.used, limit=decision.limit)


class PlanResponse(_CamelResponse):
  """Resolved tier, held grants and per-action permission for the current user."""

  tier: UserPlan
  grants: list[str]
  can_perform: dict[str, QuotaDecisionResponse] = Field(serialization_alias="canPerform")
