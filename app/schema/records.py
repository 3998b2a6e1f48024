"""Immutable snapshots of database rows, safe to share through the read cache."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass

from app.schema.sql import ExperienceLevel, Interview, JobInfo, Question, QuestionDifficulty, QuestionFeedback, User


@dataclass(frozen=True)
class UserRecord:
  id: uuid.UUID
  firebase_uid: str
  email: str
  name: str
  image_url: str | None
  created_at: datetime.datetime
  updated_at: datetime.datetime

  @classmethod
  def from_row(cls, row: User) -> UserRecord:
    return cls(id=row.id, firebase_uid=row.firebase_uid, email=row.email, name=row.name, image_url=row.image_url, created_at=row.created_at, updated_at=row.updated_at)


@dataclass(frozen=True)
class JobInfoRecord:
  id: uuid.UUID
  user_id: uuid.UUID
  name: str
  title: str | None
  experience_level: ExperienceLevel
  description: str
  created_at: datetime.datetime
  updated_at: datetime.datetime

  @classmethod
  def from_row(cls, row: JobInfo) -> JobInfoRecord:
    return cls(
      id=row.id,
      user_id=row.user_id,
      name=row.name,
      title=row.title,
      experience_level=ExperienceLevel(row.experience_level),
      description=row.description,
      created_at=row.created_at,
      updated_at=row.updated_at,
    )


@dataclass(frozen=True)
class InterviewRecord:
  id: uuid.UUID
  job_info_id: uuid.UUID
  duration: str
  external_session_id: str | None
  feedback: str | None
  created_at: datetime.datetime
  updated_at: datetime.datetime

  @property
  def completed(self) -> bool:
    return self.external_session_id is not None

  @classmethod
  def from_row(cls, row: Interview) -> InterviewRecord:
    return cls(id=row.id, job_info_id=row.job_info_id, duration=row.duration, external_session_id=row.external_session_id, feedback=row.feedback, created_at=row.created_at, updated_at=row.updated_at)


@dataclass(frozen=True)
class QuestionRecord:
  id: uuid.UUID
  job_info_id: uuid.UUID
  text: str
  difficulty: QuestionDifficulty
  created_at: datetime.datetime
  updated_at: datetime.datetime

  @property
  def is_placeholder(self) -> bool:
    return self.text == ""

  @classmethod
  def from_row(cls, row: Question) -> QuestionRecord:
    return cls(id=row.id, job_info_id=row.job_info_id, text=row.text, difficulty=QuestionDifficulty(row.difficulty), created_at=row.created_at, updated_at=row.updated_at)


@dataclass(frozen=True)
class FeedbackRecord:
  id: uuid.UUID
  question_id: uuid.UUID
  answer: str
  text: str
  created_at: datetime.datetime
  updated_at: datetime.datetime

  @property
  def is_placeholder(self) -> bool:
    return self.text == ""

  @classmethod
  def from_row(cls, row: QuestionFeedback) -> FeedbackRecord:
    return cls(id=row.id, question_id=row.question_id, answer=row.answer, text=row.text, created_at=row.created_at, updated_at=row.updated_at)
