"""SQLAlchemy models for users, job descriptions and generated interview content."""

from __future__ import annotations

import datetime
import uuid
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class ExperienceLevel(str, Enum):
  JUNIOR = "junior"
  MID_LEVEL = "mid-level"
  SENIOR = "senior"


class QuestionDifficulty(str, Enum):
  EASY = "easy"
  MEDIUM = "medium"
  HARD = "hard"


def _enum_values(enum_cls: type[Enum]) -> list[str]:
  # Persist the lowercase values rather than member names.
  return [member.value for member in enum_cls]


class User(Base):
  __tablename__ = "users"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  firebase_uid: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
  email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
  name: Mapped[str] = mapped_column(String(255), nullable=False)
  image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class JobInfo(Base):
  __tablename__ = "job_infos"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
  name: Mapped[str] = mapped_column(String(255), nullable=False)
  title: Mapped[str | None] = mapped_column(String(255), nullable=True)
  experience_level: Mapped[ExperienceLevel] = mapped_column(SAEnum(ExperienceLevel, name="job_info_experience_level", values_callable=_enum_values), nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Interview(Base):
  __tablename__ = "interviews"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  job_info_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("job_infos.id", ondelete="CASCADE"), index=True, nullable=False)
  duration: Mapped[str] = mapped_column(String(32), nullable=False)
  # Set once the voice session finishes; a non-null value marks the interview as completed.
  external_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
  feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Question(Base):
  __tablename__ = "questions"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  job_info_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("job_infos.id", ondelete="CASCADE"), index=True, nullable=False)
  text: Mapped[str] = mapped_column(Text, nullable=False, default="")
  difficulty: Mapped[QuestionDifficulty] = mapped_column(SAEnum(QuestionDifficulty, name="question_difficulty", values_callable=_enum_values), nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class QuestionFeedback(Base):
  __tablename__ = "question_feedback"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  question_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
  answer: Mapped[str] = mapped_column(Text, nullable=False)
  text: Mapped[str] = mapped_column(Text, nullable=False, default="")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
