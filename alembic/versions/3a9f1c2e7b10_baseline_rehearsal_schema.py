"""Baseline schema for users, job infos, interviews, questions and feedback.

Revision ID: 3a9f1c2e7b10
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "3a9f1c2e7b10"
down_revision = None
branch_labels = None
depends_on = None

experience_level = postgresql.ENUM("junior", "mid-level", "senior", name="job_info_experience_level", create_type=False)
question_difficulty = postgresql.ENUM("easy", "medium", "hard", name="question_difficulty", create_type=False)


def _timestamps() -> list[sa.Column]:
  return [
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
  ]


def upgrade() -> None:
  """Upgrade schema."""
  bind = op.get_bind()
  experience_level.create(bind, checkfirst=True)
  question_difficulty.create(bind, checkfirst=True)

  op.create_table(
    "users",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("firebase_uid", sa.String(length=255), nullable=False),
    sa.Column("email", sa.String(length=255), nullable=False),
    sa.Column("name", sa.String(length=255), nullable=False),
    sa.Column("image_url", sa.String(length=1000), nullable=True),
    *_timestamps(),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("email"),
  )
  op.create_index(op.f("ix_users_firebase_uid"), "users", ["firebase_uid"], unique=True)

  op.create_table(
    "job_infos",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("name", sa.String(length=255), nullable=False),
    sa.Column("title", sa.String(length=255), nullable=True),
    sa.Column("experience_level", experience_level, nullable=False),
    sa.Column("description", sa.Text(), nullable=False),
    *_timestamps(),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_job_infos_user_id"), "job_infos", ["user_id"], unique=False)

  op.create_table(
    "interviews",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("job_info_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("duration", sa.String(length=32), nullable=False),
    sa.Column("external_session_id", sa.String(length=255), nullable=True),
    sa.Column("feedback", sa.Text(), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(["job_info_id"], ["job_infos.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_interviews_job_info_id"), "interviews", ["job_info_id"], unique=False)

  op.create_table(
    "questions",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("job_info_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("text", sa.Text(), nullable=False),
    sa.Column("difficulty", question_difficulty, nullable=False),
    *_timestamps(),
    sa.ForeignKeyConstraint(["job_info_id"], ["job_infos.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_questions_job_info_id"), "questions", ["job_info_id"], unique=False)

  op.create_table(
    "question_feedback",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("question_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("answer", sa.Text(), nullable=False),
    sa.Column("text", sa.Text(), nullable=False),
    *_timestamps(),
    sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_question_feedback_question_id"), "question_feedback", ["question_id"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index(op.f("ix_question_feedback_question_id"), table_name="question_feedback")
  op.drop_table("question_feedback")
  op.drop_index(op.f("ix_questions_job_info_id"), table_name="questions")
  op.drop_table("questions")
  op.drop_index(op.f("ix_interviews_job_info_id"), table_name="interviews")
  op.drop_table("interviews")
  op.drop_index(op.f("ix_job_infos_user_id"), table_name="job_infos")
  op.drop_table("job_infos")
  op.drop_index(op.f("ix_users_firebase_uid"), table_name="users")
  op.drop_table("users")
  bind = op.get_bind()
  question_difficulty.drop(bind, checkfirst=True)
  experience_level.drop(bind, checkfirst=True)
