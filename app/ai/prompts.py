"""Prompt builders for interview question and answer feedback generation."""

from __future__ import annotations

from collections.abc import Sequence

from app.schema.records import JobInfoRecord, QuestionRecord
from app.schema.sql import QuestionDifficulty

QUESTION_SYSTEM_INSTRUCTION = """You are an AI assistant that creates technical interview questions tailored to a specific job role.
Your task is to generate one realistic and relevant technical question that matches the skill requirements of the job and aligns with the difficulty level provided by the user.

Guidelines:
- The question must reflect the skills and technologies mentioned in the job description.
- Match the requested difficulty and the candidate's experience level.
- Do not repeat or closely paraphrase any previous question.
- Prefer practical, real-world scenarios over trivia.
- Return only the question, formatted as markdown, with no answer, hints or preamble."""

FEEDBACK_SYSTEM_INSTRUCTION = """You are an expert technical interviewer reviewing a candidate's answer to an interview question.
Evaluate the answer against the question and the job it was asked for.

Guidelines:
- Start with a rating from 1 to 10 in the form "## Feedback (Rating: N/10)".
- Point out what the candidate did well and what is missing or incorrect, quoting the answer where useful.
- Finish with a concise model answer under the heading "## Correct Answer".
- Address the candidate directly and keep the tone constructive. Format the response as markdown."""


def _format_previous_questions(questions: Sequence[QuestionRecord]) -> str:
  # Placeholders still streaming have no text yet.
  asked = [question for question in questions if not question.is_placeholder]
  if not asked:
    return "None"
  return "\n".join(f"{index}. ({question.difficulty.value}) {question.text}" for index, question in enumerate(asked, start=1))


def _format_job(job_info: JobInfoRecord) -> str:
  lines = [f"Job title: {job_info.title or job_info.name}", f"Experience level: {job_info.experience_level.value}", "Job description:", job_info.description]
  return "\n".join(lines)


def build_question_prompt(*, job_info: JobInfoRecord, previous_questions: Sequence[QuestionRecord], difficulty: QuestionDifficulty) -> str:
  """Render the user prompt for a new question; previous questions stay in the order they were asked."""
  return "\n\n".join([_format_job(job_info), f"Previous questions:\n{_format_previous_questions(previous_questions)}", f"Requested difficulty: {difficulty.value}"])


def build_feedback_prompt(*, job_info: JobInfoRecord, question: QuestionRecord, answer: str) -> str:
  """Render the user prompt asking for feedback on an answer."""
  return "\n\n".join([_format_job(job_info), f"Question ({question.difficulty.value}):\n{question.text}", f"Candidate answer:\n{answer}"])
