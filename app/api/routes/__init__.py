from . import ai, interviews, job_infos, questions, users

__all__ = ["ai", "interviews", "job_infos", "questions", "users"]
