"""Domain errors rendered as plain-text responses by the API layer."""

from __future__ import annotations

from fastapi import status

PLAN_LIMIT_MESSAGE = "You have reached the limit of your current plan. Upgrade to keep practicing."


class RehearsalError(Exception):
  """Base error carrying the HTTP status and the message shown to the caller."""

  status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
  public_message: str = "Something went wrong"

  def __init__(self, message: str | None = None, *, headers: dict[str, str] | None = None) -> None:
    self.message = message or self.public_message
    self.headers = dict(headers or {})
    super().__init__(self.message)


class RequestValidationFailed(RehearsalError):
  status_code = status.HTTP_400_BAD_REQUEST
  public_message = "Invalid request"


class AuthenticationRequiredError(RehearsalError):
  status_code = status.HTTP_401_UNAUTHORIZED
  public_message = "You are not logged in"


class QuotaExceededError(RehearsalError):
  status_code = status.HTTP_403_FORBIDDEN
  public_message = PLAN_LIMIT_MESSAGE


class PermissionDeniedError(RehearsalError):
  status_code = status.HTTP_403_FORBIDDEN
  public_message = "You do not have permission to do this"


class GenerationFailedError(RehearsalError):
  status_code = status.HTTP_502_BAD_GATEWAY
  public_message = "Generation failed, please try again"
