import json
import logging
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.config import get_settings

logger = logging.getLogger("app.core.middleware")

# Candidate answers and job descriptions are user-authored free text.
_SENSITIVE_KEYS = {"password", "token", "key", "authorization", "cookie", "secret", "email", "name", "prompt", "answer", "description"}


def _redact_sensitive_keys(data: Any) -> Any:
  """Redact sensitive keys from a dictionary or list recursively."""
  if isinstance(data, dict):
    return {k: ("***" if k.lower() in _SENSITIVE_KEYS else _redact_sensitive_keys(v)) for k, v in data.items()}
  if isinstance(data, list):
    return [_redact_sensitive_keys(item) for item in data]
  return data


def _build_request_url(scope: Scope) -> str:
  """Build a readable URL path for logging without relying on Request bodies."""
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"

  return path


def _is_json(content_type: str | None) -> bool:
  if not content_type:
    return False
  normalized = content_type.lower()
  return "application/json" in normalized or normalized.endswith("+json")


def _format_body_for_log(body: bytes, content_type: str | None, max_bytes: int) -> str:
  """Format a request/response body for logging with redaction."""
  if not body:
    return "<empty>"

  # Generated text is streamed as text/plain and never written to logs.
  if not _is_json(content_type):
    return f"<{content_type or 'unknown'} body {len(body)} bytes>"

  if len(body) > max_bytes:
    return f"<json body {len(body)} bytes, truncated>"

  text = body.decode("utf-8", errors="replace")
  try:
    parsed = json.loads(text)
  except json.JSONDecodeError:
    return text

  return json.dumps(_redact_sensitive_keys(parsed), ensure_ascii=True)


class RequestLoggingMiddleware:
  """Log request/response metadata, including how long streamed responses stay open."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    settings = get_settings()
    log_http_bodies = settings.log_http_bodies
    log_http_body_bytes = settings.log_http_body_bytes

    # Store the request id for downstream handlers and exception logging.
    request_id = str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.time()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, url)
    headers = {key.decode("latin-1").lower(): value.decode("latin-1") for key, value in scope.get("headers", [])}
    content_type = headers.get("content-type")

    receive_wrapper = receive
    if log_http_bodies:
      # Drain the body so it can be logged, then replay it for the handler.
      body_chunks: list[bytes] = []
      more_body = True
      while more_body:
        message = await receive()
        if message.get("type") != "http.request":
          break
        body_chunks.append(message.get("body", b""))
        more_body = message.get("more_body", False)
      request_body = b"".join(body_chunks)
      body_sent = False

      async def receive_wrapper() -> Message:
        nonlocal body_sent
        if body_sent:
          return {"type": "http.request", "body": b"", "more_body": False}
        body_sent = True
        return {"type": "http.request", "body": request_body, "more_body": False}

      logger.info("Request body request_id=%s body=%s", request_id, _format_body_for_log(request_body, content_type, log_http_body_bytes))

    status_code: int | None = None
    response_content_type: str | None = None
    response_chunks = 0
    response_bytes = 0
    first_byte_ms: float | None = None
    json_body: list[bytes] = []

    async def send_wrapper(message: Message) -> None:
      nonlocal status_code, response_content_type, response_chunks, response_bytes, first_byte_ms
      if message["type"] == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id
        response_content_type = response_headers.get("content-type")
      elif message["type"] == "http.response.body":
        chunk = message.get("body", b"")
        if chunk:
          if first_byte_ms is None:
            first_byte_ms = (time.time() - start_time) * 1000
          response_chunks += 1
          response_bytes += len(chunk)
          if log_http_bodies and _is_json(response_content_type):
            json_body.append(chunk)

      await send(message)

    await self.app(scope, receive_wrapper, send_wrapper)

    process_time = (time.time() - start_time) * 1000
    if response_chunks > 1:
      logger.info("Response request_id=%s status=%s streamed chunks=%s bytes=%s first_byte=%.2fms (took %.2fms)", request_id, status_code or 0, response_chunks, response_bytes, first_byte_ms or 0.0, process_time)
    else:
      logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, process_time)
    if log_http_bodies and json_body:
      logger.info("Response body request_id=%s body=%s", request_id, _format_body_for_log(b"".join(json_body), response_content_type, log_http_body_bytes))


class SecurityHeadersMiddleware:
  """Strip identifying headers and keep generated text out of shared caches."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: Message) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in ("x-powered-by", "server"):
          if name in headers:
            del headers[name]
        headers.setdefault("x-content-type-options", "nosniff")
        headers.setdefault("cache-control", "no-store")

      await send(message)

    await self.app(scope, receive, send_wrapper)
