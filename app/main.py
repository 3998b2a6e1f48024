from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import ai, interviews, job_infos, questions, users
from app.config import get_settings
from app.core.errors import RehearsalError
from app.core.exceptions import global_exception_handler, http_exception_handler, rehearsal_exception_handler, request_validation_exception_handler
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

settings = get_settings()

app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url="/openapi.json" if settings.debug else None)

# The client reads the placeholder ids from these headers while the body streams.
app.add_middleware(
  CORSMiddleware,
  allow_origins=list(settings.allowed_origins),
  allow_credentials=True,
  allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
  allow_headers=["content-type", "authorization"],
  expose_headers=["content-length", "x-question-id", "x-feedback-id", "x-request-id"],
)

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RehearsalError, rehearsal_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(users.router, prefix="/api/user", tags=["users"])
app.include_router(job_infos.router, prefix="/api/job-infos", tags=["job-infos"])
app.include_router(interviews.router, prefix="/api/interviews", tags=["interviews"])
app.include_router(questions.router, prefix="/api/questions", tags=["questions"])
app.include_router(ai.router, prefix="/api/ai/questions", tags=["ai"])
