import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from app.core.database import dispose_engine
from app.core.firebase import initialize_firebase
from app.core.logging import _initialize_logging
from app.services.generation import drain_background_generations


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and Firebase on startup; drain generations and the pool on shutdown."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified. database=%s", _redact_dsn(settings.pg_dsn))
  except Exception:  # noqa: BLE001
    # Log initialization failures but allow the app to continue starting.
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  # Initialize Firebase before handling requests.
  initialize_firebase()

  yield

  # Generations finalize through their own sessions; let them land before the pool closes.
  cut = await drain_background_generations(settings.generation_drain_seconds)
  if cut:
    logger.warning("Shutdown interrupted %d generations", cut)
  await dispose_engine()
  logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
