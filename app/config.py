"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import quote

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the rehearsal service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  log_http_bodies: bool
  log_http_body_bytes: int
  pg_dsn: str | None
  pg_connect_timeout: int
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  gemini_api_key: str | None
  gemini_model: str
  cache_enabled: bool
  cache_ttl_seconds: int
  cache_max_entries: int
  generation_drain_seconds: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("REHEARSAL_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("REHEARSAL_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("REHEARSAL_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def resolve_pg_dsn() -> str | None:
  """Return the configured DSN, composing it from REHEARSAL_DB_* parts when no DSN is set."""
  dsn = _optional_str(os.getenv("REHEARSAL_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))
  if dsn:
    return dsn

  parts = {key: _optional_str(os.getenv(f"REHEARSAL_DB_{key}")) for key in ("HOST", "PORT", "USER", "PASSWORD", "NAME")}
  if all(parts.values()):
    # Quote credentials so passwords with reserved characters survive URL parsing.
    user = quote(str(parts["USER"]), safe="")
    password = quote(str(parts["PASSWORD"]), safe="")
    return f"postgresql://{user}:{password}@{parts['HOST']}:{parts['PORT']}/{parts['NAME']}"

  if any(parts.values()):
    missing = sorted(f"REHEARSAL_DB_{key}" for key, value in parts.items() if not value)
    raise ValueError(f"REHEARSAL_PG_DSN is not set and REHEARSAL_DB_* variables are incomplete (missing: {', '.join(missing)}).")

  return None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("REHEARSAL_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("REHEARSAL_DEBUG"))

  log_max_bytes = _positive_int("REHEARSAL_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("REHEARSAL_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("REHEARSAL_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("REHEARSAL_LOG_HTTP_4XX"))
  # Allow opt-in logging of HTTP request/response bodies with a size cap.
  log_http_bodies = _parse_bool(os.getenv("REHEARSAL_LOG_HTTP_BODIES"))
  log_http_body_bytes = _positive_int("REHEARSAL_LOG_HTTP_BODY_BYTES", "2048")

  cache_ttl_seconds = _positive_int("REHEARSAL_CACHE_TTL_SECONDS", "300")
  cache_max_entries = _positive_int("REHEARSAL_CACHE_MAX_ENTRIES", "2048")
  generation_drain_seconds = int(os.getenv("REHEARSAL_GENERATION_DRAIN_SECONDS", "30"))
  if generation_drain_seconds < 0:
    raise ValueError("REHEARSAL_GENERATION_DRAIN_SECONDS must be zero or a positive integer.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("REHEARSAL_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    log_http_bodies=log_http_bodies,
    log_http_body_bytes=log_http_body_bytes,
    pg_dsn=resolve_pg_dsn(),
    pg_connect_timeout=_positive_int("REHEARSAL_PG_CONNECT_TIMEOUT", "5"),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    gemini_model=(os.getenv("REHEARSAL_GEMINI_MODEL") or "gemini-2.5-flash").strip(),
    cache_enabled=_parse_bool(os.getenv("REHEARSAL_CACHE_ENABLED"), default=True),
    cache_ttl_seconds=cache_ttl_seconds,
    cache_max_entries=cache_max_entries,
    generation_drain_seconds=generation_drain_seconds,
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("REHEARSAL_DEBUG"))
  pg_connect_timeout = _positive_int("REHEARSAL_PG_CONNECT_TIMEOUT", "5")
  return DatabaseSettings(debug=debug, pg_dsn=resolve_pg_dsn(), pg_connect_timeout=pg_connect_timeout)
