from __future__ import annotations

import pytest

from app.config import _parse_origins, get_settings, resolve_pg_dsn

_DB_VARS = ("REHEARSAL_PG_DSN", "DATABASE_URL", "REHEARSAL_DB_HOST", "REHEARSAL_DB_PORT", "REHEARSAL_DB_USER", "REHEARSAL_DB_PASSWORD", "REHEARSAL_DB_NAME")


@pytest.fixture
def clean_db_env(monkeypatch):
  for name in _DB_VARS:
    monkeypatch.delenv(name, raising=False)
  return monkeypatch


def test_explicit_dsn_wins(clean_db_env) -> None:
  clean_db_env.setenv("REHEARSAL_PG_DSN", "postgresql://app@db/rehearsal")
  clean_db_env.setenv("REHEARSAL_DB_HOST", "ignored")
  assert resolve_pg_dsn() == "postgresql://app@db/rehearsal"


def test_dsn_composed_from_parts_quotes_credentials(clean_db_env) -> None:
  for key, value in {"HOST": "db", "PORT": "5432", "USER": "app", "PASSWORD": "p@ss/word", "NAME": "rehearsal"}.items():
    clean_db_env.setenv(f"REHEARSAL_DB_{key}", value)
  assert resolve_pg_dsn() == "postgresql://app:p%40ss%2Fword@db:5432/rehearsal"


def test_partial_parts_are_rejected(clean_db_env) -> None:
  clean_db_env.setenv("REHEARSAL_DB_HOST", "db")
  with pytest.raises(ValueError, match="REHEARSAL_DB_PASSWORD"):
    resolve_pg_dsn()


def test_no_database_configured(clean_db_env) -> None:
  assert resolve_pg_dsn() is None


def test_origins_must_be_explicit() -> None:
  assert _parse_origins("https://a.example, https://b.example") == ("https://a.example", "https://b.example")
  with pytest.raises(ValueError):
    _parse_origins(None)
  with pytest.raises(ValueError):
    _parse_origins("https://a.example,*")


def test_settings_defaults(monkeypatch) -> None:
  monkeypatch.delenv("REHEARSAL_GEMINI_MODEL", raising=False)
  monkeypatch.setenv("REHEARSAL_CACHE_ENABLED", "false")
  get_settings.cache_clear()
  try:
    settings = get_settings()
    assert settings.gemini_model == "gemini-2.5-flash"
    assert settings.cache_enabled is False
    assert settings.generation_drain_seconds == 30
  finally:
    get_settings.cache_clear()
