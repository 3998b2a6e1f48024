"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import logging
import warnings
from collections.abc import AsyncIterator
from functools import lru_cache
from typing import Final

from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import types

from app.ai.providers.base import AIModel, Provider
from app.config import get_settings

logger = logging.getLogger(__name__)


class GeminiModel(AIModel):
  """Gemini model client streaming plain text."""

  def __init__(self, name: str, api_key: str | None = None) -> None:
    self.name: str = name
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")

    self._client = genai.Client(api_key=api_key)

  async def stream(self, prompt: str, *, system_instruction: str | None = None) -> AsyncIterator[str]:
    """Stream text chunks from Gemini."""
    config = types.GenerateContentConfig(system_instruction=system_instruction) if system_instruction else None
    # Use the async client to avoid blocking the asyncio event loop.
    response = await self._client.aio.models.generate_content_stream(model=self.name, contents=prompt, config=config)
    chunks = 0
    async for chunk in response:
      # Safety or metadata-only chunks carry no text.
      if not chunk.text:
        continue
      chunks += 1
      yield chunk.text

    logger.debug("Gemini stream finished model=%s chunks=%s", self.name, chunks)


class GeminiProvider(Provider):
  """Gemini provider."""

  _DEFAULT_MODEL: Final[str] = "gemini-2.5-flash"
  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash-lite", "gemini-2.0-flash", "gemini-2.0-flash-lite"}

  def __init__(self, api_key: str | None = None) -> None:
    self.name: str = "gemini"
    self._api_key = api_key

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a Gemini model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model_name}'.")

    return GeminiModel(model_name, api_key=self._api_key)


@lru_cache(maxsize=1)
def get_model() -> AIModel:
  """Dependency returning the configured generation model, built once per process."""
  settings = get_settings()
  return GeminiProvider(api_key=settings.gemini_api_key).get_model(settings.gemini_model)
