"""Base interfaces for AI providers and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class AIModel(ABC):
  """Abstract base class for streaming text models."""

  name: str

  @abstractmethod
  def stream(self, prompt: str, *, system_instruction: str | None = None) -> AsyncIterator[str]:
    """Yield text chunks for the prompt as the model produces them."""


class Provider(ABC):
  """Abstract base class for AI providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str | None = None) -> AIModel:
    """Return the model client for the provider."""
