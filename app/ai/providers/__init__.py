"""Provider implementations."""

from app.ai.providers.base import AIModel, Provider
from app.ai.providers.gemini import GeminiModel, GeminiProvider, get_model

__all__ = ["AIModel", "Provider", "GeminiModel", "GeminiProvider", "get_model"]
