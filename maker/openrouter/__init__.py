"""OpenRouter client module."""

from maker.openrouter.client import LLMResponse, ModelClient, OpenRouterClient, OpenRouterError

__all__ = ["LLMResponse", "ModelClient", "OpenRouterClient", "OpenRouterError"]
