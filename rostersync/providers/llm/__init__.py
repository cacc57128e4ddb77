"""LLM provider implementations."""

from rostersync.providers.llm.anthropic_provider import AnthropicLLMProvider

__all__ = ["AnthropicLLMProvider"]
