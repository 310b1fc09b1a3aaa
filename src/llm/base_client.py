# src/llm/base_client.py — v2
"""Abstract LLM client interface shared by every provider adapter."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from dealscope.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Text completion.

        When ``response_format`` is given the adapter asks the provider for
        JSON matching the model's schema. The returned content is still raw
        text and must go through the structured parsing boundary.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, openai)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier used for pricing lookups."""
