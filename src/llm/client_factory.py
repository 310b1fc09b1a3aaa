# src/llm/client_factory.py — v3
"""Factory: instantiate LLM client from provider name."""

from __future__ import annotations

import importlib
import logging

from dealscope.config.settings import Settings
from dealscope.llm.base_client import BaseLLMClient
from dealscope.pipeline.errors import FatalConfigError

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "anthropic": "dealscope.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "openai": "dealscope.llm.adapters.openai_adapter.OpenAIAdapter",
}


class UnsupportedProviderError(FatalConfigError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (anthropic, openai).
        model: Model name (e.g. claude-sonnet-4-20250514).
        settings: Application settings (for API keys).
        **kwargs: Additional provider-specific arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
        FatalConfigError: If settings are given but hold no key for the provider.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model

    if settings is not None:
        api_key = {
            "anthropic": settings.anthropic_api_key,
            "openai": settings.openai_api_key,
        }.get(provider, "")
        if not api_key and "api_key" not in init_kwargs:
            raise FatalConfigError(f"No API key configured for provider {provider!r}")
        init_kwargs.setdefault("api_key", api_key)
        if provider == "anthropic":
            init_kwargs.setdefault("max_tokens_default", settings.llm_max_tokens_per_agent)

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
