"""Resolve a provider name from the config into a live provider instance."""

from __future__ import annotations

import importlib
import logging

from node_wallet_ai.config import LLMConfig, LLMProviderConfig, is_unresolved
from node_wallet_ai.llm.base import BaseLLMProvider

logger = logging.getLogger("node_wallet_ai.llm.router")

# Deferred so that the SDK of an unused provider is never imported.
_PROVIDER_FACTORIES: dict[str, str] = {
    "anthropic": "node_wallet_ai.llm.anthropic.AnthropicProvider",
    "openai": "node_wallet_ai.llm.openai.OpenAIProvider",
}

_DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-sonnet-4-5",
    "openai": "gpt-4o",
}


def _import_provider_class(dotted_path: str) -> type[BaseLLMProvider]:
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    if not (isinstance(cls, type) and issubclass(cls, BaseLLMProvider)):
        raise TypeError(f"Expected a BaseLLMProvider subclass at '{dotted_path}', got {cls!r}")
    return cls


class LLMRouter:
    """Builds and caches one provider instance per ``(name, model)`` pair.

    Parameters
    ----------
    llm_config:
        The ``llm`` section of the app configuration.
    """

    def __init__(self, llm_config: LLMConfig):
        self._config = llm_config
        self._providers: dict[str, BaseLLMProvider] = {}

    @property
    def supported(self) -> list[str]:
        return sorted(_PROVIDER_FACTORIES)

    def _provider_config(self, name: str) -> LLMProviderConfig:
        block = getattr(self._config, name, None)
        if block is None:
            raise ValueError(
                f"Provider '{name}' is not configured. "
                f"Add an 'llm.{name}' section to .node-wallet-ai/config.yaml."
            )
        return block

    def get_provider(
        self,
        provider_name: str | None = None,
        model_override: str | None = None,
    ) -> BaseLLMProvider:
        """Get or create a provider.

        Raises
        ------
        ValueError
            If the provider is unknown, not configured, or has no API key.
        """
        name = provider_name or self._config.default_provider
        if name not in _PROVIDER_FACTORIES:
            raise ValueError(f"Unknown provider '{name}'. Supported providers: {self.supported}")

        cache_key = f"{name}:{model_override}" if model_override else name
        if cache_key in self._providers:
            return self._providers[cache_key]

        provider_config = self._provider_config(name)
        if not provider_config.api_key or is_unresolved(provider_config.api_key):
            raise ValueError(
                f"API key for provider '{name}' is not set. "
                f"Set it in the config file or via an environment variable "
                f"(e.g. ${{{name.upper()}_API_KEY}})."
            )

        model = model_override or provider_config.model or _DEFAULT_MODELS[name]
        provider_cls = _import_provider_class(_PROVIDER_FACTORIES[name])
        provider = provider_cls(
            api_key=provider_config.api_key,
            model=model,
            base_url=provider_config.base_url,
            max_tokens=provider_config.max_tokens,
        )
        self._providers[cache_key] = provider
        logger.info(f"Created {name} provider (model={model}, base_url={provider_config.base_url or 'default'})")
        return provider

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()
