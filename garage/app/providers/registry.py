from __future__ import annotations

from fastapi import HTTPException

from garage.app.config.settings import settings
from garage.app.providers.base import Provider
from garage.app.providers.openai_compat import OpenAICompatProvider


class ProviderRegistry:
    """Holds the AI provider used by garage features (one active provider)."""

    def __init__(self):
        self._providers: dict[str, Provider] = {}
        self.default_id: str | None = None

    def build_registry(self) -> None:
        # Register OpenAI-compatible only if base_url is set
        if settings.openai_compat_base_url:
            self.register(
                OpenAICompatProvider(
                    provider_id="openai",
                    display_name="OpenAI Compatible",
                    base_url=settings.openai_compat_base_url,
                    default_model=settings.openai_compat_model,
                    api_key=settings.openai_compat_api_key or None,
                    timeout_seconds=settings.ai_timeout_seconds,
                )
            )

    def register(self, provider: Provider, default: bool = True) -> None:
        self._providers[provider.provider_id] = provider
        if default or self.default_id is None:
            self.default_id = provider.provider_id

    def clear(self) -> None:
        self._providers.clear()
        self.default_id = None

    def get(self, provider_id: str | None = None) -> Provider:
        provider_id = provider_id or self.default_id
        if provider_id is None or provider_id not in self._providers:
            raise HTTPException(
                status_code=503,
                detail={"code": "AI_NOT_CONFIGURED", "message": "No AI provider is configured"},
            )
        return self._providers[provider_id]


# Global registry instance
registry = ProviderRegistry()
