from __future__ import annotations

from typing import Protocol

from garage.app.providers.types import ChatCompletion, ProviderHealth


class Provider(Protocol):
    provider_id: str
    display_name: str

    async def chat_once(self, messages: list[dict], model: str | None = None) -> ChatCompletion:
        ...

    async def healthcheck(self) -> ProviderHealth:
        ...
