from __future__ import annotations

import httpx
from fastapi import HTTPException

from garage.app.providers.base import Provider
from garage.app.providers.types import ChatCompletion, ProviderHealth


class OpenAICompatProvider(Provider):
    def __init__(
        self,
        provider_id: str,
        display_name: str,
        base_url: str,
        default_model: str,
        api_key: str | None = None,
        timeout_seconds: float = 30,
        client: httpx.AsyncClient | None = None,
    ):
        self.provider_id = provider_id
        self.display_name = display_name
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=self.timeout_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _map_error(self, exc: Exception) -> HTTPException:
        if isinstance(exc, httpx.ConnectError):
            return HTTPException(
                status_code=503,
                detail={"code": "PROVIDER_UNREACHABLE", "message": "Provider is unreachable"},
            )
        if isinstance(exc, httpx.TimeoutException):
            return HTTPException(
                status_code=504,
                detail={"code": "PROVIDER_TIMEOUT", "message": "Provider request timed out"},
            )
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            if status == 429:
                return HTTPException(
                    status_code=429,
                    detail={"code": "RATE_LIMITED", "message": "Provider rate limit exceeded"},
                )
            if status in (401, 403):
                return HTTPException(
                    status_code=502,
                    detail={"code": "PROVIDER_AUTH_FAILED", "message": "Provider rejected the credentials"},
                )
        return HTTPException(
            status_code=502,
            detail={"code": "PROVIDER_ERROR", "message": "Provider communication failed"},
        )

    async def chat_once(self, messages: list[dict], model: str | None = None) -> ChatCompletion:
        payload = {"model": model or self.default_model, "messages": messages, "stream": False}
        try:
            response = await self._client.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise self._map_error(exc) from exc

        choices = data.get("choices") or []
        if not choices:
            raise HTTPException(
                status_code=502,
                detail={"code": "PROVIDER_ERROR", "message": "Provider returned no choices"},
            )
        content = (choices[0].get("message") or {}).get("content") or ""
        return ChatCompletion(content=content, model=data.get("model"), usage=data.get("usage") or {})

    async def healthcheck(self) -> ProviderHealth:
        try:
            response = await self._client.get(f"{self.base_url}/models", headers=self._headers())
            response.raise_for_status()
            return ProviderHealth(ok=True)
        except httpx.HTTPError as exc:
            return ProviderHealth(ok=False, detail=self._map_error(exc).detail["message"])
