from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ProviderHealth:
    ok: bool
    detail: str | None = None


@dataclass
class ChatCompletion:
    content: str
    model: str | None = None
    usage: dict = field(default_factory=dict)

    @property
    def tokens_in(self) -> int | None:
        return self.usage.get("prompt_tokens")

    @property
    def tokens_out(self) -> int | None:
        return self.usage.get("completion_tokens")
