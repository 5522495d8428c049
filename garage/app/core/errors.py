"""Shared error helpers."""
from dataclasses import dataclass, field


@dataclass(eq=False)
class APIError(Exception):
    code: str
    message: str
    detail: dict | None = None
    status_code: int = 400

    def to_content(self) -> dict:
        content = {"code": self.code, "message": self.message}
        if self.detail:
            content.update(self.detail)
        return content


@dataclass(eq=False)
class RateLimited(APIError):
    """Too many AI requests for a garage in the current window; retry later."""

    code: str = "RATE_LIMITED"
    message: str = "Too many AI requests. Please retry in a minute."
    status_code: int = 429


@dataclass(eq=False)
class QuotaExceeded(APIError):
    """Monthly AI quota reached; recoverable next period or after a ceiling change."""

    code: str = "QUOTA_EXCEEDED"
    message: str = "Monthly AI quota reached. Contact support or upgrade your plan."
    status_code: int = 429
    detail: dict | None = field(default_factory=lambda: {"quota_exceeded": True})


@dataclass(eq=False)
class QuotaUnavailable(APIError):
    code: str = "QUOTA_UNAVAILABLE"
    message: str = "AI quota could not be verified. Please retry later."
    status_code: int = 503


@dataclass(eq=False)
class FeatureDisabled(APIError):
    code: str = "FEATURE_DISABLED"
    message: str = "This feature is disabled for your garage."
    status_code: int = 403
