from garage.app.config.settings import settings
from .errors import APIError, FeatureDisabled, QuotaExceeded, QuotaUnavailable, RateLimited
from .logging import garage_id_var, request_id_var, setup_logging
from .security import (
    cors_kwargs,
    create_access_token,
    decode_access_token,
)

__all__ = [
    "settings",
    "APIError",
    "FeatureDisabled",
    "QuotaExceeded",
    "QuotaUnavailable",
    "RateLimited",
    "garage_id_var",
    "request_id_var",
    "setup_logging",
    "cors_kwargs",
    "create_access_token",
    "decode_access_token",
]
