from __future__ import annotations


def cors_kwargs(origins: list[str]) -> dict:
    """CORS options for the dashboard front-end; auth travels as a bearer header, never cookies."""
    return {
        "allow_origins": origins,
        "allow_credentials": False,
        "allow_methods": ["GET", "POST", "PUT", "OPTIONS"],
        "allow_headers": ["Authorization", "Content-Type", "X-Request-Id"],
        "expose_headers": ["X-Request-Id", "Retry-After"],
    }
