from __future__ import annotations

import json
import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from garage.app.api.admin import router as admin_router
from garage.app.api.ai import router as ai_router
from garage.app.api.health import VERSION, router as health_router
from garage.app.config.settings import settings
from garage.app.core.errors import APIError
from garage.app.core.logging import request_id_var, setup_logging
from garage.app.core.security import cors_kwargs
from garage.app.providers.registry import registry

setup_logging(level=settings.log_level, log_file=settings.log_file or None)
logger = logging.getLogger("garage")

_SENSITIVE_KEYS = {
    "password",
    "token",
    "access_token",
    "refresh_token",
    "secret",
    "api_key",
    "authorization",
}


def _redact_value(value):
    if isinstance(value, dict):
        redacted = {}
        for key, item in value.items():
            if str(key).lower() in _SENSITIVE_KEYS:
                redacted[key] = "***"
            else:
                redacted[key] = _redact_value(item)
        return redacted
    if isinstance(value, list):
        return [_redact_value(item) for item in value]
    return value


async def _safe_body_preview(request: Request, max_bytes: int = 4096) -> str | None:
    try:
        body = await request.body()
    except Exception:
        return None

    if not body:
        return None

    truncated = len(body) > max_bytes
    body = body[:max_bytes]

    if "application/json" not in request.headers.get("content-type", "").lower():
        return None
    try:
        text = json.dumps(_redact_value(json.loads(body.decode("utf-8", errors="replace"))), ensure_ascii=False)
    except ValueError:
        text = body.decode("utf-8", errors="replace")

    if truncated:
        return f"{text}…(truncated)"
    return text


async def _request_context(request: Request) -> dict:
    context = {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else None,
    }
    body_preview = await _safe_body_preview(request)
    if body_preview:
        context["body_preview"] = body_preview
    return context


app = FastAPI(title="Garage AI Backend", version=VERSION)


@app.on_event("startup")
def startup_event():
    """Build provider registry on startup."""
    registry.build_registry()


app.add_middleware(CORSMiddleware, **cors_kwargs(settings.cors_origins_list))


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.include_router(health_router)
app.include_router(ai_router)
app.include_router(admin_router)


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        latency = time.time() - start_time
        route = getattr(request.scope.get("route"), "path", request.url.path)

        logger.info(
            "Request completed",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "method": request.method,
                "route": route,
                "status": response.status_code,
                "latency_ms": round(latency * 1000, 2),
            }
        )

        return response


# Added last so it wraps the logging middleware and the request id is set first.
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(
        "APIError",
        extra={"request_id": request_id, "status_code": exc.status_code, "error_code": exc.code, "path": request.url.path},
    )
    headers = {"Retry-After": "60"} if exc.code == "RATE_LIMITED" else None
    return JSONResponse(
        status_code=exc.status_code,
        content={**exc.to_content(), "request_id": request_id},
        headers=headers,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = getattr(request.state, "request_id", "unknown")
    detail = exc.detail if isinstance(exc.detail, dict) else {"code": "HTTP_ERROR", "message": str(exc.detail)}
    context = await _request_context(request)
    logger.warning(
        "HTTPException",
        extra={
            "request_id": request_id,
            "status_code": exc.status_code,
            "error_code": detail.get("code"),
            "error_message": detail.get("message"),
            **context,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": detail.get("code", "HTTP_ERROR"), "message": detail.get("message", "Request failed"), "request_id": request_id},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, "request_id", "unknown")
    context = await _request_context(request)
    logger.warning(
        "RequestValidationError",
        extra={
            "request_id": request_id,
            "error_detail": exc.errors(),
            **context,
        },
    )
    return JSONResponse(
        status_code=400,
        content={"code": "VALIDATION_ERROR", "message": "Invalid request", "detail": jsonable_errors(exc), "request_id": request_id},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic may put exception instances in "ctx"
    return json.loads(json.dumps(exc.errors(), default=str))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", "unknown")
    context = await _request_context(request)
    logger.error("Unhandled exception", extra={"request_id": request_id, **context}, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "request_id": request_id,
        },
    )
