"""HTTP middleware: CORS, API key check, request tagging and error mapping."""

from __future__ import annotations

import hmac
import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from auto_context.config import get_settings
from auto_context.exceptions import AutoContextError, InvalidRuleSet

logger = structlog.get_logger(__name__)

_PLACEHOLDER_KEYS = ("change-me-to-a-random-secret", "")

# Health checks and API docs stay reachable without a key
_OPEN_PATHS = frozenset({"/health", "/system/info", "/docs", "/openapi.json", "/redoc"})

# Endpoints whose traffic is too frequent to log per request
_QUIET_PATHS = frozenset({"/health", "/ingest"})


# ── CORS ──────────────────────────────────────────────────────


def add_cors(app: FastAPI) -> None:
    """Allow the origins listed in ``settings.cors_origins`` (``"*"`` for any)."""
    raw = get_settings().cors_origins.strip()
    origins = ["*"] if raw == "*" else [o.strip() for o in raw.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


# ── API key ───────────────────────────────────────────────────


def _presented_key(request: Request) -> str:
    header = request.headers.get("X-API-Key")
    if header:
        return header
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests without the configured key.

    Sensor gateways send ``X-API-Key``; browser tools may use a bearer
    token instead.  The check is off until ``api_secret_key`` is set.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        secret = get_settings().api_secret_key
        if secret in _PLACEHOLDER_KEYS or request.url.path in _OPEN_PATHS:
            return await call_next(request)

        if not hmac.compare_digest(_presented_key(request).encode(), secret.encode()):
            logger.warning("http.unauthorised", path=request.url.path)
            return JSONResponse(status_code=401, content={"detail": "Invalid or missing API key."})
        return await call_next(request)


# ── Request tagging ───────────────────────────────────────────


def _device_from_path(path: str) -> str | None:
    parts = path.strip("/").split("/")
    if len(parts) >= 2 and parts[0] == "devices":
        return parts[1]
    return None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id (and the device id, when routed per device) to the
    structlog context so engine events can be traced back to a request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        bound = {"request_id": request_id}
        device_id = _device_from_path(request.url.path)
        if device_id:
            bound["device_id"] = device_id

        structlog.contextvars.bind_contextvars(**bound)
        start = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars(*bound)

        response.headers["X-Request-ID"] = request_id
        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "http.request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.monotonic() - start) * 1000, 1),
            )
        return response


# ── Error mapping ─────────────────────────────────────────────


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Map package errors to 4xx and anything else to a plain 500."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except InvalidRuleSet as exc:
            return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})
        except AutoContextError as exc:
            logger.warning("http.engine_error", path=request.url.path, error=str(exc))
            return JSONResponse(status_code=400, content={"detail": str(exc)})
        except Exception as exc:
            logger.exception("http.unhandled_error", path=request.url.path, error=str(exc))
            return JSONResponse(status_code=500, content={"detail": "Internal server error."})


def setup_middleware(app: FastAPI) -> None:
    """Install middleware; the last one added (error mapping) runs first."""
    add_cors(app)
    app.add_middleware(APIKeyMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
