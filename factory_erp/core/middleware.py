"""Request context (id, language) and the CORS policy for the web client."""

import logging
import re
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from factory_erp.core.config import settings
from factory_erp.core.messages import resolve_language

logger = logging.getLogger("factory_erp")

# Ids echoed from upstream proxies must be short and log-safe
REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
QUIET_PATHS = {"/", "/api/health"}


def request_language(request: Request) -> str:
    """Language chosen for this request, resolved once by the middleware."""
    language = getattr(request.state, "language", None)
    return language or resolve_language(request.headers.get("accept-language"))


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a request id and the caller's language, then log the outcome."""

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get("X-Request-Id", "")
        request_id = incoming if REQUEST_ID_PATTERN.match(incoming) else uuid.uuid4().hex
        request.state.request_id = request_id
        request.state.language = resolve_language(request.headers.get("accept-language"))
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-Id"] = request_id
        response.headers["Content-Language"] = request.state.language
        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(
            level,
            "[%s] %s %s -> %d (%.1f ms)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    # The session cookie only travels with credentialed CORS requests
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "Accept-Language", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )
    app.add_middleware(RequestContextMiddleware)
