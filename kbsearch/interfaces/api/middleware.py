"""
API Middleware - Request/response processing.

Provides:
- Request ID tracking (caller-supplied ids are accepted only if well formed)
- Access log line with latency and, for searches, the mode that actually ran
- Error handling with taxonomy codes
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from kbsearch.config.errors import ErrorCode, KBSearchError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def record_search(request: Request, mode: str, result_count: int) -> None:
    """Note a search outcome on the request for the access log."""
    request.state.search_mode = mode
    request.state.result_count = result_count


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to request state and the response headers."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = supplied if _REQUEST_ID_RE.match(supplied) else uuid.uuid4().hex
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Log one access line per request, with search mode and hit count when known."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"

        state = request.state
        request_id = getattr(state, "request_id", "-")
        mode = getattr(state, "search_mode", None)
        if mode is None:
            logger.info(
                "%s %s -> %d in %.1fms [%s]",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
                request_id,
            )
        else:
            logger.info(
                "%s %s -> %d in %.1fms mode=%s results=%d [%s]",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
                mode,
                getattr(state, "result_count", 0),
                request_id,
            )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Render KBSearchError as {"error": {code, message, details}, "request_id"}."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = getattr(request.state, "request_id", "-")
        try:
            return await call_next(request)
        except KBSearchError as e:
            status_code = _error_code_to_status(e.code)
            if status_code >= 500:
                logger.error("%s: %s [%s] %s", e.code.value, e.message, request_id, e.details)
            else:
                logger.warning("%s: %s [%s]", e.code.value, e.message, request_id)
            return _error_response(status_code, e.to_dict(), request_id)
        except Exception:
            logger.exception(
                "Unhandled error on %s %s [%s]",
                request.method,
                request.url.path,
                request_id,
            )
            return _error_response(
                500,
                {
                    "code": ErrorCode.INTERNAL_ERROR.value,
                    "message": "Internal server error",
                    "details": {},
                },
                request_id,
            )


def _error_response(status_code: int, error: dict, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "request_id": request_id},
    )


_STATUS_BY_CODE = {
    ErrorCode.SEARCH_INVALID_QUERY: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.SAVED_SEARCH_CONFLICT: 409,
    ErrorCode.SEARCH_INDEX_UNAVAILABLE: 503,
    ErrorCode.STORAGE_CONNECTION_FAILED: 503,
}


def _error_code_to_status(code: ErrorCode) -> int:
    """HTTP status for an error code; unmapped codes are 500."""
    return _STATUS_BY_CODE.get(code, 500)
