"""
API Middleware - Request context and error translation.

Every response carries `X-Request-ID` (echoed from the caller when sent)
and `X-Response-Time-Ms`. Exceptions escaping a route become the JSON
error envelope `{"error": {...}, "request_id": ...}`.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from kbsearch.config.errors import ErrorCode, KBSearchError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time-Ms"

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.CONFIGURATION_MISSING: 503,
    ErrorCode.EMBEDDING_UNAVAILABLE: 503,
    ErrorCode.SEARCH_INDEX_UNAVAILABLE: 503,
    ErrorCode.KEYWORD_QUERY_FAILED: 503,
    ErrorCode.STORAGE_READ_FAILED: 503,
}

CallNext = Callable[[Request], Awaitable[Response]]


def error_code_to_status(code: ErrorCode) -> int:
    """HTTP status for an error code; anything unmapped is a 500."""
    return _STATUS_BY_CODE.get(code, 500)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request and log one access line."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[RESPONSE_TIME_HEADER] = f"{elapsed_ms:.2f}"

        logger.info(
            "%s %s -> %d in %.1fms [%s]",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Translate KBSearchError (and anything unexpected) into the error envelope."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        try:
            return await call_next(request)
        except KBSearchError as e:
            logger.warning("%s [%s] %s", e, _request_id(request), e.details or "")
            return _error_response(request, error_code_to_status(e.code), e.to_dict())
        except Exception:
            logger.exception("Unhandled error [%s]", _request_id(request))
            body = {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": "Internal server error",
                "details": {},
            }
            return _error_response(request, 500, body)


def _error_response(request: Request, status_code: int, error: dict[str, Any]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "request_id": _request_id(request)},
    )
