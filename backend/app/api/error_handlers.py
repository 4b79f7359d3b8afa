"""
Error Boundary

This module installs the handlers that close the request pipeline. Every
failure raised by a stage while handling a request ends up here and is turned
into a response; nothing raised by a request handler stops the process.

Handlers:
---------
- HTTP errors: `404` gets a fixed not-found message, other statuses keep their detail.
- `DataStoreError` (upstream collaborator failure): `503`.
- Any other exception (internal failure): `500`, logged with traceback.

Placement:
----------
HTTP and data store errors are answered by FastAPI's exception handlers.
Internal failures are caught by `ErrorBoundaryMiddleware`, which sits inside
every middleware stage, so a `500` still passes through the security headers
and compression on its way out.

This is the only place that turns an internal failure into a generic
user-facing message.
"""

import logging

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, Response

from app.core.errors import DataStoreError
from app.core.middleware import CallNext

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Sorry, that resource was not found."
UNAVAILABLE_MESSAGE = "Sorry, the service is temporarily unavailable."
INTERNAL_ERROR_MESSAGE = "Sorry, an unexpected error occurred."


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    if exc.status_code == 404:
        return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


async def upstream_error_handler(request: Request, exc: DataStoreError) -> PlainTextResponse:
    logger.warning("Upstream failure on %s %s: %s", request.method, request.url.path, exc)
    return PlainTextResponse(UNAVAILABLE_MESSAGE, status_code=503)


async def unhandled_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return PlainTextResponse(INTERNAL_ERROR_MESSAGE, status_code=500)


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """
    Innermost middleware converting any exception left over by the routes into a `500`.
    """
    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return await unhandled_error_handler(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Installs the error boundary on `app`.

    Must run before the middleware stages are registered: `add_middleware`
    prepends, so the boundary added first stays the innermost layer.

    Args:
        app (FastAPI): Application whose pipeline is being assembled.

    Returns:
        None
    """
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(DataStoreError, upstream_error_handler)
    app.add_middleware(ErrorBoundaryMiddleware)
    # last resort for failures raised by the middleware stages themselves
    app.add_exception_handler(Exception, unhandled_error_handler)
