"""
Middleware Stages for the FastAPI Application

This module defines the middleware-type pipeline stages and registers them on a
FastAPI app in pipeline order.

Key Responsibilities:
---------------------
- Define `NonceMiddleware` (development): attaches a fresh nonce to every request.
- Define `SecurityHeadersMiddleware` (production): attaches a fresh nonce and
  sets the security response headers, including a Content-Security-Policy that
  allows inline scripts carrying that nonce.
- Map the `compression` stage onto Starlette's `GZipMiddleware`.
- Register middleware stages so that the first stage of the pipeline is the
  outermost layer of the ASGI stack.

Main Components:
----------------
1. **NonceMiddleware (Starlette BaseHTTPMiddleware subclass)**:
   Stores `request.state.nonce` and the logging request context.

2. **SecurityHeadersMiddleware (Starlette BaseHTTPMiddleware subclass)**:
   Same nonce handling, then decorates the response with the header set.
   The two middlewares are alternatives; the pipeline assembler never installs both.

3. **register_middleware (function)**:
   Attaches the middleware stages of an assembled pipeline to a FastAPI app.

Note:
-----
- `app.add_middleware` prepends, so stages are added in reverse to keep the
  pipeline order on the way in.

Typical Use:
------------
Called by `app.api.dispatcher.build_application` with the middleware stages of
the assembled pipeline.
"""
import uuid
from typing import Awaitable, Callable, Dict, Iterable, List, Tuple, Type

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.data_types import Stage, StageKind
from app.core.logger import set_request_context

CallNext = Callable[[Request], Awaitable[Response]]


def _attach_nonce(request: Request) -> str:
    nonce = str(uuid.uuid4())
    request.state.nonce = nonce
    set_request_context(nonce)
    return nonce


def content_security_policy(nonce: str) -> str:
    """
    Builds the Content-Security-Policy header value for one response.

    Args:
        nonce (str): The nonce generated for the current request.

    Returns:
        str: Serialized policy directives.
    """
    directives: Dict[str, str] = {
        "default-src": "'self'",
        "script-src": f"'self' 'nonce-{nonce}'",
        "style-src": "'self' 'unsafe-inline' blob:",
        "img-src": "'self' data:",
        "connect-src": "'self' ws: wss:",
        "font-src": "'self' data:",
        "object-src": "'none'",
        "media-src": "'self'",
        "manifest-src": "'self'",
        "child-src": "'self'",
        "frame-ancestors": "'none'",
    }
    return "; ".join(f"{name} {value}" for name, value in directives.items())


class NonceMiddleware(BaseHTTPMiddleware):
    """
    Middleware that generates a unique nonce per request and exposes it to later stages.
    """
    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        _attach_nonce(request)
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware applying the production security header set to every response.
    """
    def __init__(self, app, hsts_max_age: int = 31536000) -> None:
        super().__init__(app)
        self.hsts_max_age = hsts_max_age

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        """
        Attach a nonce, forward the request, then set the security headers on
        the response returned by the rest of the pipeline.

        Args:
            request (Request): The incoming HTTP request.
            call_next (CallNext): Forwards the request to the next stage.

        Returns:
            Response: The downstream response with security headers applied.
        """
        nonce = _attach_nonce(request)
        response = await call_next(request)

        headers = response.headers
        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["X-XSS-Protection"] = "1; mode=block"
        headers["X-Download-Options"] = "noopen"
        headers["Referrer-Policy"] = "same-origin"
        headers["Strict-Transport-Security"] = f"max-age={self.hsts_max_age}; includeSubDomains"
        headers["Content-Security-Policy"] = content_security_policy(nonce)
        return response


def _middleware_for(stage: Stage) -> Tuple[Type, Dict[str, object]]:
    if stage.kind is StageKind.NONCE_INJECTOR:
        return NonceMiddleware, {}
    if stage.kind is StageKind.SECURITY_HEADERS:
        return SecurityHeadersMiddleware, {"hsts_max_age": stage.options["hsts_max_age"]}
    if stage.kind is StageKind.COMPRESSION:
        return GZipMiddleware, {"minimum_size": stage.options["minimum_size"]}
    raise ValueError(f"Stage {stage.kind.value} is not a middleware stage")


def register_middleware(app: FastAPI, stages: Iterable[Stage]) -> None:
    """
    Register middleware stages on the FastAPI application instance.

    The first stage in `stages` ends up as the outermost middleware, so it sees
    the request first and the response last.

    Args:
        app (FastAPI): The FastAPI application instance to register middleware on.
        stages (Iterable[Stage]): Middleware stages in pipeline order.

    Returns:
        None
    """
    entries: List[Tuple[Type, Dict[str, object]]] = [_middleware_for(stage) for stage in stages]
    for middleware_class, options in reversed(entries):
        app.add_middleware(middleware_class, **options)
