"""
=============================================================================
APICORE - JSON REST API CORE
=============================================================================

The request-handling core of a JSON REST API:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   WSGI ─► Request ─► global middleware ─► Router ─► route middleware│
    │                                                        │             │
    │   JSON envelope ◄──────────────────────────── controller action     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

1. ROUTING
   - Static and {placeholder} patterns, static routes first
   - Optional strict 405 with an Allow header

2. MIDDLEWARE
   - Russian-doll pipeline with short-circuit
   - Bearer authentication, role checks, declarative validation
   - Access logging and CORS

3. ONE RESPONSE SHAPE
   - {"success", "message", "data"?, "errors"?} for every reply,
     faults included

Quick start:

    from apicore import Application, success

    app = Application()

    @app.get("/health")
    def health(request):
        return success({"status": "ok"})

    app.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import AppConfig
from .errors import ConfigurationFault, ErrorKind, RequestError
from .http import (
    HTTPStatus,
    Request,
    Response,
    ResponseBuilder,
    Router,
    build_request,
    success,
    created,
    error,
    not_found,
)
from .identity import Identity, HS256TokenDecoder, InMemoryUserDirectory, TokenError
from .middleware import (
    AuthenticationMiddleware,
    RoleMiddleware,
    ValidationMiddleware,
    LoggingMiddleware,
    CORSMiddleware,
    CORSConfig,
)
from .server import Application

__all__ = [
    "__version__",
    "AppConfig",
    "Application",
    "ConfigurationFault",
    "ErrorKind",
    "RequestError",
    "HTTPStatus",
    "Request",
    "Response",
    "ResponseBuilder",
    "Router",
    "build_request",
    "success",
    "created",
    "error",
    "not_found",
    "Identity",
    "HS256TokenDecoder",
    "InMemoryUserDirectory",
    "TokenError",
    "AuthenticationMiddleware",
    "RoleMiddleware",
    "ValidationMiddleware",
    "LoggingMiddleware",
    "CORSMiddleware",
    "CORSConfig",
]
