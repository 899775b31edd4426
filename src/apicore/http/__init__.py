"""
=============================================================================
HTTP LAYER
=============================================================================

The request/response model and routing of apicore.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST (request.py)                                                │
    │   Raw transport inputs → normalized, sanitized Request             │
    │   build_request("POST", "/products?x=1", headers, body)            │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE (response.py)                                              │
    │   The JSON envelope {success, message, data?, errors?}            │
    │   success(), created(), not_found(), validation_failed(), ...      │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ROUTER (router.py)                                                  │
    │   GET /products/{id} → handler(request, "42")                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus.UNPROCESSABLE_ENTITY → 422, "Unprocessable Entity"    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import Request, build_request, sanitize_value, normalize_path
from .response import (
    Response,
    ResponseBuilder,
    ResponseAlreadyRendered,
    # Convenience functions for common responses
    success,             # 200 OK
    created,             # 201 Created
    error,               # any status
    bad_request,         # 400 Bad Request
    unauthorized,        # 401 Unauthorized
    forbidden,           # 403 Forbidden
    not_found,           # 404 Not Found
    method_not_allowed,  # 405 Method Not Allowed
    validation_failed,   # 422 Unprocessable Entity
    server_error,        # 500 Internal Server Error
)
from .router import Router, RouteGroup, Route, RouteMatch, FunctionHandler, ControllerHandler
from .status_codes import HTTPStatus, status_line

__all__ = [
    # Requests
    "Request",
    "build_request",
    "sanitize_value",
    "normalize_path",

    # Responses
    "Response",
    "ResponseBuilder",
    "ResponseAlreadyRendered",
    "success",
    "created",
    "error",
    "bad_request",
    "unauthorized",
    "forbidden",
    "not_found",
    "method_not_allowed",
    "validation_failed",
    "server_error",

    # Routing
    "Router",
    "RouteGroup",
    "Route",
    "RouteMatch",
    "FunctionHandler",
    "ControllerHandler",

    # Status codes
    "HTTPStatus",
    "status_line",
]
