"""
=============================================================================
JSON RESPONSE ENVELOPE
=============================================================================

Every reply the API produces, success or failure, is one JSON object with
the same shape.

=============================================================================
ENVELOPE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        RESPONSE ENVELOPE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Success (200/201)                 Validation failure (422)        │
    │   {                                 {                               │
    │     "success": true,                  "success": false,             │
    │     "message": "Success",             "message": "Validation failed",│
    │     "data": {...}                     "errors": {                   │
    │   }                                     "email": "email is required"│
    │                                       }                             │
    │                                     }                               │
    │                                                                      │
    │   success  - defaults to true iff 200 <= status < 300               │
    │   message  - always present                                         │
    │   data     - only on success paths that carry a payload             │
    │   errors   - only when there are field errors                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Serialized as UTF-8 JSON with unescaped Unicode:
        Content-Type: application/json; charset=utf-8

=============================================================================
RENDER IS TERMINAL
=============================================================================

A response is constructed, returned up the pipeline, and rendered exactly
once by the transport. render() marks the response; a second render()
raises ResponseAlreadyRendered. Nothing may be written for a call after
its response has been rendered.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple
import json

from ..errors import ErrorKind
from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json; charset=utf-8"


class ResponseAlreadyRendered(RuntimeError):
    """Raised when a response is rendered a second time."""


@dataclass
class Response:
    """
    An outbound JSON reply.

    Usually created through the helper functions at the bottom of this
    module (success(), not_found(), validation_failed(), ...) or through
    ResponseBuilder, and never mutated after it has been returned.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Stage/handler              Pipeline                 Transport
        returns Response  ─────►   passes it up   ─────►    render() once
            │                         │                         │
        not_found("...")         no further             b'{"success":false,
                                 output                   "message":"..."}'

    =========================================================================
    """

    status: int = HTTPStatus.OK
    message: str = "Success"
    data: Optional[Any] = None
    errors: Dict[str, str] = field(default_factory=dict)
    success: Optional[bool] = None
    headers: Dict[str, str] = field(default_factory=dict)

    _rendered: bool = field(default=False, repr=False, compare=False)

    def __post_init__(self):
        # success is derived from the status unless set explicitly
        if self.success is None:
            self.success = 200 <= int(self.status) < 300

    @property
    def rendered(self) -> bool:
        """True once render() has produced the body."""
        return self._rendered

    def set_header(self, name: str, value: str) -> "Response":
        """
        Set a response header.

        Returns self for method chaining:
            response.set_header("X-One", "1").set_header("X-Two", "2")
        """
        self.headers[name] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Build the envelope as a plain dict."""
        payload: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.data is not None:
            payload["data"] = self.data
        if self.errors:
            payload["errors"] = dict(self.errors)
        return payload

    def to_json(self) -> str:
        """
        Serialize the envelope.

        ensure_ascii=False keeps Unicode unescaped, matching the
        charset=utf-8 content type.
        """
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def render(self) -> bytes:
        """
        Produce the final body bytes. Can only be called once.

        Raises:
            ResponseAlreadyRendered: if this response was already rendered.
        """
        if self._rendered:
            raise ResponseAlreadyRendered(
                f"Response {self.status} '{self.message}' was already rendered"
            )
        self._rendered = True
        return self.to_json().encode("utf-8")

    def header_items(self, body_length: int) -> List[Tuple[str, str]]:
        """
        Headers for the transport, with Content-Type and Content-Length added.

        Args:
            body_length: Length of the rendered body in bytes
        """
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        headers.update(self.headers)
        headers["Content-Length"] = str(body_length)
        return list(headers.items())


class ResponseBuilder:
    """
    Fluent builder for Response objects.

    ==========================================================================
    THE BUILDER PATTERN
    ==========================================================================

    BEFORE (without builder):
        response = Response(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            message="Validation failed",
            errors={"email": "email is required"},
        )

    AFTER (with builder):
        response = (ResponseBuilder()
            .status(HTTPStatus.UNPROCESSABLE_ENTITY)
            .message("Validation failed")
            .error("email", "email is required")
            .build())

    Each method returns `self`, except build().
    ==========================================================================
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._message = "Success"
        self._data: Optional[Any] = None
        self._errors: Dict[str, str] = {}
        self._success: Optional[bool] = None
        self._headers: Dict[str, str] = {}

    def status(self, status: int) -> "ResponseBuilder":
        """Set the HTTP status code."""
        self._status = status
        return self

    def message(self, message: str) -> "ResponseBuilder":
        """Set the envelope message."""
        self._message = message
        return self

    def data(self, data: Any) -> "ResponseBuilder":
        """Set the payload carried under "data"."""
        self._data = data
        return self

    def error(self, field_name: str, message: str) -> "ResponseBuilder":
        """Add one field error."""
        self._errors[field_name] = message
        return self

    def errors(self, errors: Dict[str, str]) -> "ResponseBuilder":
        """Add several field errors at once."""
        self._errors.update(errors)
        return self

    def success(self, success: bool) -> "ResponseBuilder":
        """Override the success flag (normally derived from the status)."""
        self._success = success
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Add a single response header."""
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        """Add multiple headers at once."""
        self._headers.update(headers)
        return self

    def build(self) -> Response:
        """Create the Response."""
        return Response(
            status=self._status,
            message=self._message,
            data=self._data,
            errors=dict(self._errors),
            success=self._success,
            headers=dict(self._headers),
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Quick helpers for the replies handlers and middleware return most often.
#
# Examples:
#     return success(products, "Products retrieved successfully")
#     return created(order, "Order placed successfully")
#     return not_found("Product not found")
#     return validation_failed({"email": "email is required"})
#
# =============================================================================

def success(
    data: Any = None,
    message: str = "Success",
    status: int = HTTPStatus.OK,
) -> Response:
    """
    Create a success response carrying an optional payload.

    Args:
        data: Payload placed under "data" (omitted when None)
        message: Success message
        status: 2xx status code (200 by default)
    """
    return ResponseBuilder().status(status).message(message).data(data).build()


def created(data: Any = None, message: str = "Created successfully") -> Response:
    """Create a 201 Created response, usually carrying the new resource."""
    return success(data, message, HTTPStatus.CREATED)


def error(
    message: str = "Error",
    status: int = HTTPStatus.BAD_REQUEST,
    errors: Optional[Dict[str, str]] = None,
) -> Response:
    """
    Create an error response.

    Args:
        message: Main error message
        status: 4xx or 5xx status code
        errors: Optional field -> message map
    """
    builder = ResponseBuilder().status(status).message(message)
    if errors:
        builder.errors(errors)
    return builder.build()


def bad_request(message: Optional[str] = None) -> Response:
    """400 Bad Request: malformed or incomplete input."""
    kind = ErrorKind.CLIENT_INPUT
    return error(message or kind.message, kind.status)


def unauthorized(message: Optional[str] = None) -> Response:
    """
    Create a 401 Unauthorized response.

    Note: 401 means "not authenticated" (identity unknown). For
    "authenticated but not permitted", use forbidden().

    Includes a WWW-Authenticate header naming the Bearer scheme.
    """
    kind = ErrorKind.AUTHENTICATION
    response = error(message or kind.message, kind.status)
    return response.set_header("WWW-Authenticate", 'Bearer realm="api"')


def forbidden(message: Optional[str] = None) -> Response:
    """403 Forbidden: "I know who you are, but you can't do this"."""
    kind = ErrorKind.AUTHORIZATION
    return error(message or kind.message, kind.status)


def not_found(message: Optional[str] = None) -> Response:
    """404 Not Found: no matching route or an empty result."""
    kind = ErrorKind.NOT_FOUND
    return error(message or kind.message, kind.status)


def method_not_allowed(
    allowed_methods: List[str],
    message: Optional[str] = None,
) -> Response:
    """
    Create a 405 Method Not Allowed response.

    Includes the Allow header listing the methods that do match the path.
    """
    kind = ErrorKind.METHOD_NOT_ALLOWED
    response = error(message or kind.message, kind.status)
    return response.set_header("Allow", ", ".join(allowed_methods))


def validation_failed(
    errors: Dict[str, str],
    message: Optional[str] = None,
) -> Response:
    """422 Unprocessable Entity with a field -> message error map."""
    kind = ErrorKind.VALIDATION
    return error(message or kind.message, kind.status, errors)


def server_error(message: Optional[str] = None) -> Response:
    """
    500 Internal Server Error.

    Keep the message generic: details go to the log, never to the caller.
    """
    kind = ErrorKind.UNHANDLED
    return error(message or kind.message, kind.status)


def no_response() -> Response:
    """500 for a pipeline that finished without producing anything."""
    return server_error("No response generated")
