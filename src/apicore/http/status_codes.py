"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes a JSON API built on apicore actually emits, with their
reason phrases.

=============================================================================
STATUS CODES IN THE RESPONSE ENVELOPE
=============================================================================

    ┌────────────────────────────────────────────────────────────────────┐
    │                    STATUS CODES USED BY APICORE                    │
    ├────────┬───────────────────────────────────────────────────────────┤
    │  2xx   │ SUCCESS: "success": true                                 │
    │        │                                                           │
    │        │ 200 OK            - Standard success response            │
    │        │ 201 Created       - Resource created (POST)              │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ CLIENT ERROR: "success": false                           │
    │        │                                                           │
    │        │ 400 Bad Request   - Malformed or incomplete input        │
    │        │ 401 Unauthorized  - Missing/invalid/expired credential   │
    │        │ 403 Forbidden     - Authenticated, insufficient role     │
    │        │ 404 Not Found     - No matching route or resource        │
    │        │ 405 Method Not Allowed - Path exists for other methods   │
    │        │ 422 Unprocessable - Validation failed (field errors)     │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ SERVER ERROR: "success": false                           │
    │        │                                                           │
    │        │ 500 Internal Error - Unexpected fault, misconfigured     │
    │        │                      handler, or no response generated   │
    └────────┴───────────────────────────────────────────────────────────┘

Q: "What's the difference between 401 and 403?"
A: "401 means 'I don't know who you are' (authentication).
   403 means 'I know who you are, but you can't do this' (authorization).
   The role middleware relies on exactly this split."

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.UNPROCESSABLE_ENTITY.phrase
        'Unprocessable Entity'
    """

    # 2xx SUCCESS
    OK = 200                        # Standard success response
    CREATED = 201                   # New resource was created (POST)
    NO_CONTENT = 204                # Success but no body to return

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400               # Malformed request
    UNAUTHORIZED = 401              # Authentication required (not logged in)
    FORBIDDEN = 403                 # Authenticated but not permitted
    NOT_FOUND = 404                 # Route or resource doesn't exist
    METHOD_NOT_ALLOWED = 405        # Path exists under another method
    CONFLICT = 409                  # Conflict with current resource state
    PAYLOAD_TOO_LARGE = 413         # Request body too large
    UNPROCESSABLE_ENTITY = 422      # Well-formed but fails validation

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500     # Unexpected server error (catch-all)
    SERVICE_UNAVAILABLE = 503       # Server overloaded or in maintenance

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

        Used to build the WSGI status line ("422 Unprocessable Entity").
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx (success) status code."""
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        """Check if this is a 4xx (client error) status code."""
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """Check if this is a 5xx (server error) status code."""
        return 500 <= self < 600


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.CONFLICT: "Conflict",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.UNPROCESSABLE_ENTITY: "Unprocessable Entity",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}


def status_line(code: int) -> str:
    """
    Format a WSGI status line for any integer code.

    Unknown codes fall back to the generic phrase so a handler returning
    e.g. 418 still produces a valid status line.
    """
    try:
        status = HTTPStatus(code)
    except ValueError:
        return f"{code} Unknown"
    return f"{status.value} {status.phrase}"
