"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure a caller can observe maps to one ErrorKind, and every
ErrorKind maps to exactly one HTTP status and a default message.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR PROPAGATION                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   CLIENT_INPUT (400)      ┐                                         │
    │   VALIDATION (422)        │  Produced on purpose by stages and      │
    │   AUTHENTICATION (401)    ├─ helpers as TERMINAL RESPONSES.         │
    │   AUTHORIZATION (403)     │  Never raised.                          │
    │   NOT_FOUND (404)         │                                         │
    │   METHOD_NOT_ALLOWED (405)┘                                         │
    │                                                                      │
    │   CONFIGURATION (500)     ┐  Raised as exceptions. Caught exactly   │
    │   UNHANDLED (500)         ┘  once at the pipeline boundary, logged  │
    │                              with full context, rendered as a       │
    │                              generic message.                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import Enum


class ErrorKind(Enum):
    """
    The failure categories of the API, with status and default message.

    Values are (status code, default message, category). The category keeps
    the two 500 kinds distinct members instead of Enum aliases.

    Usage:
        ErrorKind.AUTHORIZATION.status   # HTTPStatus.FORBIDDEN
        ErrorKind.NOT_FOUND.message      # "Resource not found"
    """

    CLIENT_INPUT = (400, "Bad request", "client")
    VALIDATION = (422, "Validation failed", "client")
    AUTHENTICATION = (401, "Unauthorized", "client")
    AUTHORIZATION = (403, "Forbidden", "client")
    NOT_FOUND = (404, "Resource not found", "client")
    METHOD_NOT_ALLOWED = (405, "Method Not Allowed", "client")
    CONFIGURATION = (500, "Internal server error", "configuration")
    UNHANDLED = (500, "Internal server error", "unhandled")

    @property
    def status(self):
        # Imported here: apicore.http imports this module.
        from .http.status_codes import HTTPStatus
        return HTTPStatus(self.value[0])

    @property
    def message(self) -> str:
        return self.value[1]

    @property
    def is_fault(self) -> bool:
        """True for server-side faults (never the caller's fault)."""
        return self.value[2] != "client"


class ConfigurationFault(Exception):
    """
    The application was wired incorrectly.

    Raised for: invalid handler references, duplicate routes, a role
    middleware without roles, malformed validation rules, a non-middleware
    object in a stage list, attaching an identity twice.

    Faults raised while building the route table surface to the developer
    at startup. Faults raised during a request are caught by the pipeline
    and rendered as a 500.
    """

    kind = ErrorKind.CONFIGURATION


class RequestError(Exception):
    """
    Raised by the transport adapter when the raw request can't be read.

    Examples: a body larger than max_body_size, a non-integer
    Content-Length. The adapter renders it as a JSON error envelope.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code  # HTTP status to return
