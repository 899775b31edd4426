"""
=============================================================================
CORS (Cross-Origin Resource Sharing) MIDDLEWARE
=============================================================================

Lets browser front-ends on other origins call the API.

    PREFLIGHT (OPTIONS):
        Answered here, the route table is never consulted:

        200 {"success": true, "message": "Success"}
        Access-Control-Allow-Origin: *
        Access-Control-Allow-Methods: GET, POST, PUT, PATCH, DELETE, OPTIONS
        Access-Control-Allow-Headers: Content-Type, Authorization, X-Requested-With
        Access-Control-Max-Age: 86400

    EVERY OTHER RESPONSE gets:
        Access-Control-Allow-Origin / -Methods / -Headers
        Cache-Control: no-store, no-cache, must-revalidate, max-age=0
        Pragma: no-cache

Place CORS before authentication so preflights succeed without a token:

    app.use(LoggingMiddleware(), CORSMiddleware())

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, List

from ..http.request import Request
from ..http.response import Response, success
from .base import Middleware, NextHandler


NO_CACHE = "no-store, no-cache, must-revalidate, max-age=0"


@dataclass
class CORSConfig:
    """
    CORS configuration options.

    DEVELOPMENT (permissive):
        CORSConfig()

    PRODUCTION (restrictive):
        CORSConfig(
            allow_origins=["https://shop.example.com"],
            allow_credentials=True,
        )
    """

    allow_origins: List[str] = field(default_factory=lambda: ["*"])
    allow_methods: List[str] = field(
        default_factory=lambda: ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    )
    allow_headers: List[str] = field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-Requested-With"]
    )
    expose_headers: List[str] = field(default_factory=lambda: ["X-Request-ID"])
    allow_credentials: bool = False
    max_age: int = 86400  # 24 hours
    disable_caching: bool = True


class CORSMiddleware(Middleware):
    """CORS headers on every response, and preflight answering."""

    def __init__(self, config: Optional[CORSConfig] = None):
        self.config = config or CORSConfig()

    def handle(self, request: Request, next: NextHandler) -> Response:
        origin = request.header("Origin", "")

        if request.method == "OPTIONS":
            return self._handle_preflight(origin)

        response = next(request)
        self._add_cors_headers(response, origin)
        if self.config.disable_caching:
            response.set_header("Cache-Control", NO_CACHE)
            response.set_header("Pragma", "no-cache")
        return response

    def _handle_preflight(self, origin: str) -> Response:
        response = success()
        self._add_cors_headers(response, origin)
        response.set_header("Access-Control-Max-Age", str(self.config.max_age))
        return response

    def _allowed_origin(self, origin: str) -> Optional[str]:
        """
        The Access-Control-Allow-Origin value for this origin, or None.

            allow_origins=["*"]                   → "*" (the origin itself
                                                    when credentials are on)
            allow_origins=["https://a.example"]   → the origin if listed
        """
        if "*" in self.config.allow_origins:
            if self.config.allow_credentials and origin:
                return origin
            return "*"
        if origin in self.config.allow_origins:
            return origin
        return None

    def _add_cors_headers(self, response: Response, origin: str) -> None:
        allowed_origin = self._allowed_origin(origin)
        if allowed_origin is None:
            return

        response.set_header("Access-Control-Allow-Origin", allowed_origin)
        response.set_header("Access-Control-Allow-Methods", ", ".join(self.config.allow_methods))
        response.set_header("Access-Control-Allow-Headers", ", ".join(self.config.allow_headers))

        if self.config.allow_credentials:
            response.set_header("Access-Control-Allow-Credentials", "true")

        if self.config.expose_headers:
            response.set_header("Access-Control-Expose-Headers", ", ".join(self.config.expose_headers))

        if allowed_origin != "*":
            vary = response.headers.get("Vary", "")
            if "Origin" not in vary:
                response.set_header("Vary", f"{vary}, Origin".lstrip(", "))
