"""
=============================================================================
APPLICATION AND TRANSPORT
=============================================================================

Ties the router and the global middleware into one callable application,
and adapts it to WSGI so any WSGI server can host it. A threaded
development server is included.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. TRANSPORT
       └── WSGI environ → request_from_environ() → Request
           (body read once, bounded by max_body_size)

    2. GLOBAL MIDDLEWARE
       └── Logging → CORS → ... (app.use order)

    3. ROUTE DISPATCH
       └── Router matches method + path

    4. ROUTE MIDDLEWARE
       └── Authentication → Role → Validation (per route)

    5. CONTROLLER ACTION
       └── handler(request, *captures) → Response or payload

    6. RENDER (exactly once)
       └── JSON envelope bytes + status line + headers → WSGI

Every path through this, including faults and malformed transport
input, ends in a JSON envelope.

=============================================================================
"""

from socketserver import ThreadingMixIn
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote
from wsgiref.simple_server import WSGIServer, WSGIRequestHandler, make_server
import logging

from .config import AppConfig
from .errors import RequestError
from .http.request import Request, build_request
from .http.response import Response, error, server_error
from .http.router import Router, RouteGroup, Route
from .http.status_codes import HTTPStatus, status_line
from .identity import HS256TokenDecoder, UserLookup
from .middleware.auth import AuthenticationMiddleware
from .middleware.base import Middleware, MiddlewarePipeline
from .middleware.validation import ValidationMiddleware


logger = logging.getLogger(__name__)


StartResponse = Callable[[str, List[Tuple[str, str]]], Any]


# =============================================================================
# WSGI → REQUEST
# =============================================================================

def _environ_headers(environ: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """
    Recover HTTP headers from a WSGI environ.

        HTTP_AUTHORIZATION → Authorization
        CONTENT_TYPE       → Content-Type
    """
    headers = []
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            headers.append((key[5:].replace("_", "-").title(), value))
        elif key in ("CONTENT_TYPE", "CONTENT_LENGTH") and value:
            headers.append((key.replace("_", "-").title(), value))
    return headers


def _wsgi_str(value: str) -> str:
    """PEP 3333 strings are latin-1 decoded bytes; re-decode as UTF-8."""
    try:
        return value.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return value


def request_from_environ(
    environ: Mapping[str, Any],
    max_body_size: int = 10 * 1024 * 1024,
    allow_form_json: bool = True,
) -> Request:
    """
    Build a Request from a WSGI environ.

    The body is read from wsgi.input exactly once, and only as many bytes
    as Content-Length announces.

    Raises:
        RequestError: non-integer Content-Length (400), body larger than
            max_body_size (413).
    """
    raw_length = environ.get("CONTENT_LENGTH") or "0"
    try:
        length = int(raw_length)
    except ValueError:
        raise RequestError(f"Invalid Content-Length: {raw_length}")
    if length < 0:
        raise RequestError(f"Invalid Content-Length: {raw_length}")
    if length > max_body_size:
        raise RequestError(
            f"Request body too large ({length} > {max_body_size} bytes)",
            HTTPStatus.PAYLOAD_TOO_LARGE,
        )

    stream = environ.get("wsgi.input")
    body = stream.read(length) if (stream is not None and length) else b""

    remote_port = environ.get("REMOTE_PORT") or 0
    try:
        remote_port = int(remote_port)
    except ValueError:
        remote_port = 0

    return build_request(
        method=environ.get("REQUEST_METHOD", "GET"),
        target=quote(_wsgi_str(environ.get("PATH_INFO", "") or "/")),
        headers=_environ_headers(environ),
        body=body,
        query_string=_wsgi_str(environ.get("QUERY_STRING", "")),
        client_address=(environ.get("REMOTE_ADDR", ""), remote_port),
        allow_form_json=allow_form_json,
    )


# =============================================================================
# APPLICATION
# =============================================================================

class Application:
    """
    An apicore application: router + global middleware + WSGI adapter.

    =========================================================================
    USAGE
    =========================================================================

        app = Application(AppConfig.from_env())
        app.use(LoggingMiddleware(), CORSMiddleware())

        @app.get("/products")
        def list_products(request):
            return success(catalog.all(), "Products retrieved successfully")

        auth = app.authentication(users)
        app.post(
            "/products",
            (ProductController, "create"),
            middleware=[auth, RoleMiddleware("admin"),
                        app.validation({"name": "required|string"})],
        )

        app.run()                    # development server
        # or hand `app` to any WSGI server: gunicorn "myapi:app"

    =========================================================================
    """

    def __init__(self, config: Optional[AppConfig] = None):
        """
        Args:
            config: Application configuration. Defaults if not provided.

        Raises:
            ValueError: if the configuration is invalid (fail fast).
        """
        self.config = config or AppConfig()
        self.config.validate()

        self.router = Router(strict_methods=self.config.strict_methods)
        self._middleware = MiddlewarePipeline()

    # =========================================================================
    # CONFIGURATION METHODS
    # =========================================================================

    def use(self, *middleware: Middleware) -> "Application":
        """
        Add global middleware, run around every route (first added = outermost).

            app.use(LoggingMiddleware()).use(CORSMiddleware())
        """
        self._middleware.use(*middleware)
        return self

    @property
    def middleware(self) -> List[Middleware]:
        return list(self._middleware)

    def authentication(self, users: UserLookup, decoder=None) -> AuthenticationMiddleware:
        """
        Authentication middleware using the configured token secret.

        Raises:
            ValueError: when no decoder is given and token_secret is unset.
        """
        if decoder is None:
            if not self.config.token_secret:
                raise ValueError("token_secret must be configured to authenticate requests")
            decoder = HS256TokenDecoder(self.config.token_secret)
        return AuthenticationMiddleware(decoder, users)

    def validation(self, rules: Mapping[str, str]) -> ValidationMiddleware:
        """Validation middleware honouring strict_validation_rules."""
        return ValidationMiddleware(rules, strict=self.config.strict_validation_rules)

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def route(self, method: str, pattern: str, handler: Any = None,
              middleware: Iterable[Middleware] = ()) -> Any:
        return self.router.route(method, pattern, handler, middleware)

    def get(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.router.get(pattern, handler, middleware)

    def post(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.router.post(pattern, handler, middleware)

    def put(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.router.put(pattern, handler, middleware)

    def patch(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.router.patch(pattern, handler, middleware)

    def delete(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.router.delete(pattern, handler, middleware)

    def group(self, prefix: str, middleware: Iterable[Middleware] = ()) -> RouteGroup:
        return self.router.group(prefix, middleware)

    def routes(self) -> List[Route]:
        return self.router.routes()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def handle(self, request: Request) -> Response:
        """Run a request through the global middleware and the router."""
        return self._middleware.run(request, self.router.dispatch)

    def __call__(self, environ: Dict[str, Any], start_response: StartResponse) -> List[bytes]:
        """
        WSGI entry point.

        Malformed transport input (bad Content-Length, oversized body)
        is answered with an error envelope without running any middleware.
        Anything else that breaks while reading the request becomes a 500
        envelope.
        """
        try:
            request = request_from_environ(
                environ,
                max_body_size=self.config.max_body_size,
                allow_form_json=self.config.allow_form_json,
            )
        except RequestError as e:
            logger.warning(f"Rejected malformed request: {e}")
            response = error(str(e), e.status_code)
        except Exception:
            logger.exception("Failed to build request from WSGI environ")
            response = server_error()
        else:
            response = self.handle(request)

        body = response.render()
        start_response(status_line(response.status), response.header_items(len(body)))
        if environ.get("REQUEST_METHOD") == "HEAD":
            return [b""]
        return [body]

    # =========================================================================
    # DEVELOPMENT SERVER
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Serve with the threaded wsgiref server until Ctrl+C.

        Args:
            host: Override config host
            port: Override config port
        """
        host = host or self.config.host
        port = port or self.config.port
        self._setup_logging()

        httpd = make_server(
            host,
            port,
            self,
            server_class=ThreadingWSGIServer,
            handler_class=QuietRequestHandler,
        )
        logger.info(f"Serving {len(self.router)} routes on http://{host}:{port}")
        for route in self.router.routes():
            logger.info(f"  {route.method:<7} {route.pattern} -> {route.handler.describe()}")

        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            httpd.server_close()
            logger.info("Server stopped")

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("apicore").setLevel(level)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """wsgiref server handling each request in its own thread."""

    daemon_threads = True


class QuietRequestHandler(WSGIRequestHandler):
    """Sends wsgiref's per-request stderr lines to the debug log instead."""

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(f"{self.address_string()} {format % args}")
