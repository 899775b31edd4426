"""
=============================================================================
APICORE CLI ENTRY POINT
=============================================================================

Runs a small demonstration API on the development server.

=============================================================================
USAGE
=============================================================================

    # Run with defaults (localhost:8080)
    python -m apicore

    # Custom port, JSON access log
    python -m apicore --port 3000 --log-format json

    # 405 instead of 404 for known paths under the wrong method
    python -m apicore --strict-methods

    # Fixed token secret (otherwise API_TOKEN_SECRET, or a random one)
    python -m apicore --token-secret change-me

=============================================================================
DEMO ROUTES
=============================================================================

    GET  /health            public
    GET  /products          public
    GET  /products/{id}     public
    POST /products          bearer token, "admin" role, validated body
    GET  /profile           bearer token

Demo users: id 1 (admin), id 2 (customer), id 3 (suspended customer).
Tokens are HS256 JWTs with {"sub": <id>} signed with the token secret.

=============================================================================
"""

import argparse
import secrets
import sys
import threading
from typing import Any, Dict, List, Optional

from .config import AppConfig, LOG_LEVELS, LOG_FORMATS
from .http.request import Request
from .http.response import Response, success, created, not_found
from .identity import InMemoryUserDirectory
from .middleware import CORSConfig, CORSMiddleware, LoggingMiddleware, RoleMiddleware
from .server import Application


class ProductController:
    """In-memory product catalog, shared by every controller instance."""

    # Guards _products: the development server handles requests on threads
    _lock = threading.Lock()
    _products: List[Dict[str, Any]] = [
        {"id": 1, "name": "Margherita", "price": 8.5},
        {"id": 2, "name": "Veggie Burger", "price": 9.0},
    ]

    def index(self, request: Request) -> Response:
        with self._lock:
            products = list(self._products)
        return success(products, "Products retrieved successfully")

    def show(self, request: Request, product_id: str) -> Response:
        with self._lock:
            products = list(self._products)
        for product in products:
            if str(product["id"]) == product_id:
                return success(product, "Product retrieved successfully")
        return not_found("Product not found")

    def create(self, request: Request) -> Response:
        name = request.input("name")
        price = float(request.input("price"))
        with self._lock:
            product = {
                "id": max((p["id"] for p in self._products), default=0) + 1,
                "name": name,
                "price": price,
            }
            self._products.append(product)
        return created(product, "Product created successfully")


def demo_users() -> InMemoryUserDirectory:
    users = InMemoryUserDirectory()
    users.add(1, role="admin", email="admin@example.com", full_name="Ada Admin")
    users.add(2, role="customer", email="carl@example.com", full_name="Carl Customer")
    users.add(3, status="suspended", role="customer", email="sam@example.com", full_name="Sam Suspended")
    return users


def build_demo_app(config: AppConfig) -> Application:
    """Wire the demonstration routes onto a new Application."""
    app = Application(config)
    app.use(
        LoggingMiddleware(log_format=config.log_format),
        CORSMiddleware(CORSConfig(allow_origins=config.cors_origins)),
    )

    @app.get("/health")
    def health(request: Request) -> Dict[str, str]:
        return {"status": "ok"}

    auth = app.authentication(demo_users())

    app.get("/products", (ProductController, "index"))
    app.get("/products/{id}", (ProductController, "show"))
    app.post(
        "/products",
        (ProductController, "create"),
        middleware=[
            auth,
            RoleMiddleware("admin"),
            app.validation({"name": "required|string|max:100", "price": "required|numeric"}),
        ],
    )

    @app.get("/profile", middleware=[auth])
    def profile(request: Request) -> Response:
        return success(dict(request.identity.attributes), "Profile retrieved successfully")

    return app


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m apicore",
        description="JSON REST API core: demonstration server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m apicore                        # Run with defaults
  python -m apicore --port 3000            # Custom port
  python -m apicore --host 0.0.0.0         # Listen on all interfaces
  python -m apicore --log-format json      # JSON access log
        """,
    )

    # Defaults come from the environment (API_*), flags override them
    parser.add_argument("--host", "-H", default=None,
                        help="Host to bind to (default: API_HOST or 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None,
                        help="Port to listen on (default: API_PORT or 8080)")
    parser.add_argument("--strict-methods", action="store_true", default=None,
                        help="Answer 405 with Allow for paths registered under other methods")
    parser.add_argument("--log-level", "-l", choices=LOG_LEVELS, default=None,
                        help="Logging level (default: API_LOG_LEVEL or INFO)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None,
                        help="Access log format (default: API_LOG_FORMAT or text)")
    parser.add_argument("--token-secret", default=None,
                        help="HS256 secret for bearer tokens (default: API_TOKEN_SECRET)")
    parser.add_argument("--version", "-v", action="version", version="apicore 1.0.0")

    args = parser.parse_args(argv)

    try:
        config = AppConfig.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.strict_methods:
        config.strict_methods = True
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    if args.token_secret is not None:
        config.token_secret = args.token_secret

    generated_secret = not config.token_secret
    if generated_secret:
        config.token_secret = secrets.token_urlsafe(32)

    try:
        app = build_demo_app(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if generated_secret:
        print(f"No token secret configured; using generated secret {config.token_secret}")

    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
