"""
=============================================================================
URL ROUTER
=============================================================================

Implements path-based routing with support for:
- Static paths: /products, /health
- Placeholder segments: /products/{id}, /users/{user_id}/orders/{order_id}
- Per-route middleware: authentication, role checks, validation
- Route groups sharing a prefix and middleware

=============================================================================
ROUTING ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request                                                   │
    │   GET /products/42                                                   │
    │        │                                                             │
    │        ▼                                                             │
    │   1. EXACT LOOKUP   static["GET"]["/products/42"]     → miss        │
    │        │                                                             │
    │        ▼                                                             │
    │   2. PATTERN SCAN   patterns["GET"], registration order             │
    │        │              /products/{id}   ^/products/([^/]+)$  ← MATCH │
    │        ▼                                                             │
    │   3. DISPATCH       run_pipeline(route.middleware, request,          │
    │                              handler(request, "42"))                 │
    │                                                                      │
    │   No match:  strict_methods and path known under other methods      │
    │                  → 405 + Allow header                               │
    │              otherwise                                               │
    │                  → 404 "Route not found"                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PRECEDENCE
=============================================================================

Static routes always win over placeholder routes, whatever the
registration order. Placeholder routes are tried in registration order
and the first match wins:

    router.get("/items/{id}", show_item)       # registered first
    router.get("/items/special", special)      # static

    GET /items/special  → special              (exact lookup)

But between two placeholder routes that both match, the earlier one
shadows the later:

    router.get("/items/{id}", show_item)
    router.get("/items/{slug}", by_slug)       # never reached

=============================================================================
HANDLER REFERENCES
=============================================================================

A handler is resolved when the route is registered, never at dispatch:

    plain callable                 → FunctionHandler
    (ProductController, "show")    → ControllerHandler (new instance per call)
    (controller_instance, "show")  → ControllerHandler (bound method)
    anything else                  → ConfigurationFault, right away

Handlers receive the request followed by the placeholder captures, in
the order the placeholders appear in the pattern:

    router.get("/users/{user_id}/orders/{order_id}", show_order)

    def show_order(request, user_id, order_id): ...

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, Any, List, Iterable, Tuple
import logging
import re

from ..errors import ConfigurationFault
from ..middleware.base import Middleware, run_pipeline
from .request import Request, normalize_path
from .response import Response, not_found, method_not_allowed


logger = logging.getLogger(__name__)


HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD")

# {name} where name is identifier characters
PLACEHOLDER = re.compile(r"\{(\w+)\}")


# =============================================================================
# HANDLER ADAPTERS
# =============================================================================

class FunctionHandler:
    """Invokes a plain function: func(request, *captures)."""

    def __init__(self, func: Callable[..., Any]):
        self.func = func

    def __call__(self, request: Request, *args: str) -> Any:
        return self.func(request, *args)

    def describe(self) -> str:
        return getattr(self.func, "__qualname__", repr(self.func))


class ControllerHandler:
    """
    Invokes a controller action.

    With a controller CLASS, a fresh instance is created for every call,
    so controllers can keep per-request state on self. With an instance,
    the action is bound once at registration.
    """

    def __init__(self, controller: Any, action: str):
        self.controller = controller
        self.action = action

    def __call__(self, request: Request, *args: str) -> Any:
        target = self.controller() if isinstance(self.controller, type) else self.controller
        return getattr(target, self.action)(request, *args)

    def describe(self) -> str:
        owner = self.controller if isinstance(self.controller, type) else type(self.controller)
        return f"{owner.__name__}.{self.action}"


def resolve_handler(handler: Any) -> Callable[..., Any]:
    """
    Turn a handler reference into an invocable adapter.

    Raises:
        ConfigurationFault: for anything that isn't a callable or a
            (controller, "action") pair naming a callable attribute.
    """
    if isinstance(handler, (FunctionHandler, ControllerHandler)):
        return handler

    if isinstance(handler, tuple):
        if len(handler) != 2 or not isinstance(handler[1], str):
            raise ConfigurationFault(
                f"Controller handler must be a (controller, 'action') pair, got {handler!r}"
            )
        controller, action = handler
        if not callable(getattr(controller, action, None)):
            raise ConfigurationFault(
                f"Controller {controller!r} has no callable action '{action}'"
            )
        return ControllerHandler(controller, action)

    if callable(handler):
        return FunctionHandler(handler)

    raise ConfigurationFault(f"Invalid route handler: {handler!r}")


# =============================================================================
# ROUTES
# =============================================================================

@dataclass(frozen=True)
class Route:
    """
    A registered route. Immutable once the table is built.

        Route(
            method="GET",
            pattern="/products/{id}",
            handler=FunctionHandler(show_product),
            middleware=(AuthenticationMiddleware(...),),
            param_names=("id",),
        )
    """

    method: str
    pattern: str
    handler: Callable[..., Any]
    middleware: Tuple[Middleware, ...] = ()
    param_names: Tuple[str, ...] = ()

    @property
    def is_static(self) -> bool:
        """True when the pattern has no placeholders."""
        return not self.param_names


@dataclass
class RouteMatch:
    """
    Result of a successful route match.

    Example:
        Pattern: /users/{user_id}/orders/{order_id}
        Path:    /users/7/orders/99
        Result:  RouteMatch(route=<Route>, args=("7", "99"))
                 match.params == {"user_id": "7", "order_id": "99"}
    """

    route: Route
    args: Tuple[str, ...] = ()

    @property
    def params(self) -> Dict[str, str]:
        return dict(zip(self.route.param_names, self.args))


def compile_pattern(pattern: str) -> re.Pattern:
    """
    Compile a route pattern into an anchored regex.

    =====================================================================
    PATTERN COMPILATION
    =====================================================================

    Input:  "/users/{user_id}/orders/{order_id}"

    Literal text is escaped, each placeholder becomes one capture group
    that matches a single path segment:

        ^/users/([^/]+)/orders/([^/]+)$

    =====================================================================
    """
    parts = []
    position = 0
    for placeholder in PLACEHOLDER.finditer(pattern):
        parts.append(re.escape(pattern[position:placeholder.start()]))
        parts.append("([^/]+)")
        position = placeholder.end()
    parts.append(re.escape(pattern[position:]))
    return re.compile("^" + "".join(parts) + "$")


# =============================================================================
# ROUTER
# =============================================================================

class Router:
    """
    Method + path router with placeholder patterns.

    ==========================================================================
    USAGE
    ==========================================================================

        router = Router()

        @router.get("/products")
        def list_products(request):
            return success(catalog.all())

        router.get("/products/{id}", (ProductController, "show"))

        router.post(
            "/products",
            (ProductController, "create"),
            middleware=[
                AuthenticationMiddleware(decoder, users),
                RoleMiddleware("admin"),
                ValidationMiddleware({"name": "required|string"}),
            ],
        )

        response = router.dispatch(request)

    ==========================================================================
    """

    def __init__(self, strict_methods: bool = False):
        """
        Args:
            strict_methods: Answer 405 (with Allow) instead of 404 when the
                            path is registered under other methods.
        """
        self.strict_methods = strict_methods
        self._routes: List[Route] = []
        self._static: Dict[str, Dict[str, Route]] = {}
        self._patterns: Dict[str, List[Route]] = {}
        self._regex_cache: Dict[str, re.Pattern] = {}

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def register(
        self,
        method: str,
        pattern: str,
        handler: Any,
        middleware: Iterable[Middleware] = (),
    ) -> Route:
        """
        Register a route.

        Args:
            method: HTTP method (any case)
            pattern: Path pattern with {name} placeholders
            handler: Callable or (controller, "action") pair
            middleware: Stages run before the handler, outermost first

        Returns:
            The registered Route

        Raises:
            ConfigurationFault: invalid handler, or the same method and
                pattern registered twice.
        """
        method = method.upper()
        pattern = normalize_path(pattern)

        if pattern in self._static.get(method, {}) or any(
            route.pattern == pattern for route in self._patterns.get(method, [])
        ):
            raise ConfigurationFault(f"Route already registered: {method} {pattern}")

        route = Route(
            method=method,
            pattern=pattern,
            handler=resolve_handler(handler),
            middleware=tuple(middleware),
            param_names=tuple(PLACEHOLDER.findall(pattern)),
        )

        self._routes.append(route)
        if route.is_static:
            self._static.setdefault(method, {})[pattern] = route
        else:
            self._patterns.setdefault(method, []).append(route)

        logger.debug(f"Registered route {method} {pattern} -> {route.handler.describe()}")
        return route

    def _regex(self, pattern: str) -> re.Pattern:
        """Compiled regex for a pattern, compiled on first use."""
        compiled = self._regex_cache.get(pattern)
        if compiled is None:
            # Concurrent first uses may both compile; either result is valid.
            compiled = self._regex_cache.setdefault(pattern, compile_pattern(pattern))
        return compiled

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the route for a method and path.

        Exact static lookup first, then the method's placeholder patterns
        in registration order.

        Returns:
            RouteMatch if found, None otherwise
        """
        method = method.upper()
        path = normalize_path(path)

        route = self._static.get(method, {}).get(path)
        if route is not None:
            return RouteMatch(route=route)

        for route in self._patterns.get(method, []):
            found = self._regex(route.pattern).match(path)
            if found:
                return RouteMatch(route=route, args=found.groups())

        return None

    def allowed_methods(self, path: str) -> List[str]:
        """
        Methods with a route matching this path, in registration order.

        Used to build the Allow header of a 405 response.
        """
        path = normalize_path(path)
        methods: List[str] = []
        for route in self._routes:
            if route.method in methods:
                continue
            if route.pattern == path or (
                not route.is_static and self._regex(route.pattern).match(path)
            ):
                methods.append(route.method)
        return methods

    def dispatch(self, request: Request) -> Response:
        """
        Route a request and run its pipeline.

        The route's middleware wraps the handler; the handler gets the
        placeholder captures as positional arguments. Always returns a
        Response: faults inside the pipeline become a 500.
        """
        match = self.match(request.method, request.path)

        if match is None:
            if self.strict_methods:
                allowed = self.allowed_methods(request.path)
                if allowed:
                    return method_not_allowed(allowed)
            return not_found("Route not found")

        route = match.route

        def invoke(req: Request) -> Any:
            return route.handler(req, *match.args)

        return run_pipeline(route.middleware, request, invoke)

    # =========================================================================
    # DECORATOR-STYLE ROUTE REGISTRATION
    # =========================================================================
    #
    # With a handler, these register right away and return the Route:
    #     router.get("/products/{id}", (ProductController, "show"))
    #
    # Without one, they return a decorator:
    #     @router.get("/products")
    #     def list_products(request):
    #         return success([])
    #
    # =========================================================================

    def route(
        self,
        method: str,
        pattern: str,
        handler: Any = None,
        middleware: Iterable[Middleware] = (),
    ) -> Any:
        if handler is not None:
            return self.register(method, pattern, handler, middleware)

        stages = tuple(middleware)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register(method, pattern, func, stages)
            return func

        return decorator

    def get(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("GET", pattern, handler, middleware)

    def post(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("POST", pattern, handler, middleware)

    def put(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("PUT", pattern, handler, middleware)

    def patch(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("PATCH", pattern, handler, middleware)

    def delete(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("DELETE", pattern, handler, middleware)

    def options(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("OPTIONS", pattern, handler, middleware)

    # =========================================================================
    # ROUTE GROUPS
    # =========================================================================

    def group(self, prefix: str, middleware: Iterable[Middleware] = ()) -> "RouteGroup":
        """
        Create a route group sharing a prefix and middleware.

        Example:
            admin = router.group("/admin", middleware=[auth, RoleMiddleware("admin")])

            @admin.get("/reports")          # GET /admin/reports
            def reports(request):
                ...

        Group middleware runs before the route's own middleware.
        """
        return RouteGroup(self, prefix, tuple(middleware))

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """All registered routes, in registration order."""
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)


class RouteGroup:
    """A view of a Router that prefixes patterns and prepends middleware."""

    def __init__(self, router: Router, prefix: str, middleware: Tuple[Middleware, ...] = ()):
        self.router = router
        self.prefix = normalize_path(prefix) if prefix.strip("/") else ""
        self.middleware = middleware

    def route(
        self,
        method: str,
        pattern: str,
        handler: Any = None,
        middleware: Iterable[Middleware] = (),
    ) -> Any:
        full_pattern = self.prefix + normalize_path(pattern)
        stages = self.middleware + tuple(middleware)
        return self.router.route(method, full_pattern, handler, stages)

    def get(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("GET", pattern, handler, middleware)

    def post(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("POST", pattern, handler, middleware)

    def put(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("PUT", pattern, handler, middleware)

    def patch(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("PATCH", pattern, handler, middleware)

    def delete(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("DELETE", pattern, handler, middleware)

    def options(self, pattern: str, handler: Any = None, middleware: Iterable[Middleware] = ()) -> Any:
        return self.route("OPTIONS", pattern, handler, middleware)

    def group(self, prefix: str, middleware: Iterable[Middleware] = ()) -> "RouteGroup":
        """Nested group: prefixes and middleware accumulate."""
        nested_prefix = self.prefix + (normalize_path(prefix) if prefix.strip("/") else "")
        return RouteGroup(self.router, nested_prefix, self.middleware + tuple(middleware))
