"""
Unit tests for URL router.
"""

import pytest

from apicore.errors import ConfigurationFault
from apicore.http.router import (
    Router,
    RouteMatch,
    FunctionHandler,
    ControllerHandler,
    compile_pattern,
    resolve_handler,
)
from apicore.http.response import Response, success
from apicore.middleware.base import FunctionMiddleware


def dummy_handler(request, *args) -> Response:
    """Dummy handler for testing."""
    return success({"path": request.path, "args": list(args)})


def named(label):
    def handler(request, *args):
        return success({"handler": label, "args": list(args)})
    handler.__name__ = label
    return handler


class CountingController:
    instances = 0

    def __init__(self):
        CountingController.instances += 1

    def show(self, request, item_id):
        return success({"id": item_id})

    label = "not callable"


class TestRouteRegistration:
    """Tests for registering routes."""

    def test_register_route(self):
        """Test adding routes."""
        router = Router()
        route = router.register("get", "/users/", dummy_handler)

        assert len(router) == 1
        assert route.method == "GET"
        assert route.pattern == "/users"
        assert isinstance(route.handler, FunctionHandler)

    def test_decorator_returns_function(self):
        """Decorator registration leaves the function untouched."""
        router = Router()

        @router.get("/products")
        def list_products(request):
            return success([])

        assert callable(list_products)
        assert router.routes()[0].handler.func is list_products

    def test_controller_pair_resolved(self):
        """A (class, "action") pair becomes a ControllerHandler."""
        router = Router()
        route = router.get("/items/{id}", (CountingController, "show"))

        assert isinstance(route.handler, ControllerHandler)
        assert route.handler.describe() == "CountingController.show"

    @pytest.mark.parametrize("handler", [
        42,
        "not a handler",
        (CountingController, "missing"),
        (CountingController, "label"),
        (CountingController,),
        ("CountingController", "show"),
    ])
    def test_invalid_handler_rejected_at_registration(self, handler):
        """Invalid handler references fail immediately."""
        router = Router()
        with pytest.raises(ConfigurationFault):
            router.get("/x", handler)
        assert len(router) == 0

    def test_duplicate_route_rejected(self):
        """Same method and normalized pattern twice is a fault."""
        router = Router()
        router.get("/items/{id}", dummy_handler)

        with pytest.raises(ConfigurationFault):
            router.get("/items/{id}/", dummy_handler)

        # Other methods may reuse the pattern
        router.post("/items/{id}", dummy_handler)
        assert len(router) == 2

    def test_placeholder_names_recorded(self):
        router = Router()
        route = router.get("/users/{user_id}/orders/{order_id}", dummy_handler)

        assert route.param_names == ("user_id", "order_id")
        assert not route.is_static


class TestRouteMatching:
    """Tests for matching requests to routes."""

    def test_match_static_path(self):
        """Test matching static paths."""
        router = Router()
        router.get("/users", dummy_handler)
        router.get("/posts", dummy_handler)

        match = router.match("GET", "/users")
        assert match is not None
        assert match.route.pattern == "/users"
        assert match.args == ()

    def test_match_with_method(self):
        """Test method-based routing."""
        router = Router()
        router.get("/users", dummy_handler)
        router.post("/users", dummy_handler)

        assert router.match("GET", "/users").route.method == "GET"
        assert router.match("post", "/users").route.method == "POST"
        assert router.match("DELETE", "/users") is None

    def test_trailing_slash_ignored(self):
        router = Router()
        router.get("/products", dummy_handler)

        assert router.match("GET", "/products/") is not None

    def test_captures_in_declaration_order(self):
        """Placeholder captures come back in the order they appear."""
        router = Router()
        router.get("/users/{user_id}/orders/{order_id}", dummy_handler)

        match = router.match("GET", "/users/7/orders/99")
        assert match.args == ("7", "99")
        assert match.params == {"user_id": "7", "order_id": "99"}

    def test_placeholder_matches_single_segment(self):
        router = Router()
        router.get("/files/{name}", dummy_handler)

        assert router.match("GET", "/files/a/b") is None
        assert router.match("GET", "/files") is None

    def test_static_route_wins_over_earlier_pattern(self):
        """A static route is found before any placeholder pattern."""
        router = Router()
        router.get("/items/{id}", named("by_id"))
        router.get("/items/special", named("special"))

        match = router.match("GET", "/items/special")
        assert match.route.pattern == "/items/special"

    def test_first_registered_pattern_wins(self):
        """Between two matching patterns the earlier one shadows the later."""
        router = Router()
        router.get("/items/{id}", named("by_id"))
        router.get("/items/{slug}", named("by_slug"))

        match = router.match("GET", "/items/special")
        assert match.route.pattern == "/items/{id}"
        assert match.args == ("special",)

    def test_literal_text_escaped(self):
        """Regex metacharacters in literal text match literally."""
        router = Router()
        router.get("/files/{name}.json", dummy_handler)

        assert router.match("GET", "/files/report.json").args == ("report",)
        assert router.match("GET", "/files/reportxjson") is None

    def test_regex_compiled_once_per_pattern(self):
        router = Router()
        router.get("/items/{id}", dummy_handler)

        router.match("GET", "/items/1")
        compiled = router._regex_cache["/items/{id}"]
        router.match("GET", "/items/2")

        assert router._regex_cache["/items/{id}"] is compiled

    def test_compile_pattern(self):
        regex = compile_pattern("/users/{user_id}/orders/{order_id}")
        assert regex.pattern == "^/users/([^/]+)/orders/([^/]+)$"

    def test_allowed_methods(self):
        router = Router()
        router.get("/products/{id}", dummy_handler)
        router.put("/products/{id}", dummy_handler)
        router.delete("/products/{id}", dummy_handler)
        router.get("/orders", dummy_handler)

        assert router.allowed_methods("/products/5") == ["GET", "PUT", "DELETE"]
        assert router.allowed_methods("/nowhere") == []


class TestDispatch:
    """Tests for Router.dispatch()."""

    def test_dispatch_passes_captures_positionally(self, make_request):
        router = Router()
        received = {}

        def show_order(request, user_id, order_id):
            received.update(user_id=user_id, order_id=order_id)
            return success()

        router.get("/users/{user_id}/orders/{order_id}", show_order)
        response = router.dispatch(make_request("GET", "/users/7/orders/99"))

        assert response.status == 200
        assert received == {"user_id": "7", "order_id": "99"}

    def test_registration_order_scenario(self, make_request):
        """
        Static routes are looked up before placeholder patterns, so
        /items/special reaches the static handler even though /items/{id}
        was registered first. This exact-match-first behaviour is intended
        and takes precedence over registration order.
        """
        router = Router()
        router.get("/items/{id}", named("by_id"))
        router.get("/items/special", named("special"))

        special = router.dispatch(make_request("GET", "/items/special"))
        other = router.dispatch(make_request("GET", "/items/42"))

        assert special.data == {"handler": "special", "args": []}
        assert other.data == {"handler": "by_id", "args": ["42"]}

    def test_unregistered_path_is_404(self, make_request):
        router = Router()
        router.get("/products", dummy_handler)

        response = router.dispatch(make_request("GET", "/nothing-here"))

        assert response.status == 404
        assert response.success is False
        assert response.message == "Route not found"

    def test_wrong_method_is_404_by_default(self, make_request):
        router = Router()
        router.get("/products", dummy_handler)

        response = router.dispatch(make_request("DELETE", "/products"))

        assert response.status == 404

    def test_wrong_method_is_405_when_strict(self, make_request):
        router = Router(strict_methods=True)
        router.get("/products", dummy_handler)
        router.post("/products", dummy_handler)

        response = router.dispatch(make_request("DELETE", "/products"))

        assert response.status == 405
        assert response.headers["Allow"] == "GET, POST"
        assert response.to_dict()["success"] is False

    def test_strict_unknown_path_still_404(self, make_request):
        router = Router(strict_methods=True)
        router.get("/products", dummy_handler)

        assert router.dispatch(make_request("GET", "/orders")).status == 404

    def test_controller_instantiated_per_call(self, make_request):
        router = Router()
        router.get("/items/{id}", (CountingController, "show"))
        before = CountingController.instances

        router.dispatch(make_request("GET", "/items/1"))
        response = router.dispatch(make_request("GET", "/items/2"))

        assert CountingController.instances == before + 2
        assert response.data == {"id": "2"}

    def test_controller_instance_reused(self, make_request):
        controller = CountingController()
        router = Router()
        router.get("/items/{id}", (controller, "show"))
        before = CountingController.instances

        router.dispatch(make_request("GET", "/items/1"))

        assert CountingController.instances == before

    def test_handler_payload_wrapped(self, make_request):
        """A dict/list returned by a handler becomes a success envelope."""
        router = Router()
        router.get("/health", lambda request: {"status": "ok"})

        response = router.dispatch(make_request("GET", "/health"))

        assert response.status == 200
        assert response.to_dict() == {"success": True, "message": "Success", "data": {"status": "ok"}}

    def test_handler_returning_nothing_is_500(self, make_request):
        router = Router()
        router.get("/silent", lambda request: None)

        response = router.dispatch(make_request("GET", "/silent"))

        assert response.status == 500
        assert response.message == "No response generated"

    def test_handler_fault_is_500(self, make_request):
        """A fault raised while invoking the handler surfaces as a 500."""
        def broken(request):
            raise ConfigurationFault("wired wrong")

        router = Router()
        router.get("/broken", broken)

        response = router.dispatch(make_request("GET", "/broken"))

        assert response.status == 500
        assert response.message == "Internal server error"
        assert "wired wrong" not in response.to_json()

    def test_route_middleware_wraps_handler(self, make_request):
        calls = []

        def tag(label):
            def middleware(request, next):
                calls.append(label)
                return next(request)
            return FunctionMiddleware(middleware, name=label)

        router = Router()
        router.get("/x", lambda request: calls.append("handler") or success(), middleware=[tag("a"), tag("b")])

        router.dispatch(make_request("GET", "/x"))

        assert calls == ["a", "b", "handler"]


class TestRouteGroups:
    """Tests for route groups."""

    def test_group_prefix(self):
        router = Router()
        api = router.group("/api/v1")
        api.get("/users", dummy_handler)
        api.get("/", dummy_handler)

        patterns = [route.pattern for route in router.routes()]
        assert patterns == ["/api/v1/users", "/api/v1"]

    def test_group_middleware_runs_first(self, make_request):
        calls = []

        def tag(label):
            return FunctionMiddleware(lambda request, next: calls.append(label) or next(request), name=label)

        router = Router()
        admin = router.group("/admin", middleware=[tag("group")])
        admin.get("/reports", lambda request: success(), middleware=[tag("route")])

        router.dispatch(make_request("GET", "/admin/reports"))

        assert calls == ["group", "route"]

    def test_nested_groups(self):
        router = Router()
        api = router.group("/api")
        v2 = api.group("/v2")

        @v2.post("/orders/{id}")
        def update_order(request, order_id):
            return success()

        route = router.routes()[0]
        assert route.pattern == "/api/v2/orders/{id}"
        assert route.method == "POST"


class TestHandlers:
    """Tests for handler resolution."""

    def test_resolve_is_idempotent(self):
        handler = resolve_handler(dummy_handler)
        assert resolve_handler(handler) is handler

    def test_route_match_params(self):
        router = Router()
        route = router.get("/a/{x}/{y}", dummy_handler)
        match = RouteMatch(route=route, args=("1", "2"))
        assert match.params == {"x": "1", "y": "2"}
