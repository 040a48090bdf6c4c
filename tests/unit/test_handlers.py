"""
Unit tests for the router and validation helpers.
"""

import json

import pytest

from requestpipe.abort import AbortSignal
from requestpipe.handlers import Router, require_fields, require_json
from requestpipe.http import HTTPRequest
from requestpipe.middleware import PipelineBuilder, trap_aborts

from conftest import sent


class TestRouter:
    """Tests for route matching."""

    def test_match_static_path(self):
        router = Router()
        router.add_route("/users", lambda ctx: None, method="GET")

        assert router.match("GET", "/users") is not None
        assert router.match("GET", "/users/") is not None
        assert router.match("GET", "/other") is None

    def test_match_root(self):
        router = Router()
        router.add_route("/", lambda ctx: None, method="GET")

        assert router.match("GET", "/") is not None

    def test_match_with_method(self):
        router = Router()
        router.add_route("/users", lambda ctx: None, method="POST")

        assert router.match("GET", "/users") is None
        assert router.match("post", "/users") is not None

    def test_match_dynamic_params(self):
        router = Router()
        router.add_route("/users/:id/posts/:post_id", lambda ctx: None, method="GET")

        match = router.match("GET", "/users/7/posts/99")

        assert match.params == {"id": "7", "post_id": "99"}

    def test_match_wildcard(self):
        router = Router()
        router.add_route("/files/*path", lambda ctx: None, method="GET")

        assert router.match("GET", "/files/a/b/c.txt").params == {"path": "a/b/c.txt"}

    def test_add_route_registers_path_as_given(self):
        router = Router()
        handler = lambda ctx: None

        route = router.add_route("/users/:id", handler, method="get")

        assert (route.path, route.method, route.handler) == ("/users/:id", "GET", handler)
        assert router.routes == [route]

    def test_allowed_methods(self):
        router = Router()
        router.add_route("/users", lambda ctx: None, method="GET")
        router.add_route("/users", lambda ctx: None, method="POST")

        assert router.get_allowed_methods("/users") == ["GET", "POST"]
        assert router.get_allowed_methods("/nothing") == []


class TestRouterHandle:
    """Tests for dispatch and router aborts."""

    def test_dispatch_sets_route_params(self, make_context):
        router = Router()
        seen = {}

        @router.get("/orders/:id")
        def get_order(ctx):
            seen.update(ctx.route_params)
            ctx.response.write("ok")

        ctx = make_context(path="/orders/42")
        router.handle(ctx)

        assert seen == {"id": "42"}
        assert ctx.response.body_length == 2

    def test_unknown_path_is_404(self, make_context):
        router = Router()

        with pytest.raises(AbortSignal) as exc_info:
            router.handle(make_context(path="/nowhere"))

        assert exc_info.value.status_code == 404
        assert exc_info.value.body == "Not Found"

    def test_wrong_method_is_405(self, make_context):
        router = Router()
        router.add_route("/orders", lambda ctx: None, method="GET")
        router.add_route("/orders", lambda ctx: None, method="POST")
        ctx = make_context(method="DELETE", path="/orders")

        PipelineBuilder().use(trap_aborts()).build(router.handle)(ctx)

        response = sent(ctx)
        assert response.status_code == 405
        assert "allow" not in response.headers
        assert response.content_type == "application/json"
        assert json.loads(response.text) == {
            "error": "Method Not Allowed",
            "allowed": ["GET", "POST"],
        }

    def test_decorators(self):
        router = Router()

        @router.get("/a")
        def a(ctx): pass

        @router.post("/a")
        def b(ctx): pass

        @router.put("/a")
        def c(ctx): pass

        @router.delete("/a")
        def d(ctx): pass

        @router.patch("/a")
        def e(ctx): pass

        assert [r.method for r in router.routes] == ["GET", "POST", "PUT", "DELETE", "PATCH"]
        assert router.routes[0].handler is a


class TestValidation:
    """Tests for require_json and require_fields."""

    def test_require_json(self):
        request = HTTPRequest(
            method="POST",
            path="/",
            headers={"content-type": "application/json"},
            body=b'{"sku": "A"}',
        )

        assert require_json(request) == {"sku": "A"}

    def test_require_json_wrong_type(self):
        request = HTTPRequest(
            method="POST",
            path="/",
            headers={"content-type": "text/plain"},
            body=b"hi",
        )

        with pytest.raises(AbortSignal) as exc_info:
            require_json(request)

        assert exc_info.value.status_code == 415
        assert "text/plain" in exc_info.value.body

    def test_require_json_malformed(self):
        request = HTTPRequest(
            method="POST",
            path="/",
            headers={"content-type": "application/json"},
            body=b"{oops",
        )

        with pytest.raises(AbortSignal) as exc_info:
            require_json(request)

        assert exc_info.value.status_code == 400
        assert exc_info.value.content_type == "application/json"

    def test_require_fields(self):
        data = {"sku": "A", "quantity": 2}

        assert require_fields(data, "sku", "quantity") is data

    def test_require_fields_missing(self):
        with pytest.raises(AbortSignal) as exc_info:
            require_fields({"sku": ""}, "sku", "quantity")

        signal = exc_info.value
        assert signal.status_code == 400
        assert signal.content_type == "application/json"
        assert json.loads(signal.body) == {
            "errors": {
                "sku": "This field is required",
                "quantity": "This field is required",
            }
        }

    def test_require_fields_not_an_object(self):
        with pytest.raises(AbortSignal) as exc_info:
            require_fields([1, 2], "sku")

        assert exc_info.value.status_code == 400
